from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, computed_field

ID_SEPARATOR = "↔"


# --- Enumerations ---
class Category(str, Enum):
    """Semantic word categories, declared in section order."""

    PRONOUNS = "pronouns"
    CORE_VERBS = "core_verbs"
    NOUNS = "nouns"
    COMMON_THINGS = "common_things"
    ADJECTIVES = "adjectives"
    QUESTION_WORDS = "question_words"
    TIME_FREQUENCY = "time_frequency"
    PREPOSITIONS = "prepositions"
    CONNECTORS = "connectors"
    ADVERBS_FILLERS = "adverbs_fillers"
    INTERJECTIONS_EXPRESSIONS = "interjections_expressions"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return CATEGORY_TITLES[self]

    @classmethod
    def ordered(cls) -> List["Category"]:
        return list(cls)


CATEGORY_TITLES = {
    Category.PRONOUNS: "Pronouns & Personal Words",
    Category.CORE_VERBS: "Core Verbs",
    Category.NOUNS: "Nouns (People, Time, Places)",
    Category.COMMON_THINGS: "Common Things",
    Category.ADJECTIVES: "Adjectives",
    Category.QUESTION_WORDS: "Question Words",
    Category.TIME_FREQUENCY: "Time & Frequency",
    Category.PREPOSITIONS: "Prepositions",
    Category.CONNECTORS: "Connectors",
    Category.ADVERBS_FILLERS: "Common Adverbs & Fillers",
    Category.INTERJECTIONS_EXPRESSIONS: "Basic Interjections & Expressions",
    Category.OTHER: "Other",
}


class Direction(str, Enum):
    DE_TO_VI = "de_to_vi"
    VI_TO_DE = "vi_to_de"

    @property
    def label(self) -> str:
        if self is Direction.DE_TO_VI:
            return "German → Vietnamese"
        return "Vietnamese → German"


class QuizStage(str, Enum):
    PICK_DIRECTION = "pick_direction"
    PICK_SIZE = "pick_size"
    IN_PROGRESS = "in_progress"
    SUMMARY = "summary"


class WordFilter(str, Enum):
    ALL = "all"
    LEARNED = "learned"
    NOT_LEARNED = "not_learned"


class WordAction(str, Enum):
    LEARN = "learn"
    UNLEARN = "unlearn"
    TOGGLE = "toggle"


# --- Models ---
class WordEntry(BaseModel):
    """One vocabulary entry; primary forms plus accepted alternates per language."""

    model_config = ConfigDict(frozen=True)

    german: str
    german_alt: List[str] = Field(default_factory=list)
    vietnamese: str
    vietnamese_alt: List[str] = Field(default_factory=list)
    category: Category

    @computed_field
    @property
    def id(self) -> str:
        # Join key against persisted progress; stable while primaries are unchanged.
        return f"{self.german}{ID_SEPARATOR}{self.vietnamese}"

    @property
    def all_german(self) -> List[str]:
        return [self.german] + list(self.german_alt)

    @property
    def all_vietnamese(self) -> List[str]:
        return [self.vietnamese] + list(self.vietnamese_alt)


class SessionData(BaseModel):
    stage: QuizStage = QuizStage.PICK_DIRECTION
    direction: Optional[Direction] = None
    sample_ids: List[str] = Field(default_factory=list)
    cursor: int = 0
    correct_ids: Set[str] = Field(default_factory=set)
    open_ids: Set[str] = Field(default_factory=set)
    created_at: datetime = Field(default_factory=datetime.now)


class AnswerRecord(BaseModel):
    word_id: str
    prompt: str
    user_answer: str
    is_correct: bool
    acceptable_answers: List[str] = Field(default_factory=list)


class SessionSummary(BaseModel):
    correct: List[WordEntry]
    open: List[WordEntry]
    correct_count: int
    open_count: int
    total: int


class ProgressStats(BaseModel):
    total: int
    learned: int
    remaining: int


class CategoryGroup(BaseModel):
    category: Category
    title: str
    words: List[WordEntry]
