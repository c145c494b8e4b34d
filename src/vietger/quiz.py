import logging
import random
from typing import List, Optional

from .models import Direction, QuizStage, SessionData, SessionSummary, WordEntry
from .progress import ProgressTracker
from .vocabulary import VocabularyStore

logger = logging.getLogger(__name__)


class QuizStageError(Exception):
    """Raised when a quiz action is not valid in the session's current stage."""


def normalize(text: str) -> str:
    return text.strip().lower()


def parse_custom_size(raw: Optional[str]) -> Optional[int]:
    """Return a positive size from free text, or None when it is unusable."""
    try:
        size = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return size if size > 0 else None


def prompt_for(word: WordEntry, direction: Direction) -> str:
    if direction is Direction.DE_TO_VI:
        return word.german
    return word.vietnamese


def answers_for(word: WordEntry, direction: Direction) -> List[str]:
    if direction is Direction.DE_TO_VI:
        return word.all_vietnamese
    return word.all_german


class UnlearnedWordSampler:
    """Draws a random subset of the unlearned pool without replacement."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def draw(self, pool: List[WordEntry], requested: int) -> List[WordEntry]:
        if not pool:
            return []
        size = max(1, min(requested, len(pool)))
        return self.rng.sample(pool, size)


class QuizSession:
    """Drives one quiz: direction, size, question loop and summary.

    The session state lives in a ``SessionData`` model so it can be stored
    between requests; words are resolved against the vocabulary by id.
    Correct answers are reported to the progress tracker immediately.
    """

    def __init__(
        self,
        data: SessionData,
        vocabulary: VocabularyStore,
        tracker: ProgressTracker,
        sampler: Optional[UnlearnedWordSampler] = None,
    ):
        self.data = data
        self.vocabulary = vocabulary
        self.tracker = tracker
        self.sampler = sampler or UnlearnedWordSampler()

    @property
    def stage(self) -> QuizStage:
        return self.data.stage

    @property
    def words(self) -> List[WordEntry]:
        return [
            word
            for word in (self.vocabulary.get(i) for i in self.data.sample_ids)
            if word is not None
        ]

    def _require(self, *stages: QuizStage):
        if self.data.stage not in stages:
            raise QuizStageError(
                f"Action not allowed in stage {self.data.stage.value}"
            )

    # --- Transitions ---
    def choose_direction(self, direction: Direction) -> None:
        self._require(QuizStage.PICK_DIRECTION, QuizStage.PICK_SIZE)
        self.data.direction = direction
        self.data.stage = QuizStage.PICK_SIZE

    def back(self) -> None:
        self._require(QuizStage.PICK_SIZE)
        self.data.direction = None
        self.data.stage = QuizStage.PICK_DIRECTION

    def start_session(self, requested_size: int) -> None:
        self._require(QuizStage.PICK_SIZE)
        pool = self.tracker.unlearned_words(self.vocabulary.list_all())
        sample = self.sampler.draw(pool, max(1, requested_size))

        self.data.sample_ids = [w.id for w in sample]
        self.data.cursor = 0
        self.data.correct_ids = set()
        self.data.open_ids = set()
        # An empty pool goes straight to a 0/0 summary.
        self.data.stage = QuizStage.IN_PROGRESS if sample else QuizStage.SUMMARY
        logger.info(
            f"Quiz started [{self.data.direction.value}]: "
            f"{len(sample)} of {len(pool)} unlearned words (requested {requested_size})"
        )

    def restart(self) -> None:
        self.data = SessionData()

    # --- Current question ---
    def current_word(self) -> Optional[WordEntry]:
        if self.data.stage is not QuizStage.IN_PROGRESS:
            return None
        words = self.words
        if 0 <= self.data.cursor < len(words):
            return words[self.data.cursor]
        return None

    def current_prompt(self) -> Optional[str]:
        word = self.current_word()
        if word is None:
            return None
        return prompt_for(word, self.data.direction)

    def acceptable_answers(self) -> List[str]:
        word = self.current_word()
        if word is None:
            return []
        return answers_for(word, self.data.direction)

    def is_current_learned(self) -> bool:
        word = self.current_word()
        if word is None:
            return False
        return self.tracker.is_learned(word.id) or word.id in self.data.correct_ids

    def _mark_correct(self, word: WordEntry) -> None:
        self.data.correct_ids.add(word.id)
        self.data.open_ids.discard(word.id)
        self.tracker.mark_learned(word.id)

    def check_answer(self, raw_input: str) -> bool:
        word = self.current_word()
        if word is None:
            return False
        given = normalize(raw_input)
        if given not in {normalize(a) for a in answers_for(word, self.data.direction)}:
            return False
        self._mark_correct(word)
        return True

    def mark_current_learned(self) -> bool:
        word = self.current_word()
        if word is None:
            return False
        self._mark_correct(word)
        return True

    def advance(self) -> None:
        self._require(QuizStage.IN_PROGRESS)
        word = self.current_word()
        # Classify before the end check so the last word is counted too.
        if word is not None and word.id not in self.data.correct_ids:
            self.data.open_ids.add(word.id)
        self.data.cursor += 1
        if self.data.cursor >= len(self.words):
            self.data.stage = QuizStage.SUMMARY
            logger.info(
                f"Quiz finished: {len(self.data.correct_ids)} correct, "
                f"{len(self.data.open_ids)} open"
            )

    # --- Summary ---
    def summary(self) -> SessionSummary:
        words = self.words
        correct = [w for w in words if w.id in self.data.correct_ids]
        left_open = [w for w in words if w.id in self.data.open_ids]
        return SessionSummary(
            correct=correct,
            open=left_open,
            correct_count=len(correct),
            open_count=len(left_open),
            total=len(words),
        )
