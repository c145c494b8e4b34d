import logging
import os
from collections import Counter
from typing import Any, Dict, List, Optional

import pandas as pd

from .models import Category, CategoryGroup, WordEntry

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("category", "german", "german_alt", "vietnamese", "vietnamese_alt")
ALT_SEPARATOR = "|"


def split_alternates(raw: str, primary: str) -> List[str]:
    """Split a ``|``-joined cell, dropping blanks and repeats of the primary."""
    alternates = []
    for part in str(raw).split(ALT_SEPARATOR):
        part = part.strip()
        if part and part != primary and part not in alternates:
            alternates.append(part)
    return alternates


def find_duplicate_ids(words: List[WordEntry]) -> List[str]:
    counts = Counter(w.id for w in words)
    return [word_id for word_id, n in counts.items() if n > 1]


def group_by_category(words: List[WordEntry]) -> List[CategoryGroup]:
    """Group words in section order, sorted by German primary; empty groups omitted."""
    groups: Dict[Category, List[WordEntry]] = {}
    for word in words:
        groups.setdefault(word.category, []).append(word)
    return [
        CategoryGroup(
            category=category,
            title=category.display_name,
            words=sorted(groups[category], key=lambda w: w.german.casefold()),
        )
        for category in Category.ordered()
        if category in groups
    ]


# --- Service Layer: Vocabulary Store ---
class VocabularyStore:
    """Read-only vocabulary grouped by category, loaded from a CSV file."""

    def __init__(self, path: str):
        self.path = path
        self.by_category: Dict[Category, List[WordEntry]] = {}
        self.index: Dict[str, WordEntry] = {}
        self.load_all()

    def load_all(self):
        self.by_category = {category: [] for category in Category.ordered()}
        self.index = {}
        if not os.path.exists(self.path):
            logger.warning(f"Vocabulary file {self.path} not found. Vocabulary is empty.")
            return

        try:
            df = pd.read_csv(self.path, encoding="utf-8", dtype=str, keep_default_na=False)
        except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
            logger.error(f"Failed to load {self.path}: {e}")
            return
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            logger.error(f"Skipping {self.path}: Missing columns {missing}.")
            return

        for row in df.to_dict("records"):
            german = row["german"].strip()
            vietnamese = row["vietnamese"].strip()
            try:
                category = Category(row["category"].strip())
            except ValueError:
                logger.error(f"Skipping {german!r}: unknown category {row['category']!r}")
                continue
            if not german or not vietnamese:
                logger.error(f"Skipping row with empty primary form: {row}")
                continue
            self.by_category[category].append(
                WordEntry(
                    german=german,
                    german_alt=split_alternates(row["german_alt"], german),
                    vietnamese=vietnamese,
                    vietnamese_alt=split_alternates(row["vietnamese_alt"], vietnamese),
                    category=category,
                )
            )

        words = self.list_all()
        for word in words:
            self.index.setdefault(word.id, word)
        logger.info(f"Loaded {len(words)} words from {os.path.basename(self.path)}")
        for word_id in find_duplicate_ids(words):
            logger.warning(f"Duplicate word id {word_id!r}: learned state will be shared")

    def list_all(self) -> List[WordEntry]:
        """All words in category section order, then declaration order."""
        return [w for category in Category.ordered() for w in self.by_category[category]]

    def get(self, word_id: str) -> Optional[WordEntry]:
        return self.index.get(word_id)

    def get_categories(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": category.value,
                "name": category.display_name,
                "count": len(self.by_category[category]),
            }
            for category in Category.ordered()
        ]
