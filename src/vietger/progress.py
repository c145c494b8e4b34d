import logging
import threading
from typing import Iterable, List, Set

from redis import RedisError

from .models import ProgressStats, WordEntry, WordFilter
from .storage import StringListStore

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Owns the set of learned word ids and writes it through to storage.

    Every mutation updates the in-memory set first and then overwrites the
    stored list as a whole. A failed write is logged and otherwise ignored;
    the next successful mutation stores the full set again.
    Mutations and their writes run under one lock so a stale snapshot
    never overwrites a newer one.
    """

    def __init__(self, store: StringListStore, key: str):
        self.store = store
        self.key = key
        self.learned_ids: Set[str] = set()
        self._lock = threading.Lock()

    def load(self) -> None:
        try:
            stored = self.store.get_string_list(self.key)
        except RedisError:
            logger.exception(f"Could not load progress from {self.key}; starting empty")
            stored = None
        with self._lock:
            self.learned_ids = set(stored or [])
        logger.info(f"Loaded {len(self.learned_ids)} learned word ids")

    def _save(self) -> None:
        try:
            self.store.set_string_list(self.key, sorted(self.learned_ids))
        except RedisError:
            logger.exception(f"Could not persist progress to {self.key}")

    # --- Mutations ---
    def mark_learned(self, word_id: str) -> None:
        with self._lock:
            self.learned_ids.add(word_id)
            self._save()

    def mark_unlearned(self, word_id: str) -> None:
        with self._lock:
            self.learned_ids.discard(word_id)
            self._save()

    def toggle_learned(self, word_id: str) -> bool:
        """Flip the learned state; returns the new state."""
        with self._lock:
            if word_id in self.learned_ids:
                self.learned_ids.remove(word_id)
            else:
                self.learned_ids.add(word_id)
            self._save()
            return word_id in self.learned_ids

    def reset_all(self) -> None:
        with self._lock:
            self.learned_ids.clear()
            self._save()

    # --- Queries ---
    def is_learned(self, word_id: str) -> bool:
        return word_id in self.learned_ids

    def unlearned_words(self, all_words: Iterable[WordEntry]) -> List[WordEntry]:
        return [w for w in all_words if w.id not in self.learned_ids]

    def stats(self, all_words: List[WordEntry]) -> ProgressStats:
        # Stale ids from removed words are not counted.
        learned = sum(1 for w in all_words if w.id in self.learned_ids)
        return ProgressStats(
            total=len(all_words), learned=learned, remaining=len(all_words) - learned
        )

    def filter_words(
        self,
        all_words: Iterable[WordEntry],
        word_filter: WordFilter = WordFilter.ALL,
        search: str = "",
    ) -> List[WordEntry]:
        """Words matching the learned-state filter and a case-insensitive search."""
        needle = search.strip().casefold()
        result = []
        for word in all_words:
            if needle and not (
                needle in word.german.casefold() or needle in word.vietnamese.casefold()
            ):
                continue
            learned = self.is_learned(word.id)
            if word_filter is WordFilter.LEARNED and not learned:
                continue
            if word_filter is WordFilter.NOT_LEARNED and learned:
                continue
            result.append(word)
        return result
