"""
Tests for learned-word progress

Tests cover:
- Storage round trips of string lists
- Mark / unmark / toggle / reset semantics
- Write-through persistence and tolerance of storage failures
- Counts and word list filtering
"""

import json
import threading
import time

import pytest
from redis import ConnectionError as RedisConnectionError

from vietger.models import WordFilter
from vietger.progress import ProgressTracker
from vietger.storage import StringListStore

KEY = "learnedWordIDs"


class BrokenRedis:
    def get(self, key):
        raise RedisConnectionError("redis down")

    def set(self, key, value, ex=None):
        raise RedisConnectionError("redis down")


class SlowFirstWriteRedis:
    """Holds the first write open until released, so a second writer can race it."""

    def __init__(self):
        self.data = {}
        self.first_write_started = threading.Event()
        self.release_first_write = threading.Event()
        self.writes = 0

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.writes += 1
        if self.writes == 1:
            self.first_write_started.set()
            self.release_first_write.wait(timeout=5)
        self.data[key] = value
        return True


class TestStringListStore:
    def test_missing_key_returns_none(self, store):
        assert store.get_string_list(KEY) is None

    def test_values_are_stored_as_json_array(self, store, fake_redis):
        store.set_string_list(KEY, ["gehen↔đi"])
        assert json.loads(fake_redis.data[KEY]) == ["gehen↔đi"]

    def test_round_trip_ignores_insertion_order(self, store):
        store.set_string_list(KEY, ["b", "a"])
        assert set(store.get_string_list(KEY)) == {"a", "b"}

    def test_corrupt_value_is_treated_as_absent(self, store, fake_redis):
        fake_redis.data[KEY] = "not json"
        assert store.get_string_list(KEY) is None

    def test_non_string_items_are_treated_as_absent(self, store, fake_redis):
        fake_redis.data[KEY] = json.dumps([1, 2])
        assert store.get_string_list(KEY) is None


class TestMutations:
    def test_mark_learned_is_idempotent(self, tracker):
        tracker.mark_learned("a")
        once = set(tracker.learned_ids)
        tracker.mark_learned("a")
        assert tracker.learned_ids == once == {"a"}

    def test_mark_unlearned_missing_id_is_noop(self, tracker):
        tracker.mark_unlearned("a")
        assert tracker.learned_ids == set()

    def test_toggle_twice_restores_membership(self, tracker):
        assert tracker.toggle_learned("a") is True
        assert tracker.is_learned("a")
        assert tracker.toggle_learned("a") is False
        assert not tracker.is_learned("a")

    def test_reset_all(self, tracker):
        tracker.mark_learned("a")
        tracker.mark_learned("b")
        tracker.reset_all()
        assert tracker.learned_ids == set()


class TestPersistence:
    def test_every_mutation_is_written(self, tracker, store):
        tracker.mark_learned("a")
        assert store.get_string_list(KEY) == ["a"]
        tracker.toggle_learned("b")
        assert set(store.get_string_list(KEY)) == {"a", "b"}
        tracker.mark_unlearned("a")
        assert store.get_string_list(KEY) == ["b"]
        tracker.reset_all()
        assert store.get_string_list(KEY) == []

    def test_reload_yields_same_set(self, tracker, store):
        tracker.mark_learned("b")
        tracker.mark_learned("a")
        reloaded = ProgressTracker(store, KEY)
        reloaded.load()
        assert reloaded.learned_ids == {"a", "b"}

    def test_write_failure_keeps_memory_state(self, caplog):
        tracker = ProgressTracker(StringListStore(BrokenRedis()), KEY)
        tracker.mark_learned("a")
        assert tracker.is_learned("a")
        assert "Could not persist progress" in caplog.text

    def test_load_failure_starts_empty(self):
        tracker = ProgressTracker(StringListStore(BrokenRedis()), KEY)
        tracker.load()
        assert tracker.learned_ids == set()


class TestQueries:
    def test_unlearned_words_preserves_order(self, tracker, vocabulary):
        words = vocabulary.list_all()
        tracker.mark_learned(words[1].id)
        tracker.mark_learned(words[3].id)
        remaining = tracker.unlearned_words(words)
        assert remaining == [w for i, w in enumerate(words) if i not in (1, 3)]

    def test_stats_ignore_stale_ids(self, tracker, vocabulary):
        words = vocabulary.list_all()
        tracker.mark_learned(words[0].id)
        tracker.mark_learned("removed↔đã xoá")
        stats = tracker.stats(words)
        assert (stats.total, stats.learned, stats.remaining) == (7, 1, 6)

    @pytest.mark.parametrize(
        "word_filter,expected",
        [
            (WordFilter.ALL, 7),
            (WordFilter.LEARNED, 1),
            (WordFilter.NOT_LEARNED, 6),
        ],
    )
    def test_filter_by_learned_state(self, tracker, vocabulary, word_filter, expected):
        tracker.mark_learned("gehen↔đi")
        assert len(tracker.filter_words(vocabulary.list_all(), word_filter)) == expected

    def test_search_matches_either_primary_form(self, tracker, vocabulary):
        words = vocabulary.list_all()
        assert [w.german for w in tracker.filter_words(words, search="STRA")] == [
            "die Straße"
        ]
        assert [w.german for w in tracker.filter_words(words, search="tốt")] == ["gut"]

    def test_search_does_not_match_alternates(self, tracker, vocabulary):
        assert tracker.filter_words(vocabulary.list_all(), search="laufen") == []


class TestConcurrentWrites:
    def test_slow_write_does_not_overwrite_newer_progress(self):
        redis = SlowFirstWriteRedis()
        store = StringListStore(redis)
        tracker = ProgressTracker(store, KEY)

        first = threading.Thread(target=tracker.mark_learned, args=("x",))
        second = threading.Thread(target=tracker.mark_learned, args=("y",))
        first.start()
        assert redis.first_write_started.wait(timeout=5)
        second.start()
        time.sleep(0.05)
        redis.release_first_write.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert tracker.learned_ids == {"x", "y"}
        assert set(store.get_string_list(KEY)) == {"x", "y"}
