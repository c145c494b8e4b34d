import pytest
from fastapi.testclient import TestClient

from vietger.main import app, get_redis, get_tracker, get_vocabulary
from vietger.progress import ProgressTracker
from vietger.storage import StringListStore
from vietger.vocabulary import VocabularyStore

SAMPLE_CSV = """category,german,german_alt,vietnamese,vietnamese_alt
pronouns,ich,,tôi,
pronouns,du,,bạn,
core_verbs,gehen,laufen|verlassen,đi,
core_verbs,machen,tun|erstellen,làm,
nouns,die Straße,Straße|Weg,đường phố,con đường
adjectives,gut,,tốt,
interjections_expressions,bitte,,làm ơn,xin mời|không có gì
"""


class FakeRedis:
    """In-memory stand-in for the handful of redis commands the app uses."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        return True

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def vocab_file(tmp_path):
    path = tmp_path / "words.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    return str(path)


@pytest.fixture
def vocabulary(vocab_file):
    return VocabularyStore(vocab_file)


@pytest.fixture
def store(fake_redis):
    return StringListStore(fake_redis)


@pytest.fixture
def tracker(store):
    return ProgressTracker(store, "learnedWordIDs")


@pytest.fixture
def client(fake_redis, vocabulary, tracker):
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_vocabulary] = lambda: vocabulary
    app.dependency_overrides[get_tracker] = lambda: tracker
    yield TestClient(app)
    app.dependency_overrides.clear()
