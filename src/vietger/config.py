import os
from typing import List

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


class Settings:
    PROJECT_NAME: str = "vietger"
    DEBUG: bool = False
    LOG_DIR: str = "log"
    LOG_FILE: str = "vietger.log"
    REDIS_URL: str = "redis://localhost:6379/0"
    VOCAB_FILE: str = os.path.join(PACKAGE_DIR, "data", "a1.csv")
    PROGRESS_KEY: str = "learnedWordIDs"
    PRESET_SIZES: List[int] = [5, 10, 25, 50, 100]
    DEFAULT_SIZE: int = 10
    SESSION_COOKIE_NAME: str = "quiz_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120


settings = Settings()
