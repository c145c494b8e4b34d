import json
import logging
from typing import Iterable, List, Optional

import redis

from .config import settings

logger = logging.getLogger(__name__)

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


def get_redis():
    return redis_client


class StringListStore:
    """Key-value storage of string lists, kept as JSON arrays in redis."""

    def __init__(self, client):
        self.client = client

    def get_string_list(self, key: str) -> Optional[List[str]]:
        raw = self.client.get(key)
        if raw is None:
            return None
        try:
            values = json.loads(raw)
        except ValueError:
            logger.error(f"Ignoring corrupt value under {key}")
            return None
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            logger.error(f"Ignoring {key}: expected a JSON array of strings")
            return None
        return values

    def set_string_list(self, key: str, values: Iterable[str]) -> None:
        self.client.set(key, json.dumps(list(values), ensure_ascii=False))
