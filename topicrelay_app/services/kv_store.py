# topicrelay_app/services/kv_store.py
import json
import logging
from typing import Any, List, Optional

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return str(value)


class RedisKeyValueStore:
    """
    Plain get/put/delete/prefix-list over Redis.

    No transactions and no compare-and-swap are used: every read-modify-write
    done by the callers is last-writer-wins. ``ttl`` is in seconds.
    """

    def __init__(self, client: Redis):
        self.client = client

    def get(self, key: str) -> Optional[str]:
        return _to_str(self.client.get(key))

    def get_json(self, key: str) -> Optional[Any]:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Ignoring non-JSON value stored under key '{key}'.")
            return None

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl:
            self.client.set(key, value, ex=int(ttl))
        else:
            self.client.set(key, value)

    def put_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self.put(key, json.dumps(value, ensure_ascii=False), ttl=ttl)

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def list_keys(self, prefix: str) -> List[str]:
        """All keys starting with ``prefix``, via SCAN so Redis is never blocked."""
        return [_to_str(key) for key in self.client.scan_iter(match=f"{prefix}*", count=100)]

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False
