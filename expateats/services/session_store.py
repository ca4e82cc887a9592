import json
import time
from typing import Any, Optional

import redis.asyncio as redis

from expateats.config import settings

SESSION_PREFIX = "sess"


class RedisSessionStore:
    """Серверное хранилище сессий в Redis. Срок жизни - TTL ключа."""

    def __init__(self, url: str):
        self._url = url
        self._client: Optional[redis.Redis] = None

    async def connect(self):
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
            )

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, session_id: str) -> Optional[dict[str, Any]]:
        if self._client is None:
            await self.connect()
        raw_data = await self._client.get(f"{SESSION_PREFIX}:{session_id}")
        if raw_data is None:
            return None
        return json.loads(raw_data)

    async def set(self, session_id: str, data: dict[str, Any], ttl: int):
        if self._client is None:
            await self.connect()
        await self._client.setex(
            f"{SESSION_PREFIX}:{session_id}",
            ttl,
            json.dumps(data, default=str),
        )

    async def delete(self, session_id: str):
        if self._client is None:
            await self.connect()
        await self._client.delete(f"{SESSION_PREFIX}:{session_id}")

    async def ping(self) -> bool:
        """
        Простейшая проверка доступности Redis
        Возвращает True, если пинг прошел, иначе False.
        """
        if self._client is None:
            return False
        try:
            await self._client.ping()
            return True
        except redis.RedisError:
            return False


class MemorySessionStore:
    """
    Хранилище сессий в памяти процесса (dev/тесты, без REDIS_URL).

    Просроченные записи удаляются при чтении.
    """

    def __init__(self):
        self._data: dict[str, tuple[float, dict[str, Any]]] = {}

    async def connect(self):
        return None

    async def close(self):
        self._data.clear()

    async def get(self, session_id: str) -> Optional[dict[str, Any]]:
        entry = self._data.get(session_id)
        if entry is None:
            return None
        expires_at, data = entry
        if expires_at <= time.monotonic():
            self._data.pop(session_id, None)
            return None
        return dict(data)

    async def set(self, session_id: str, data: dict[str, Any], ttl: int):
        self._data[session_id] = (time.monotonic() + ttl, dict(data))

    async def delete(self, session_id: str):
        self._data.pop(session_id, None)

    async def ping(self) -> bool:
        return True


def build_session_store(redis_url: Optional[str]):
    if redis_url:
        return RedisSessionStore(redis_url)
    return MemorySessionStore()


session_store = build_session_store(settings.REDIS_URL)
