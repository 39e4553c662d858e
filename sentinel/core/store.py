"""
Хранилище состояния реестра и очереди заявок.

Документы — JSON-сериализуемые словари под ключами вида
`sentinel:<namespace>:<key>`. Используем:
- MULTI/EXEC pipeline для атомарной записи пачки документов
- MGET для чтения пачки
- SCAN вместо KEYS для итерации по префиксу
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class StateStore:
    """Базовый интерфейс: атомарная запись и чтение документов."""

    namespace: str = "default"

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def write(self, docs: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def read(self, key: str) -> Optional[Any]:
        found = await self.read_many([key])
        return found.get(key)

    async def read_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        raise NotImplementedError

    async def keys(self, prefix: str = "") -> List[str]:
        raise NotImplementedError


class InMemoryStateStore(StateStore):
    """Хранилище в памяти процесса (по умолчанию и для тестов)."""

    def __init__(self, namespace: str = "default"):
        self.namespace = namespace
        self._docs: Dict[str, str] = {}

    async def write(self, docs: Dict[str, Any]) -> None:
        # Сериализуем заранее: невалидный документ не должен записаться частично
        encoded = {key: json.dumps(value) for key, value in docs.items()}
        self._docs.update(encoded)

    async def read_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {
            key: json.loads(self._docs[key])
            for key in keys
            if key in self._docs
        }

    async def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._docs if k.startswith(prefix))


class RedisStateStore(StateStore):
    """Хранилище на Redis."""

    def __init__(self, redis_url: str, namespace: str = "default"):
        self.redis_url = redis_url
        self.namespace = namespace
        self.client: Optional[redis.Redis] = None
        self.prefix = f"sentinel:{namespace}:"

    async def connect(self) -> None:
        """Подключиться к Redis."""
        self.client = redis.from_url(self.redis_url, decode_responses=True)
        await self.client.ping()
        logger.info(f"Redis connected for namespace {self.namespace}")

    async def close(self) -> None:
        """Закрыть соединение."""
        if self.client:
            await self.client.aclose()

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def write(self, docs: Dict[str, Any]) -> None:
        """Записать все документы одной транзакцией MULTI/EXEC."""
        if not docs:
            return
        encoded = {self._key(key): json.dumps(value) for key, value in docs.items()}
        async with self.client.pipeline(transaction=True) as pipe:
            for key, value in encoded.items():
                pipe.set(key, value)
            await pipe.execute()

    async def read_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        if not keys:
            return {}
        values = await self.client.mget([self._key(k) for k in keys])
        return {
            key: json.loads(raw)
            for key, raw in zip(keys, values)
            if raw is not None
        }

    async def keys(self, prefix: str = "") -> List[str]:
        """Ключи по префиксу через SCAN (не KEYS!)."""
        found = []
        async for key in self.client.scan_iter(match=f"{self.prefix}{prefix}*", count=100):
            found.append(key[len(self.prefix):])
        return sorted(found)


def create_store(redis_url: str, namespace: str) -> StateStore:
    """Redis если задан url, иначе память процесса."""
    if redis_url:
        return RedisStateStore(redis_url, namespace=namespace)
    return InMemoryStateStore(namespace=namespace)
