"""
Key-value store seam.

The vault expresses all persistent state through six operations. ``RedisStore``
implements them on Redis; tests substitute an in-memory double. The store
client is always constructed explicitly and passed to its users.

Usage:
    store = RedisStore.from_url("redis://localhost:6379/0")
    vault = CredentialVault(encryption_key, store)
    ...
    await store.close()
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class KVStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def set_add(self, set_key: str, member: str) -> None: ...

    async def set_remove(self, set_key: str, member: str) -> None: ...

    async def set_members(self, set_key: str) -> set[str]: ...


class RedisStore:
    """KVStore backed by redis.asyncio with string (decoded) responses."""

    def __init__(self, client) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisStore:
        import redis.asyncio as aioredis

        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str) -> None:
        await self._client.set(key, value)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def set_add(self, set_key: str, member: str) -> None:
        await self._client.sadd(set_key, member)

    async def set_remove(self, set_key: str, member: str) -> None:
        await self._client.srem(set_key, member)

    async def set_members(self, set_key: str) -> set[str]:
        members = await self._client.smembers(set_key)
        return set(members or ())

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    async def close(self) -> None:
        await self._client.aclose()
