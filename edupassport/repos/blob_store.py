"""Key-value blob store consumed by the credential registry.

The production backend is a smart contract exposing ``isAvailable``,
``getData`` and ``setData``.  This module defines that contract as a
Protocol plus two backends that honour it:

  InMemoryBlobStore: per-process dict, for dev and tests
  RedisBlobStore   : shared across processes, plain GET/SET

Contract semantics every backend must keep:
  - ``get_data`` returns b"" when the key is absent (not an error)
  - ``set_data`` replaces the whole value; there are no multi-key
    transactions and no append primitive
  - any transport failure surfaces as BackendFailure
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from edupassport.core.errors import BackendFailure
from edupassport.core.metrics import BLOB_STORE_OPERATIONS
from edupassport.db.redis import redis_pool

logger = logging.getLogger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    async def is_available(self) -> bool:
        """Readiness probe.  False means the backend cannot serve calls now."""
        ...

    async def get_data(self, key: str) -> bytes:
        """Fetch a blob.  Returns b"" when nothing is stored under key."""
        ...

    async def set_data(self, key: str, value: bytes) -> None:
        """Store a blob, replacing any previous value.  Raises BackendFailure."""
        ...


class InMemoryBlobStore:
    """In-memory blob store for tests and local dev.

    ``available`` can be flipped to simulate a backend that is not ready.
    The autouse fixture in conftest.py clears ``_blobs`` between tests.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self.available = True

    async def is_available(self) -> bool:
        return self.available

    async def get_data(self, key: str) -> bytes:
        BLOB_STORE_OPERATIONS.labels(operation="get", result="ok").inc()
        return self._blobs.get(key, b"")

    async def set_data(self, key: str, value: bytes) -> None:
        BLOB_STORE_OPERATIONS.labels(operation="set", result="ok").inc()
        self._blobs[key] = bytes(value)


class RedisBlobStore:
    """Redis-backed blob store.

    Keys are stored verbatim (``credential_keys``, ``credential_<id>``)
    so a dump of the Redis database lines up with the contract's keys.
    """

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def is_available(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError:
            logger.warning("Blob store ping failed", exc_info=True)
            return False

    async def get_data(self, key: str) -> bytes:
        try:
            value = await self._redis.get(key)
        except RedisError as e:
            BLOB_STORE_OPERATIONS.labels(operation="get", result="error").inc()
            raise BackendFailure(f"get {key!r} failed: {e}") from e
        BLOB_STORE_OPERATIONS.labels(operation="get", result="ok").inc()
        if value is None:
            return b""
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    async def set_data(self, key: str, value: bytes) -> None:
        try:
            await self._redis.set(key, value)
        except RedisError as e:
            BLOB_STORE_OPERATIONS.labels(operation="set", result="error").inc()
            raise BackendFailure(f"set {key!r} failed: {e}") from e
        BLOB_STORE_OPERATIONS.labels(operation="set", result="ok").inc()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    blob_store: BlobStore = RedisBlobStore(redis_pool)
else:
    blob_store = InMemoryBlobStore()
