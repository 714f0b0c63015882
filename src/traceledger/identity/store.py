"""Identity stores — durable ``IdentityRecord`` documents keyed by fingerprint.

Each record is one JSON document.  ``RedisIdentityStore`` keeps them under
``traceledger:fingerprint:{hash}``; ``InMemoryIdentityStore`` keeps the same
documents in a dict and is used for local runs and tests.

Mutations go through :meth:`IdentityStore.edit`, which holds the record's
own ``asyncio.Lock`` for the whole load/mutate/save cycle.  Locks are per
fingerprint, so edits of different identities never wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import AsyncIterator
from collections.abc import Callable
from contextlib import asynccontextmanager
from weakref import WeakValueDictionary

from pydantic import ValidationError
from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from traceledger.errors import IdentityStoreError
from traceledger.identity.hashing import fingerprint_hash
from traceledger.identity.records import IdentityRecord

logger = logging.getLogger(__name__)

_CLEAR_BATCH_SIZE = 100


class IdentityStore(ABC):
    """Base class handling locking, (de)serialization and change tracking."""

    def __init__(self) -> None:
        # Entries disappear once no edit holds or awaits the lock.
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()

    # -- raw storage, implemented by backends --

    @abstractmethod
    async def _read(self, fingerprint: str) -> str | bytes | None: ...

    @abstractmethod
    async def _write(self, fingerprint: str, data: str) -> None: ...

    async def close(self) -> None:
        """Release backend resources."""

    # -- read --

    async def get(self, fingerprint: str) -> IdentityRecord | None:
        """Load a detached copy of the record, or ``None`` if unknown."""
        data = await self._read(fingerprint)
        if data is None:
            return None
        try:
            return IdentityRecord.model_validate_json(data)
        except ValidationError as exc:
            raise IdentityStoreError(
                f"Corrupted identity record for fingerprint {fingerprint}"
            ) from exc

    async def get_by_id(self, identifier: str) -> IdentityRecord | None:
        """Load the record of a full 64-character container or image ID."""
        return await self.get(fingerprint_hash(identifier))

    # -- write --

    async def save(self, record: IdentityRecord) -> None:
        await self._write(record.fingerprint, record.model_dump_json())
        record.mark_clean()

    @asynccontextmanager
    async def edit(
        self,
        fingerprint: str,
        seed: Callable[[], IdentityRecord] | None = None,
    ) -> AsyncIterator[IdentityRecord | None]:
        """Lock, load (or create from *seed*) and yield a record.

        The record is saved on exit when it was created or mutated.
        Yields ``None`` when the record does not exist and no seed is given.
        """
        lock = self._lock_for(fingerprint)
        async with lock:
            record = await self.get(fingerprint)
            if record is None and seed is not None:
                record = seed()
                record.mark_created()
                logger.debug(
                    "Creating identity record %s (%s)",
                    fingerprint,
                    record.display_name,
                )
            yield record
            if record is not None and record.dirty:
                await self.save(record)

    def _lock_for(self, fingerprint: str) -> asyncio.Lock:
        lock = self._locks.get(fingerprint)
        if lock is None:
            lock = self._locks[fingerprint] = asyncio.Lock()
        return lock


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryIdentityStore(IdentityStore):
    """Process-local store; documents are kept serialized like on Redis."""

    def __init__(self) -> None:
        super().__init__()
        self._documents: dict[str, str] = {}

    async def _read(self, fingerprint: str) -> str | None:
        return self._documents.get(fingerprint)

    async def _write(self, fingerprint: str, data: str) -> None:
        self._documents[fingerprint] = data

    def __len__(self) -> int:
        return len(self._documents)


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisIdentityStore(IdentityStore):
    """Redis-backed store, one string key per fingerprint."""

    def __init__(self, redis: Redis, *, key_prefix: str = "traceledger") -> None:
        super().__init__()
        self._redis = redis
        self._prefix = key_prefix
        self._record_key = f"{key_prefix}:fingerprint"

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "traceledger") -> RedisIdentityStore:
        return cls(Redis.from_url(url), key_prefix=key_prefix)

    def _key(self, fingerprint: str) -> str:
        return f"{self._record_key}:{fingerprint}"

    async def _read(self, fingerprint: str) -> str | bytes | None:
        try:
            return await self._redis.get(self._key(fingerprint))
        except RedisError as exc:
            raise IdentityStoreError(
                f"Cannot load identity record {fingerprint}"
            ) from exc

    async def _write(self, fingerprint: str, data: str) -> None:
        try:
            await self._redis.set(self._key(fingerprint), data)
        except RedisError as exc:
            raise IdentityStoreError(
                f"Cannot save identity record {fingerprint}"
            ) from exc

    async def fingerprints(self) -> list[str]:
        """Return the fingerprints of all stored records."""
        found: list[str] = []
        async for key in self._redis.scan_iter(match=f"{self._record_key}:*"):
            raw = key.decode() if isinstance(key, bytes) else key
            found.append(raw.rsplit(":", 1)[-1])
        return sorted(found)

    async def clear(self) -> None:
        """Remove all identity records.

        Deletes in batches to avoid loading all keys into memory at once.
        """
        batch: list = []
        async for key in self._redis.scan_iter(match=f"{self._prefix}:*"):
            batch.append(key)
            if len(batch) >= _CLEAR_BATCH_SIZE:
                await self._redis.delete(*batch)
                batch.clear()
        if batch:
            await self._redis.delete(*batch)

    async def close(self) -> None:
        await self._redis.aclose()
