"""
Two-tier roof estimate cache.

Tier 1: in-process dict (fast, process lifetime only).
Tier 2: durable SQL table (survives restarts).

Keys combine the rounded location with a property fingerprint, so the same
house analyzed with different property records gets separate entries.
Expiry is purely time-based and checked at read time. Every write fully
replaces the entry for its key. Durable-tier failures are logged and
swallowed: caching must never fail the request.
"""

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from roofai.db.base import Base, create_cache_engine, create_session_factory
from roofai.models.roof_cache_entry import RoofCacheEntry
from roofai.schemas.roof import Coordinates, PropertyRecord, RoofEstimate

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
NO_PROPERTY_FINGERPRINT = "noprop"


def property_fingerprint(record: Optional[PropertyRecord]) -> str:
    """Short deterministic digest of the fields that drive estimation."""
    if record is None:
        return NO_PROPERTY_FINGERPRINT
    size = f"{record.building_size_sqft:.2f}" if record.building_size_sqft else "none"
    raw = f"{record.property_type.value}|{size}|{record.stories}"
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:12]


def cache_key(location: Coordinates, record: Optional[PropertyRecord]) -> str:
    return f"{location.lat:.6f},{location.lng:.6f}-{property_fingerprint(record)}"


@dataclass
class _MemoryEntry:
    result: RoofEstimate
    timestamp: float


class MemoryCache:
    """Process-local tier. Each set() replaces the whole entry for a key."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, _MemoryEntry] = {}

    def get(self, key: str) -> Optional[RoofEstimate]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() - entry.timestamp > self.ttl_seconds:
            self._entries.pop(key, None)
            return None
        return entry.result.model_copy(deep=True)

    def set(self, key: str, result: RoofEstimate, timestamp: Optional[float] = None) -> None:
        stamp = self.clock() if timestamp is None else timestamp
        self._entries[key] = _MemoryEntry(result=result.model_copy(deep=True), timestamp=stamp)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class DurableCache:
    """SQL-backed tier. Methods are blocking; RoofEstimateCache runs them in threads."""

    def __init__(
        self,
        engine: Engine,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.engine = engine
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.SessionLocal = create_session_factory(engine)
        Base.metadata.create_all(bind=engine)

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> "DurableCache":
        return cls(create_cache_engine(database_url), **kwargs)

    def get(self, key: str) -> Optional[Tuple[RoofEstimate, float]]:
        with self.SessionLocal() as db:
            row = db.get(RoofCacheEntry, key)
            if row is None:
                return None
            if self.clock() - row.created_at > self.ttl_seconds:
                return None
            return RoofEstimate.model_validate_json(row.result_json), row.created_at

    def set(self, key: str, result: RoofEstimate, timestamp: float) -> None:
        with self.SessionLocal() as db:
            db.merge(RoofCacheEntry(
                cache_key=key,
                created_at=timestamp,
                result_json=result.model_dump_json(),
            ))
            db.commit()

    def purge_expired(self) -> int:
        cutoff = self.clock() - self.ttl_seconds
        with self.SessionLocal() as db:
            deleted = db.query(RoofCacheEntry).filter(RoofCacheEntry.created_at < cutoff).delete()
            db.commit()
        return deleted

    def clear(self) -> None:
        with self.SessionLocal() as db:
            db.query(RoofCacheEntry).delete()
            db.commit()


class RoofEstimateCache:
    """Read-through / write-through facade over both tiers."""

    def __init__(
        self,
        memory: MemoryCache,
        durable: Optional[DurableCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.memory = memory
        self.durable = durable
        self.clock = clock

    async def get(self, location: Coordinates, record: Optional[PropertyRecord]) -> Optional[RoofEstimate]:
        key = cache_key(location, record)

        result = self.memory.get(key)
        if result is not None:
            logger.info(f"  [CACHE] Memory hit: {key}")
            return result

        if self.durable is None:
            return None

        try:
            hit = await asyncio.to_thread(self.durable.get, key)
        except (SQLAlchemyError, ValidationError, ValueError) as e:
            logger.warning(f"  [CACHE] Durable read failed for {key}: {e}")
            return None

        if hit is None:
            logger.debug(f"  [CACHE] Miss: {key}")
            return None

        result, timestamp = hit
        self.memory.set(key, result, timestamp=timestamp)
        logger.info(f"  [CACHE] Durable hit: {key}")
        return result

    async def set(self, location: Coordinates, record: Optional[PropertyRecord], result: RoofEstimate) -> None:
        key = cache_key(location, record)
        timestamp = self.clock()
        self.memory.set(key, result, timestamp=timestamp)

        if self.durable is None:
            return
        try:
            await asyncio.to_thread(self.durable.set, key, result, timestamp)
        except SQLAlchemyError as e:
            logger.warning(f"  [CACHE] Durable write failed for {key}: {e}")

    async def clear(self) -> None:
        self.memory.clear()
        if self.durable is not None:
            await asyncio.to_thread(self.durable.clear)

    async def purge_expired(self) -> int:
        if self.durable is None:
            return 0
        deleted = await asyncio.to_thread(self.durable.purge_expired)
        logger.info(f"  [CACHE] Purged {deleted} expired entries")
        return deleted
