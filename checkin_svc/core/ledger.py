"""
Consumption ledger: the authoritative record of which check-in tokens have
already admitted someone.

Every backend implements ``try_consume`` as a single atomic conditional write,
so when several scanner stations submit the same token at once exactly one of
them gets ``True``.
"""
from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import Consumption
from .errors import LedgerUnavailable
from .token import now_ms

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class ConsumptionRecord:
    registration_id: str
    consumed_at: int  # ms since epoch

class ConsumptionLedger(Protocol):
    async def is_consumed(self, registration_id: str) -> bool: ...

    async def try_consume(self, registration_id: str, *, at: int | None = None) -> bool:
        """Mark ``registration_id`` consumed. True only for the first caller."""
        ...

    async def mark_consumed(self, registration_id: str) -> bool: ...

    async def get_record(self, registration_id: str) -> ConsumptionRecord | None: ...

    async def close(self) -> None: ...

class MemoryLedger:
    def __init__(self):
        self._consumed: dict[str, int] = {}
        self._lock = threading.Lock()

    async def is_consumed(self, registration_id: str) -> bool:
        return registration_id in self._consumed

    async def try_consume(self, registration_id: str, *, at: int | None = None) -> bool:
        with self._lock:
            if registration_id in self._consumed:
                return False
            self._consumed[registration_id] = now_ms() if at is None else at
            return True

    async def mark_consumed(self, registration_id: str) -> bool:
        return await self.try_consume(registration_id)

    async def get_record(self, registration_id: str) -> ConsumptionRecord | None:
        at = self._consumed.get(registration_id)
        return None if at is None else ConsumptionRecord(registration_id, at)

    async def close(self) -> None:
        return None

class RedisLedger:
    KEY_PREFIX = "checkin:consumed:"

    def __init__(self, client: redis.Redis):
        self._r = client

    @classmethod
    def from_url(cls, url: str) -> "RedisLedger":
        return cls(redis.from_url(url, decode_responses=True))

    def _key(self, registration_id: str) -> str:
        return f"{self.KEY_PREFIX}{registration_id}"

    async def is_consumed(self, registration_id: str) -> bool:
        try:
            return bool(await self._r.exists(self._key(registration_id)))
        except RedisError as exc:
            logger.error("redis ledger lookup failed for %s: %s", registration_id, exc)
            raise LedgerUnavailable("consumption ledger unreachable") from exc

    async def try_consume(self, registration_id: str, *, at: int | None = None) -> bool:
        stamp = now_ms() if at is None else at
        try:
            # SET NX: first caller wins, no expiry so the entry outlives the token
            ok = await self._r.set(self._key(registration_id), str(stamp), nx=True)
        except RedisError as exc:
            logger.error("redis ledger write failed for %s: %s", registration_id, exc)
            raise LedgerUnavailable("consumption ledger unreachable") from exc
        return bool(ok)

    async def mark_consumed(self, registration_id: str) -> bool:
        return await self.try_consume(registration_id)

    async def get_record(self, registration_id: str) -> ConsumptionRecord | None:
        try:
            raw = await self._r.get(self._key(registration_id))
        except RedisError as exc:
            logger.error("redis ledger lookup failed for %s: %s", registration_id, exc)
            raise LedgerUnavailable("consumption ledger unreachable") from exc
        if raw is None:
            return None
        return ConsumptionRecord(registration_id, int(raw))

    async def close(self) -> None:
        await self._r.aclose()

class DatabaseLedger:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def is_consumed(self, registration_id: str) -> bool:
        return await self.get_record(registration_id) is not None

    async def try_consume(self, registration_id: str, *, at: int | None = None) -> bool:
        stamp = now_ms() if at is None else at
        try:
            async with self._session_maker() as db:
                db.add(Consumption(registration_id=registration_id, consumed_at=stamp))
                try:
                    await db.commit()
                except IntegrityError:
                    # primary key already present: someone consumed it first
                    await db.rollback()
                    return False
        except (SQLAlchemyError, OSError) as exc:
            logger.error("database ledger write failed for %s: %s", registration_id, exc)
            raise LedgerUnavailable("consumption ledger unreachable") from exc
        return True

    async def mark_consumed(self, registration_id: str) -> bool:
        return await self.try_consume(registration_id)

    async def get_record(self, registration_id: str) -> ConsumptionRecord | None:
        try:
            async with self._session_maker() as db:
                row = (await db.execute(
                    select(Consumption).where(Consumption.registration_id == registration_id)
                )).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            logger.error("database ledger lookup failed for %s: %s", registration_id, exc)
            raise LedgerUnavailable("consumption ledger unreachable") from exc
        if row is None:
            return None
        return ConsumptionRecord(row.registration_id, row.consumed_at)

    async def close(self) -> None:
        return None

def build_ledger(backend: str, *, redis_url: str | None = None, session_maker=None) -> ConsumptionLedger:
    backend = backend.lower()
    if backend == "memory":
        return MemoryLedger()
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis ledger needs REDIS_URL")
        return RedisLedger.from_url(redis_url)
    if backend == "database":
        if session_maker is None:
            raise ValueError("database ledger needs a session maker")
        return DatabaseLedger(session_maker)
    raise ValueError(f"unknown ledger backend: {backend!r}")
