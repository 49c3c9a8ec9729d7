"""
Admission decision for a single scan.

Checks run in a fixed order and stop at the first failure:
format -> expiry -> consumption. The first two are local and pure; only the
last one touches the (possibly remote) consumption ledger.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .config import DAY_MS
from .ledger import ConsumptionLedger
from .token import CheckinToken, parse, shape_error, now_ms

logger = logging.getLogger(__name__)

class ScanOutcome(str, Enum):
    DECODE_FAILED = "DECODE_FAILED"
    MALFORMED = "MALFORMED"
    EXPIRED = "EXPIRED"
    ALREADY_CONSUMED = "ALREADY_CONSUMED"
    ADMITTED = "ADMITTED"

MESSAGES = {
    ScanOutcome.DECODE_FAILED: "Invalid QR code format",
    ScanOutcome.MALFORMED: "Malformed QR code",
    ScanOutcome.EXPIRED: "QR code has expired",
    ScanOutcome.ALREADY_CONSUMED: "QR code has already been used",
    ScanOutcome.ADMITTED: "User entry completed successfully",
}
WRONG_EVENT_MESSAGE = "QR code is for a different event"

@dataclass(frozen=True)
class ScanResult:
    outcome: ScanOutcome
    message: str
    token: CheckinToken | None = None
    checked_at: int | None = None  # ms since epoch

    @property
    def admitted(self) -> bool:
        return self.outcome is ScanOutcome.ADMITTED

    @property
    def user_id(self) -> str | None:
        return self.token.user_id if self.token is not None else None

def _result(outcome: ScanOutcome, token: CheckinToken | None = None, *, at: int | None = None, message: str | None = None) -> ScanResult:
    return ScanResult(outcome=outcome, message=message or MESSAGES[outcome], token=token, checked_at=at)

class TokenValidator:
    def __init__(
        self,
        ledger: ConsumptionLedger,
        *,
        ttl_ms: int = DAY_MS,
        event_id: str | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._ledger = ledger
        self._ttl_ms = ttl_ms
        self._event_id = event_id
        self._clock = clock

    def is_expired(self, token: CheckinToken, now: int | None = None) -> bool:
        now = self._clock() if now is None else now
        return now - token.issued_at >= self._ttl_ms

    async def validate(self, raw_text: str) -> ScanResult:
        """Decode a raw scan and decide admission. Raises LedgerUnavailable."""
        parsed = parse(raw_text)
        if not parsed.ok:
            logger.info("scan rejected: undecodable payload (%s)", parsed.error)
            return _result(ScanOutcome.DECODE_FAILED, at=self._clock())
        return await self.check(parsed.token)

    async def check(self, token: CheckinToken) -> ScanResult:
        now = self._clock()

        err = shape_error(token)
        if err:
            logger.info("scan rejected: malformed token (%s)", err)
            return _result(ScanOutcome.MALFORMED, at=now)
        if self._event_id is not None and token.event_id != self._event_id:
            logger.info("scan rejected: %s belongs to event %s", token.registration_id, token.event_id)
            return _result(ScanOutcome.MALFORMED, token, at=now, message=WRONG_EVENT_MESSAGE)

        if self.is_expired(token, now):
            logger.info("scan rejected: %s expired (issued %d)", token.registration_id, token.issued_at)
            return _result(ScanOutcome.EXPIRED, token, at=now)

        if not await self._ledger.try_consume(token.registration_id, at=now):
            logger.info("scan rejected: %s already used", token.registration_id)
            return _result(ScanOutcome.ALREADY_CONSUMED, token, at=now)

        logger.info("admitted %s for event %s (user %s)", token.registration_id, token.event_id, token.user_id)
        return _result(ScanOutcome.ADMITTED, token, at=now)
