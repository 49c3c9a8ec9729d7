import asyncio
import logging

import pytest

from checkin_svc.core.config import DAY_MS
from checkin_svc.core.errors import LedgerUnavailable
from checkin_svc.core.ledger import MemoryLedger
from checkin_svc.core.token import CheckinToken, encode_payload
from checkin_svc.core.validator import ScanOutcome, TokenValidator

class SpyLedger(MemoryLedger):
    def __init__(self):
        super().__init__()
        self.calls = []

    async def try_consume(self, registration_id, *, at=None):
        self.calls.append(registration_id)
        return await super().try_consume(registration_id, at=at)

class DownLedger(MemoryLedger):
    async def try_consume(self, registration_id, *, at=None):
        raise LedgerUnavailable("down")

def _raw(clock, **overrides):
    fields = dict(registration_id="reg-1", event_id="event-123", user_id="user-123", issued_at=clock.now)
    fields.update(overrides)
    return encode_payload(CheckinToken(**fields))

def test_fresh_token_is_admitted_then_already_used(clock):
    validator = TokenValidator(MemoryLedger(), clock=clock)
    raw = _raw(clock)

    first = asyncio.run(validator.validate(raw))
    assert first.outcome is ScanOutcome.ADMITTED
    assert first.admitted
    assert first.user_id == "user-123"
    assert first.message == "User entry completed successfully"
    assert first.checked_at == clock.now

    second = asyncio.run(validator.validate(raw))
    assert second.outcome is ScanOutcome.ALREADY_CONSUMED
    assert second.message == "QR code has already been used"

def test_token_issued_25_hours_ago_is_expired(clock):
    validator = TokenValidator(MemoryLedger(), clock=clock)
    result = asyncio.run(validator.validate(_raw(clock, issued_at=clock.now - 25 * 60 * 60 * 1000)))
    assert result.outcome is ScanOutcome.EXPIRED
    assert result.message == "QR code has expired"

@pytest.mark.parametrize(
    "age,expected",
    [
        (0, ScanOutcome.ADMITTED),
        (DAY_MS - 1, ScanOutcome.ADMITTED),
        (DAY_MS, ScanOutcome.EXPIRED),
        (DAY_MS + 1, ScanOutcome.EXPIRED),
    ],
)
def test_expiry_boundary(clock, age, expected):
    validator = TokenValidator(MemoryLedger(), clock=clock)
    assert asyncio.run(validator.validate(_raw(clock, issued_at=clock.now - age))).outcome is expected

def test_expiry_window_is_configurable(clock):
    validator = TokenValidator(MemoryLedger(), ttl_ms=1000, clock=clock)
    assert asyncio.run(validator.validate(_raw(clock, issued_at=clock.now - 1000))).outcome is ScanOutcome.EXPIRED

def test_garbage_never_reaches_the_ledger(clock):
    ledger = SpyLedger()
    result = asyncio.run(TokenValidator(ledger, clock=clock).validate("not json"))
    assert result.outcome is ScanOutcome.DECODE_FAILED
    assert result.message == "Invalid QR code format"
    assert result.token is None
    assert ledger.calls == []

def test_expired_is_reported_before_already_used(clock):
    ledger = SpyLedger()
    asyncio.run(ledger.try_consume("reg-1"))
    ledger.calls.clear()

    result = asyncio.run(TokenValidator(ledger, clock=clock).validate(_raw(clock, issued_at=clock.now - DAY_MS)))
    assert result.outcome is ScanOutcome.EXPIRED
    assert ledger.calls == []

def test_expired_token_is_not_consumed(clock):
    ledger = MemoryLedger()
    asyncio.run(TokenValidator(ledger, clock=clock).validate(_raw(clock, issued_at=0)))
    assert not asyncio.run(ledger.is_consumed("reg-1"))

def test_malformed_token_object_is_rejected(clock):
    ledger = SpyLedger()
    bad = CheckinToken.model_construct(registration_id="reg-1", event_id="event-123", user_id=None, issued_at=clock.now)
    result = asyncio.run(TokenValidator(ledger, clock=clock).check(bad))
    assert result.outcome is ScanOutcome.MALFORMED
    assert ledger.calls == []

def test_event_scoped_validator_rejects_other_events(clock):
    validator = TokenValidator(MemoryLedger(), event_id="event-999", clock=clock)
    result = asyncio.run(validator.validate(_raw(clock)))
    assert result.outcome is ScanOutcome.MALFORMED
    assert result.message == "QR code is for a different event"

def test_ledger_outage_propagates(clock):
    with pytest.raises(LedgerUnavailable):
        asyncio.run(TokenValidator(DownLedger(), clock=clock).validate(_raw(clock)))

def test_concurrent_scans_admit_exactly_once(clock):
    validator = TokenValidator(MemoryLedger(), clock=clock)
    raw = _raw(clock)

    async def scan_many():
        return await asyncio.gather(*(validator.validate(raw) for _ in range(25)))

    outcomes = [r.outcome for r in asyncio.run(scan_many())]
    assert outcomes.count(ScanOutcome.ADMITTED) == 1
    assert outcomes.count(ScanOutcome.ALREADY_CONSUMED) == 24

def test_admission_is_logged(clock, caplog):
    with caplog.at_level(logging.INFO, logger="checkin_svc.core.validator"):
        asyncio.run(TokenValidator(MemoryLedger(), clock=clock).validate(_raw(clock)))
    assert any("admitted reg-1" in r.getMessage() for r in caplog.records)
