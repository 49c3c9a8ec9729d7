import asyncio

import pytest

from checkin_svc.db import init_db, make_engine, make_session_maker
from checkin_svc.models import RegStatus
from checkin_svc.services import registrations as svc
from checkin_svc.services.issuance import IssuanceService

def _run_with_db(tmp_path, fn):
    async def run():
        engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'registrations.db'}")
        await init_db(engine)
        try:
            return await fn(make_session_maker(engine))
        finally:
            await engine.dispose()
    return asyncio.run(run())

def test_second_of_two_racing_approvals_loses(tmp_path, clock):
    async def scenario(session_maker):
        async with session_maker() as db:
            reg = await svc.create_registration(
                db, event_id="event-123", name="John Doe", email="john@company.com", phone="+1-555-0123"
            )
        async with session_maker() as first, session_maker() as second:
            a = await svc.get_registration(first, reg.id)
            b = await svc.get_registration(second, reg.id)

            clock.now = 1_000
            approved = await svc.approve_registration(first, a, IssuanceService(clock=clock), user_id="user-a")
            clock.now = 2_000
            with pytest.raises(svc.RegistrationStateError):
                await svc.approve_registration(second, b, IssuanceService(clock=clock), user_id="user-b")

        async with session_maker() as db:
            stored = await svc.get_registration(db, reg.id)
        return approved, stored

    approved, stored = _run_with_db(tmp_path, scenario)
    assert stored.status == RegStatus.APPROVED
    assert stored.user_id == "user-a"
    assert stored.issued_at == 1_000
    assert stored.qr_code == approved.qr_code

def test_reject_after_concurrent_approval_is_refused(tmp_path, clock):
    async def scenario(session_maker):
        async with session_maker() as db:
            reg = await svc.create_registration(
                db, event_id="event-123", name="Jane Smith", email="jane@company.com", phone="+1-555-0124"
            )
        async with session_maker() as first, session_maker() as second:
            a = await svc.get_registration(first, reg.id)
            b = await svc.get_registration(second, reg.id)
            await svc.approve_registration(first, a, IssuanceService(clock=clock))
            with pytest.raises(svc.RegistrationStateError):
                await svc.reject_registration(second, b)
        async with session_maker() as db:
            return (await svc.get_registration(db, reg.id)).status

    assert _run_with_db(tmp_path, scenario) == RegStatus.APPROVED
