from __future__ import annotations
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from ..models import Registration, RegStatus, utcnow
from .issuance import IssuanceService

class RegistrationStateError(Exception):
    """Transition not allowed from the registration's current status."""

async def get_registration(db: AsyncSession, registration_id: uuid.UUID) -> Registration | None:
    return (await db.execute(select(Registration).where(Registration.id == registration_id))).scalar_one_or_none()

async def list_registrations(db: AsyncSession, *, event_id: str | None = None, status: RegStatus | None = None) -> list[Registration]:
    q = select(Registration)
    if event_id is not None:
        q = q.where(Registration.event_id == event_id)
    if status is not None:
        q = q.where(Registration.status == status)
    return list((await db.execute(q.order_by(Registration.created_at.asc()))).scalars().all())

async def create_registration(db: AsyncSession, *, event_id: str, name: str, email: str, phone: str) -> Registration:
    reg = Registration(event_id=event_id, name=name, email=email, phone=phone, status=RegStatus.PENDING)
    db.add(reg)
    await db.commit()
    await db.refresh(reg)
    return reg

async def _transition(db: AsyncSession, reg: Registration, **values) -> Registration:
    # conditional write: only the first of two racing transitions sees a pending row
    res = await db.execute(
        update(Registration)
        .where(Registration.id == reg.id, Registration.status == RegStatus.PENDING)
        .values(updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        await db.rollback()
        raise RegistrationStateError("Registration is no longer pending")
    await db.commit(); await db.refresh(reg)
    return reg

async def approve_registration(
    db: AsyncSession,
    reg: Registration,
    issuer: IssuanceService,
    *,
    user_id: str | None = None,
) -> Registration:
    if reg.status != RegStatus.PENDING:
        raise RegistrationStateError("Only pending registrations can be approved")
    attendee = user_id or f"user-{reg.id}"
    issued = issuer.issue(registration_id=str(reg.id), event_id=reg.event_id, user_id=attendee)
    return await _transition(
        db, reg,
        status=RegStatus.APPROVED, user_id=attendee, issued_at=issued.token.issued_at, qr_code=issued.data_uri,
    )

async def reject_registration(db: AsyncSession, reg: Registration) -> Registration:
    if reg.status != RegStatus.PENDING:
        raise RegistrationStateError("Only pending registrations can be rejected")
    return await _transition(db, reg, status=RegStatus.REJECTED)
