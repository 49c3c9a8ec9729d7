from __future__ import annotations
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..models import ScanAttempt
from ..core.validator import ScanResult

async def record_scan(db: AsyncSession, result: ScanResult, *, station: str | None = None) -> ScanAttempt:
    token = result.token
    obj = ScanAttempt(
        outcome=result.outcome.value,
        message=result.message,
        registration_id=token.registration_id if token is not None else None,
        user_id=token.user_id if token is not None else None,
        station=station,
    )
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj

async def recent_scans(db: AsyncSession, *, limit: int = 20) -> list[ScanAttempt]:
    rows = (await db.execute(select(ScanAttempt).order_by(ScanAttempt.scanned_at.desc()).limit(limit))).scalars().all()
    return list(rows)
