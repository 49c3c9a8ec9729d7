from __future__ import annotations
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_db, get_publisher, get_validator
from ..core.errors import LedgerUnavailable
from ..core.nats import CheckinPublisher
from ..core.validator import ScanResult, TokenValidator
from ..schemas import ScanAttemptRead, ScanCreate, ScanRead
from ..services.checkins import record_scan, recent_scans

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/checkin", tags=["checkin"])

async def _scan(
    payload: ScanCreate,
    validator: TokenValidator,
    db: AsyncSession,
    publisher: CheckinPublisher,
) -> ScanRead:
    # a) decode + expiry + single-use; the ledger is the only I/O here
    try:
        result: ScanResult = await validator.validate(payload.raw_text)
    except LedgerUnavailable:
        # admitting without the ledger would break single-use
        raise HTTPException(status_code=503, detail="Cannot verify ticket, please retry")

    # b) operator scan history (non-fatal: the ledger already holds the outcome)
    try:
        await record_scan(db, result, station=payload.station)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("could not record %s scan: %s", result.outcome.value, exc)

    # c) emit event on NATS (idempotency key helps consumers)
    token = result.token
    if result.admitted:
        try:
            await publisher.publish_checkin({
                "registration_id": token.registration_id,
                "event_id": token.event_id,
                "user_id": token.user_id,
                "checked_at": result.checked_at,
                "idempotency_key": f"{token.event_id}:{token.registration_id}",
            })
        except Exception as exc:
            # non-fatal for the check-in response
            logger.warning("could not publish check-in for %s: %s", token.registration_id, exc)

    return ScanRead(
        outcome=result.outcome.value,
        admitted=result.admitted,
        message=result.message,
        registration_id=token.registration_id if token else None,
        event_id=token.event_id if token else None,
        user_id=token.user_id if token else None,
        checked_at=result.checked_at,
    )

# --- 1) Scanner station submits whatever it decoded
@router.post("/scan", response_model=ScanRead)
async def scan(
    payload: ScanCreate,
    validator: TokenValidator = Depends(get_validator),
    db: AsyncSession = Depends(get_db),
    publisher: CheckinPublisher = Depends(get_publisher),
):
    return await _scan(payload, validator, db, publisher)

# --- 2) Same, but only tokens for one event are accepted
@router.post("/events/{event_id}/scan", response_model=ScanRead)
async def scan_for_event(
    event_id: str,
    payload: ScanCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    publisher: CheckinPublisher = Depends(get_publisher),
):
    validator = TokenValidator(
        request.app.state.ledger,
        ttl_ms=request.app.state.settings.token_ttl_ms,
        event_id=event_id,
    )
    return await _scan(payload, validator, db, publisher)

# --- 3) Recent scans for the operator screen
@router.get("/scans", response_model=list[ScanAttemptRead])
async def list_scans(limit: int = Query(default=20, ge=1, le=200), db: AsyncSession = Depends(get_db)):
    rows = await recent_scans(db, limit=limit)
    return [ScanAttemptRead(
        id=r.id, outcome=r.outcome, message=r.message, registration_id=r.registration_id,
        user_id=r.user_id, station=r.station, scanned_at=r.scanned_at,
    ) for r in rows]
