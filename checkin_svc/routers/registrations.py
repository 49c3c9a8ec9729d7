from __future__ import annotations
import logging
import re
import uuid
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_db, get_issuer, get_ledger
from ..core.errors import EncodingError, LedgerUnavailable
from ..core.ledger import ConsumptionLedger
from ..core.qr import from_data_uri
from ..models import Registration, RegStatus
from ..schemas import RegistrationApprove, RegistrationCreate, RegistrationRead
from ..services.issuance import IssuanceService
from ..services import registrations as svc

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/registrations", tags=["registrations"])

async def _to_read(reg: Registration, ledger: ConsumptionLedger) -> RegistrationRead:
    is_used = False
    if reg.status == RegStatus.APPROVED:
        try:
            is_used = await ledger.is_consumed(str(reg.id))
        except LedgerUnavailable:
            raise HTTPException(status_code=503, detail="Cannot reach check-in ledger, please retry")
    return RegistrationRead(
        id=reg.id, event_id=reg.event_id, name=reg.name, email=reg.email, phone=reg.phone,
        status=reg.status.value, user_id=reg.user_id, issued_at=reg.issued_at, qr_code=reg.qr_code,
        is_used=is_used, created_at=reg.created_at, updated_at=reg.updated_at,
    )

def _slug(name: str) -> str:
    slug = re.sub(r"\s+", "-", name.strip()).lower()
    return re.sub(r"[^a-z0-9-]", "", slug) or "attendee"

async def _get_or_404(db: AsyncSession, registration_id: uuid.UUID) -> Registration:
    reg = await svc.get_registration(db, registration_id)
    if not reg:
        raise HTTPException(status_code=404, detail="Registration not found")
    return reg

@router.post("", response_model=RegistrationRead, status_code=201)
async def create_registration(
    payload: RegistrationCreate,
    db: AsyncSession = Depends(get_db),
    ledger: ConsumptionLedger = Depends(get_ledger),
):
    reg = await svc.create_registration(
        db, event_id=payload.event_id, name=payload.name, email=payload.email, phone=payload.phone
    )
    return await _to_read(reg, ledger)

@router.get("", response_model=list[RegistrationRead])
async def list_registrations(
    event_id: str | None = None,
    status_filter: RegStatus | None = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_db),
    ledger: ConsumptionLedger = Depends(get_ledger),
):
    rows = await svc.list_registrations(db, event_id=event_id, status=status_filter)
    return [await _to_read(r, ledger) for r in rows]

@router.get("/{registration_id}", response_model=RegistrationRead)
async def read_registration(
    registration_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ledger: ConsumptionLedger = Depends(get_ledger),
):
    return await _to_read(await _get_or_404(db, registration_id), ledger)

@router.post("/{registration_id}/approve", response_model=RegistrationRead)
async def approve_registration(
    registration_id: uuid.UUID,
    payload: RegistrationApprove | None = None,
    db: AsyncSession = Depends(get_db),
    issuer: IssuanceService = Depends(get_issuer),
    ledger: ConsumptionLedger = Depends(get_ledger),
):
    reg = await _get_or_404(db, registration_id)
    try:
        reg = await svc.approve_registration(db, reg, issuer, user_id=payload.user_id if payload else None)
    except svc.RegistrationStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except EncodingError as exc:
        logger.error("QR generation failed for %s: %s", registration_id, exc)
        raise HTTPException(status_code=500, detail="Failed to generate QR code")
    return await _to_read(reg, ledger)

@router.post("/{registration_id}/reject", response_model=RegistrationRead)
async def reject_registration(
    registration_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ledger: ConsumptionLedger = Depends(get_ledger),
):
    reg = await _get_or_404(db, registration_id)
    try:
        reg = await svc.reject_registration(db, reg)
    except svc.RegistrationStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return await _to_read(reg, ledger)

# PNG for download / printing
@router.get("/{registration_id}/qr.png")
async def registration_qr_png(registration_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    reg = await _get_or_404(db, registration_id)
    if reg.status != RegStatus.APPROVED or not reg.qr_code:
        raise HTTPException(status_code=404, detail="No QR code issued for this registration")
    return Response(
        content=from_data_uri(reg.qr_code),
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="qr-code-{_slug(reg.name)}.png"'},
    )
