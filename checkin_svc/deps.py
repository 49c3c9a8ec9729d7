from __future__ import annotations
from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .core.ledger import ConsumptionLedger
from .core.nats import CheckinPublisher
from .core.validator import TokenValidator
from .services.issuance import IssuanceService

async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async for s in get_session(request.app.state.session_maker):
        yield s

def get_ledger(request: Request) -> ConsumptionLedger:
    return request.app.state.ledger

def get_issuer(request: Request) -> IssuanceService:
    return request.app.state.issuer

def get_publisher(request: Request) -> CheckinPublisher:
    return request.app.state.publisher

def get_validator(request: Request) -> TokenValidator:
    # stateless apart from the shared ledger, so one per request
    return TokenValidator(request.app.state.ledger, ttl_ms=request.app.state.settings.token_ttl_ms)
