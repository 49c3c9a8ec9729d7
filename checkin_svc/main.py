from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from .db import init_db, make_engine, make_session_maker
from .routers import checkins, registrations
from .core.config import Settings, get_settings
from .core.ledger import build_ledger
from .core.logging import setup_logging
from .core.nats import CheckinPublisher
from .services.issuance import IssuanceService

logger = logging.getLogger(__name__)

def create_app(settings: Settings | None = None, *, metrics: bool = True) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = make_engine(settings.database_url)
        await init_db(engine)
        app.state.settings = settings
        app.state.session_maker = make_session_maker(engine)
        app.state.ledger = build_ledger(
            settings.ledger_backend, redis_url=settings.redis_url, session_maker=app.state.session_maker
        )
        app.state.issuer = IssuanceService(
            width=settings.qr_width, margin=settings.qr_margin, dark=settings.qr_dark, light=settings.qr_light
        )
        app.state.publisher = CheckinPublisher(
            settings.nats_urls, settings.nats_subject_checkin, enabled=settings.enable_nats
        )
        # best-effort connect; scans still work without NATS
        try:
            await app.state.publisher.connect()
        except Exception as exc:
            logger.warning("NATS unavailable at startup: %s", exc)
        logger.info("checkin-svc started with %s ledger", settings.ledger_backend)
        yield
        await app.state.publisher.close()
        await app.state.ledger.close()
        await engine.dispose()

    app = FastAPI(title="checkin-svc", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(registrations.router)
    app.include_router(checkins.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "checkin-svc"}

    if metrics:
        Instrumentator().instrument(app).expose(app)
    return app

setup_logging(get_settings().log_level)
app = create_app()
