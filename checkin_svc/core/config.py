from __future__ import annotations
from pydantic_settings import BaseSettings
from pydantic import Field

DAY_MS = 24 * 60 * 60 * 1000

class Settings(BaseSettings):
    database_url: str = Field("sqlite+aiosqlite:///./checkin.db", alias="DATABASE_URL")

    # consumption ledger: database | redis | memory
    ledger_backend: str = Field("database", alias="LEDGER_BACKEND")
    redis_url: str = Field("redis://127.0.0.1:6379/0", alias="REDIS_URL")

    token_ttl_ms: int = Field(default=DAY_MS, alias="TOKEN_TTL_MS")

    # QR rendering
    qr_width: int = Field(default=256, alias="QR_WIDTH")
    qr_margin: int = Field(default=2, alias="QR_MARGIN")
    qr_dark: str = Field(default="#000000", alias="QR_DARK")
    qr_light: str = Field(default="#ffffff", alias="QR_LIGHT")

    # NATS
    nats_urls: str = Field("nats://127.0.0.1:4222", alias="NATS_URLS")
    nats_subject_checkin: str = Field("checkins.recorded", alias="NATS_SUBJECT_CHECKIN")
    enable_nats: bool = Field(default=False, alias="ENABLE_NATS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    cors_origins: str = Field(
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
        alias="CORS_ORIGINS",
    )

    class Config:
        env_file = ".env"
        env_prefix = ""
        case_sensitive = False
        extra = "ignore"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

_settings: Settings | None = None
def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
