import pytest
from fastapi.testclient import TestClient

from checkin_svc.core.config import Settings
from checkin_svc.main import create_app

class FixedClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

@pytest.fixture
def clock():
    return FixedClock(1_700_000_000_000)

@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'checkin.db'}",
        LEDGER_BACKEND="database",
        ENABLE_NATS=False,
    )

@pytest.fixture
def client(settings):
    app = create_app(settings, metrics=False)
    with TestClient(app) as c:
        yield c
