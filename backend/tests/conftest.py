"""
Test configuration and fixtures for PCF backend tests.
"""
import os

# Set test environment BEFORE any imports
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("PCF_NOTIFY_WEBHOOK_URL", None)

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from pcf.config import Settings
from pcf.database import make_engine, create_tables, drop_tables
from pcf.dependencies import get_login_service, get_notifier, get_store
from pcf.main import app
from pcf.schemas.pcf import NotificationOut
from pcf.services.login_service import LoginRiskService
from pcf.services.notifier import Notifier
from pcf.services.sql_store import SqlAlchemyStore
from pcf.services.store import InMemoryStore


class FakeClock:
    """Deterministic clock; advance() moves time forward."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSink:
    def __init__(self):
        self.received: List[NotificationOut] = []

    async def send(self, payload: NotificationOut) -> None:
        self.received.append(payload)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def sql_engine():
    """SQLite in-memory engine with the PCF tables."""
    engine = make_engine("sqlite://")
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine) -> SqlAlchemyStore:
    return SqlAlchemyStore(sessionmaker(bind=sql_engine, expire_on_commit=False))


@pytest.fixture(params=["memory", "sqlalchemy"])
def any_store(request):
    """Runs a test against both store implementations."""
    if request.param == "memory":
        return InMemoryStore()
    return request.getfixturevalue("sql_store")


@pytest.fixture
def test_settings() -> Settings:
    return Settings()


@pytest.fixture
def countries() -> Dict[str, str]:
    """IP -> ISO country table used by the fake geolocation lookup."""
    return {
        "203.0.113.10": "KR",
        "203.0.113.11": "KR",
        "198.51.100.7": "US",
        "192.0.2.44": "DE",
    }


@pytest.fixture
def country_lookup(countries):
    def lookup(ip: Optional[str]) -> Optional[str]:
        return countries.get(ip or "")
    return lookup


@pytest.fixture
def service(memory_store, test_settings, country_lookup, clock) -> LoginRiskService:
    return LoginRiskService(
        store=memory_store,
        settings=test_settings,
        country_lookup=country_lookup,
        clock=clock,
    )


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def notifier(recording_sink) -> Notifier:
    return Notifier(sinks=[recording_sink], keep_recent=50)


@pytest.fixture
def sync_client(service, notifier, memory_store):
    """Synchronous test client wired to the per-test service and notifier."""
    app.dependency_overrides[get_login_service] = lambda: service
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_store] = lambda: memory_store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_raw_fp() -> dict:
    """Raw fingerprint of an ordinary desktop Chrome session."""
    return {
        "browser": {
            "userAgent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                         "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "language": "ko-KR",
            "languages": ["ko-KR", "en-US"],
        },
        "device": {"platform": "Win32", "hardwareConcurrency": 8, "deviceMemory": 8},
        "screen": {"width": 1920, "height": 1080, "colorDepth": 24, "pixelRatio": 1},
        "window": {"innerWidth": 1280, "innerHeight": 720, "outerWidth": 1296, "outerHeight": 800},
        "time": {"timezoneOffset": -540, "timezone": "Asia/Seoul"},
        "privacy": {"doNotTrack": None},
        "automation": {"webdriver": False},
        "apis": {"localStorage": True, "sessionStorage": True, "indexedDB": True, "mediaDevices": True},
    }


@pytest.fixture
def sample_security_signal() -> dict:
    return {"browser_major": 120, "os_major": "Windows 10", "security_version": "v1.0.0"}
