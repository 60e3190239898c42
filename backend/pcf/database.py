import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pcf.config import settings
from pcf.models.domain import Base
# Imported for their side effect of registering tables on Base.metadata
from pcf.models import login_event, device_fingerprint, classification  # noqa: F401

logger = logging.getLogger(__name__)


def make_engine(url: str, echo: bool = False) -> Engine:
    kwargs = {"echo": echo, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def create_tables(bind: Engine) -> None:
    Base.metadata.create_all(bind)


def drop_tables(bind: Engine) -> None:
    Base.metadata.drop_all(bind)


DATABASE_URL = settings.database_url
if DATABASE_URL:
    engine: Optional[Engine] = make_engine(DATABASE_URL)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
else:
    engine = None
    SessionLocal = None
