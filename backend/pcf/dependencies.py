import threading
from typing import Optional

from pcf import database
from pcf.config import get_settings
from pcf.services.geoip import lookup_country
from pcf.services.login_service import LoginRiskService
from pcf.services.notifier import Notifier, build_notifier
from pcf.services.risk_engine import load_rules_from_env
from pcf.services.sql_store import SqlAlchemyStore
from pcf.services.store import InMemoryStore, RiskStore

_store: Optional[RiskStore] = None
_notifier: Optional[Notifier] = None
_service: Optional[LoginRiskService] = None

# Sync routes resolve these from threadpool workers
_lock = threading.RLock()


def get_store() -> RiskStore:
    global _store
    with _lock:
        if _store is None:
            if database.SessionLocal is not None:
                _store = SqlAlchemyStore(database.SessionLocal)
            else:
                _store = InMemoryStore()
        return _store


def get_notifier() -> Notifier:
    global _notifier
    with _lock:
        if _notifier is None:
            _notifier = build_notifier(get_settings())
        return _notifier


def get_login_service() -> LoginRiskService:
    global _service
    with _lock:
        if _service is None:
            _service = LoginRiskService(
                store=get_store(),
                settings=get_settings(),
                rules=load_rules_from_env(),
                country_lookup=lookup_country,
            )
        return _service
