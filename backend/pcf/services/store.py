"""
Storage contract for the PCF tables and its in-memory implementation.

The behavioral statistics only read through RiskStore, so a durable backend
(see sql_store.SqlAlchemyStore) can replace InMemoryStore without touching
scoring logic.
"""
from __future__ import annotations

import secrets
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pcf.schemas.records import ClassificationRecord, DeviceFingerprint, Domain, LoginEvent


def generate_id() -> str:
    return secrets.token_hex(16)


def generate_salt() -> str:
    return secrets.token_hex(16)


class RiskStore(ABC):
    kind = "abstract"

    # Identity store
    @abstractmethod
    def get_or_create_domain(self, name: str, now: datetime) -> Tuple[Domain, bool]:
        """Return (domain, created). Creation assigns the next monotonic id and a fresh salt."""

    @abstractmethod
    def get_domain(self, domain_id: int) -> Optional[Domain]: ...

    @abstractmethod
    def find_domain(self, name: str) -> Optional[Domain]: ...

    # Event log
    @abstractmethod
    def add_login_event(self, event: LoginEvent) -> LoginEvent: ...

    @abstractmethod
    def get_login_event(self, event_id: str) -> Optional[LoginEvent]: ...

    @abstractmethod
    def login_events_for(self, user_token: str, domain_id: int) -> List[LoginEvent]: ...

    # Fingerprint ledger
    @abstractmethod
    def upsert_fingerprint(self, domain_id: int, user_token: str, safe_fp: str, now: datetime) -> DeviceFingerprint:
        """Insert with first_seen_at = last_seen_at = now, or only advance last_seen_at."""

    @abstractmethod
    def fingerprints_for(self, domain_id: int, safe_fp: str) -> List[DeviceFingerprint]: ...

    # Classification archive
    @abstractmethod
    def put_classification(self, record: ClassificationRecord) -> ClassificationRecord:
        """Store one record per login event; a later report for the same event overwrites."""

    @abstractmethod
    def get_classification(self, login_event_id: str) -> Optional[ClassificationRecord]: ...

    @abstractmethod
    def classifications_for(self, user_token: str, domain_id: int) -> List[ClassificationRecord]: ...

    @abstractmethod
    def counts(self) -> Dict[str, int]:
        """Row count per table."""


class InMemoryStore(RiskStore):
    """Process-local tables. Each table has its own lock so threaded workers stay consistent."""

    kind = "memory"

    def __init__(self):
        self._next_domain_id = 1
        self._domains: Dict[str, Domain] = {}
        self._login_events: Dict[str, LoginEvent] = {}
        self._fingerprints: Dict[Tuple[int, str, str], DeviceFingerprint] = {}
        self._classifications: Dict[str, ClassificationRecord] = {}

        self._domains_lock = threading.RLock()
        self._events_lock = threading.RLock()
        self._fp_lock = threading.RLock()
        self._class_lock = threading.RLock()

    def get_or_create_domain(self, name: str, now: datetime) -> Tuple[Domain, bool]:
        with self._domains_lock:
            existing = self._domains.get(name)
            if existing is not None:
                return existing, False
            record = Domain(id=self._next_domain_id, name=name, salt=generate_salt(), created_at=now)
            self._next_domain_id += 1
            self._domains[name] = record
            return record, True

    def get_domain(self, domain_id: int) -> Optional[Domain]:
        with self._domains_lock:
            for d in self._domains.values():
                if d.id == domain_id:
                    return d
        return None

    def find_domain(self, name: str) -> Optional[Domain]:
        with self._domains_lock:
            return self._domains.get(name)

    def add_login_event(self, event: LoginEvent) -> LoginEvent:
        with self._events_lock:
            if event.id in self._login_events:
                raise ValueError(f"login event {event.id} already exists")
            self._login_events[event.id] = event
        return event

    def get_login_event(self, event_id: str) -> Optional[LoginEvent]:
        with self._events_lock:
            return self._login_events.get(event_id)

    def login_events_for(self, user_token: str, domain_id: int) -> List[LoginEvent]:
        # TODO: index by (domain_id, user_token) once history outgrows a full scan
        with self._events_lock:
            return [e for e in self._login_events.values() if e.user_token == user_token and e.domain_id == domain_id]

    def upsert_fingerprint(self, domain_id: int, user_token: str, safe_fp: str, now: datetime) -> DeviceFingerprint:
        key = (domain_id, user_token, safe_fp)
        with self._fp_lock:
            existing = self._fingerprints.get(key)
            if existing is not None:
                # last_seen_at never moves backwards
                if now > existing.last_seen_at:
                    existing = existing.model_copy(update={"last_seen_at": now})
                    self._fingerprints[key] = existing
                return existing
            record = DeviceFingerprint(
                id=generate_id(),
                domain_id=domain_id,
                user_token=user_token,
                safe_fp=safe_fp,
                first_seen_at=now,
                last_seen_at=now,
            )
            self._fingerprints[key] = record
            return record

    def fingerprints_for(self, domain_id: int, safe_fp: str) -> List[DeviceFingerprint]:
        with self._fp_lock:
            return [f for f in self._fingerprints.values() if f.domain_id == domain_id and f.safe_fp == safe_fp]

    def put_classification(self, record: ClassificationRecord) -> ClassificationRecord:
        with self._class_lock:
            self._classifications[record.login_event_id] = record
        return record

    def get_classification(self, login_event_id: str) -> Optional[ClassificationRecord]:
        with self._class_lock:
            return self._classifications.get(login_event_id)

    def classifications_for(self, user_token: str, domain_id: int) -> List[ClassificationRecord]:
        with self._class_lock:
            return [r for r in self._classifications.values() if r.user_token == user_token and r.domain_id == domain_id]

    def counts(self) -> Dict[str, int]:
        counts = {}
        with self._domains_lock:
            counts["domains"] = len(self._domains)
        with self._events_lock:
            counts["login_events"] = len(self._login_events)
        with self._fp_lock:
            counts["device_fingerprints"] = len(self._fingerprints)
        with self._class_lock:
            counts["classification_records"] = len(self._classifications)
        return counts
