"""SQLAlchemy implementation of RiskStore. Same read/write contract as InMemoryStore."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from pcf.models.classification import ClassificationRow
from pcf.models.device_fingerprint import DeviceFingerprintRow
from pcf.models.domain import DomainRow
from pcf.models.login_event import LoginEventRow
from pcf.schemas.pcf import LocalClassification
from pcf.schemas.records import ClassificationRecord, DeviceFingerprint, Domain, LoginEvent
from pcf.services.store import RiskStore, generate_id, generate_salt

logger = logging.getLogger(__name__)


def _utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _domain(row: DomainRow) -> Domain:
    return Domain(id=row.id, name=row.name, salt=row.salt, created_at=_utc(row.created_at))


def _event(row: LoginEventRow) -> LoginEvent:
    return LoginEvent(
        id=row.id,
        user_token=row.user_token,
        domain_id=row.domain_id,
        login_ip=row.login_ip,
        country=row.country,
        created_at=_utc(row.created_at),
    )


def _fingerprint(row: DeviceFingerprintRow) -> DeviceFingerprint:
    return DeviceFingerprint(
        id=row.id,
        domain_id=row.domain_id,
        user_token=row.user_token,
        safe_fp=row.safe_fp,
        first_seen_at=_utc(row.first_seen_at),
        last_seen_at=_utc(row.last_seen_at),
    )


def _classification(row: ClassificationRow) -> ClassificationRecord:
    local = LocalClassification(**row.local_classification) if row.local_classification else None
    return ClassificationRecord(
        id=row.id,
        login_event_id=row.login_event_id,
        user_token=row.user_token,
        domain_id=row.domain_id,
        safe_fp=row.safe_fp,
        security_signal=row.security_signal or {},
        local_classification=local,
        is_bot=bool(row.is_bot),
        trust_score=row.trust_score,
        created_at=_utc(row.created_at),
    )


class SqlAlchemyStore(RiskStore):
    kind = "sqlalchemy"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def get_or_create_domain(self, name: str, now: datetime) -> Tuple[Domain, bool]:
        with self._session() as session:
            row = session.execute(select(DomainRow).where(DomainRow.name == name)).scalar_one_or_none()
            if row is not None:
                return _domain(row), False
            row = DomainRow(name=name, salt=generate_salt(), created_at=now)
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                # Another worker registered the same name first
                session.rollback()
                row = session.execute(select(DomainRow).where(DomainRow.name == name)).scalar_one()
                return _domain(row), False
            return _domain(row), True

    def get_domain(self, domain_id: int) -> Optional[Domain]:
        with self._session() as session:
            row = session.get(DomainRow, domain_id)
            return _domain(row) if row is not None else None

    def find_domain(self, name: str) -> Optional[Domain]:
        with self._session() as session:
            row = session.execute(select(DomainRow).where(DomainRow.name == name)).scalar_one_or_none()
            return _domain(row) if row is not None else None

    def add_login_event(self, event: LoginEvent) -> LoginEvent:
        with self._session() as session:
            session.add(LoginEventRow(**event.model_dump()))
            session.commit()
        return event

    def get_login_event(self, event_id: str) -> Optional[LoginEvent]:
        with self._session() as session:
            row = session.get(LoginEventRow, event_id)
            return _event(row) if row is not None else None

    def login_events_for(self, user_token: str, domain_id: int) -> List[LoginEvent]:
        with self._session() as session:
            rows = session.execute(
                select(LoginEventRow).where(
                    LoginEventRow.domain_id == domain_id,
                    LoginEventRow.user_token == user_token,
                )
            ).scalars().all()
            return [_event(r) for r in rows]

    def upsert_fingerprint(self, domain_id: int, user_token: str, safe_fp: str, now: datetime) -> DeviceFingerprint:
        stmt = select(DeviceFingerprintRow).where(
            DeviceFingerprintRow.domain_id == domain_id,
            DeviceFingerprintRow.user_token == user_token,
            DeviceFingerprintRow.safe_fp == safe_fp,
        )
        with self._session() as session:
            row = session.execute(stmt).scalar_one_or_none()
            if row is None:
                row = DeviceFingerprintRow(
                    id=generate_id(),
                    domain_id=domain_id,
                    user_token=user_token,
                    safe_fp=safe_fp,
                    first_seen_at=now,
                    last_seen_at=now,
                )
                session.add(row)
                try:
                    session.commit()
                    return _fingerprint(row)
                except IntegrityError:
                    session.rollback()
                    row = session.execute(stmt).scalar_one()
            if now > _utc(row.last_seen_at):
                row.last_seen_at = now
                session.commit()
            return _fingerprint(row)

    def fingerprints_for(self, domain_id: int, safe_fp: str) -> List[DeviceFingerprint]:
        with self._session() as session:
            rows = session.execute(
                select(DeviceFingerprintRow).where(
                    DeviceFingerprintRow.domain_id == domain_id,
                    DeviceFingerprintRow.safe_fp == safe_fp,
                )
            ).scalars().all()
            return [_fingerprint(r) for r in rows]

    def put_classification(self, record: ClassificationRecord) -> ClassificationRecord:
        values = record.model_dump()
        if record.local_classification is not None:
            values["local_classification"] = record.local_classification.model_dump()
        with self._session() as session:
            row = session.execute(
                select(ClassificationRow).where(ClassificationRow.login_event_id == record.login_event_id)
            ).scalar_one_or_none()
            if row is None:
                session.add(ClassificationRow(**values))
            else:
                for key, value in values.items():
                    if key != "id":
                        setattr(row, key, value)
            session.commit()
        return record

    def get_classification(self, login_event_id: str) -> Optional[ClassificationRecord]:
        with self._session() as session:
            row = session.execute(
                select(ClassificationRow).where(ClassificationRow.login_event_id == login_event_id)
            ).scalar_one_or_none()
            return _classification(row) if row is not None else None

    def classifications_for(self, user_token: str, domain_id: int) -> List[ClassificationRecord]:
        with self._session() as session:
            rows = session.execute(
                select(ClassificationRow).where(
                    ClassificationRow.domain_id == domain_id,
                    ClassificationRow.user_token == user_token,
                )
            ).scalars().all()
            return [_classification(r) for r in rows]

    def counts(self) -> Dict[str, int]:
        with self._session() as session:
            return {
                "domains": session.execute(select(func.count()).select_from(DomainRow)).scalar_one(),
                "login_events": session.execute(select(func.count()).select_from(LoginEventRow)).scalar_one(),
                "device_fingerprints": session.execute(select(func.count()).select_from(DeviceFingerprintRow)).scalar_one(),
                "classification_records": session.execute(select(func.count()).select_from(ClassificationRow)).scalar_one(),
            }
