"""
Storage contract tests, run against both the in-memory and SQLAlchemy stores.
"""
import threading
from datetime import timedelta

import pytest

from pcf.schemas.pcf import LocalClassification
from pcf.schemas.records import ClassificationRecord, LoginEvent
from pcf.services.store import InMemoryStore, generate_id


def _event(domain_id, user_token="user-a", at=None, ip="203.0.113.10", country="KR"):
    return LoginEvent(
        id=generate_id(),
        user_token=user_token,
        domain_id=domain_id,
        login_ip=ip,
        country=country,
        created_at=at,
    )


class TestDomains:
    def test_ids_are_monotonic(self, any_store, clock):
        first, created_first = any_store.get_or_create_domain("a.example", clock())
        second, created_second = any_store.get_or_create_domain("b.example", clock())
        assert created_first and created_second
        assert second.id > first.id

    def test_get_or_create_is_stable(self, any_store, clock):
        first, _ = any_store.get_or_create_domain("a.example", clock())
        again, created = any_store.get_or_create_domain("a.example", clock.advance(hours=1))
        assert created is False
        assert again.id == first.id
        assert again.salt == first.salt

    def test_salts_differ(self, any_store, clock):
        a, _ = any_store.get_or_create_domain("a.example", clock())
        b, _ = any_store.get_or_create_domain("b.example", clock())
        assert a.salt and b.salt
        assert a.salt != b.salt

    def test_lookup(self, any_store, clock):
        created, _ = any_store.get_or_create_domain("a.example", clock())
        assert any_store.get_domain(created.id).name == "a.example"
        assert any_store.find_domain("a.example").id == created.id
        assert any_store.find_domain("missing.example") is None
        assert any_store.get_domain(9999) is None


class TestLoginEvents:
    def test_add_and_get(self, any_store, clock):
        domain, _ = any_store.get_or_create_domain("a.example", clock())
        event = any_store.add_login_event(_event(domain.id, at=clock()))
        stored = any_store.get_login_event(event.id)
        assert stored.user_token == "user-a"
        assert stored.country == "KR"
        assert stored.created_at == clock()

    def test_unknown_event(self, any_store):
        assert any_store.get_login_event("nope") is None

    def test_events_are_scoped_by_user_and_domain(self, any_store, clock):
        a, _ = any_store.get_or_create_domain("a.example", clock())
        b, _ = any_store.get_or_create_domain("b.example", clock())
        any_store.add_login_event(_event(a.id, at=clock()))
        any_store.add_login_event(_event(a.id, at=clock()))
        any_store.add_login_event(_event(a.id, user_token="user-b", at=clock()))
        any_store.add_login_event(_event(b.id, at=clock()))
        assert len(any_store.login_events_for("user-a", a.id)) == 2
        assert len(any_store.login_events_for("user-b", a.id)) == 1
        assert len(any_store.login_events_for("user-a", b.id)) == 1

    def test_duplicate_id_rejected_in_memory(self, clock):
        store = InMemoryStore()
        event = _event(1, at=clock())
        store.add_login_event(event)
        with pytest.raises(ValueError):
            store.add_login_event(event)


class TestFingerprintLedger:
    def test_insert_sets_both_timestamps(self, any_store, clock):
        record = any_store.upsert_fingerprint(1, "user-a", "fp-1", clock())
        assert record.first_seen_at == record.last_seen_at == clock()

    def test_repeat_keeps_one_record(self, any_store, clock):
        first = any_store.upsert_fingerprint(1, "user-a", "fp-1", clock())
        later = clock.advance(minutes=3)
        again = any_store.upsert_fingerprint(1, "user-a", "fp-1", later)
        assert len(any_store.fingerprints_for(1, "fp-1")) == 1
        assert again.first_seen_at == first.first_seen_at
        assert again.last_seen_at == later

    def test_last_seen_never_moves_backwards(self, any_store, clock):
        start = clock()
        any_store.upsert_fingerprint(1, "user-a", "fp-1", start)
        record = any_store.upsert_fingerprint(1, "user-a", "fp-1", start - timedelta(minutes=5))
        assert record.last_seen_at == start
        assert record.first_seen_at <= record.last_seen_at

    def test_distinct_users_share_a_fingerprint(self, any_store, clock):
        any_store.upsert_fingerprint(1, "user-a", "fp-1", clock())
        any_store.upsert_fingerprint(1, "user-b", "fp-1", clock())
        any_store.upsert_fingerprint(2, "user-c", "fp-1", clock())
        users = {f.user_token for f in any_store.fingerprints_for(1, "fp-1")}
        assert users == {"user-a", "user-b"}


class TestClassifications:
    def _record(self, event_id, trust=70, is_bot=False, at=None):
        return ClassificationRecord(
            id=generate_id(),
            login_event_id=event_id,
            user_token="user-a",
            domain_id=1,
            safe_fp="fp-1",
            security_signal={"browser_major": 120},
            local_classification=LocalClassification(is_bot=is_bot, trust_score=trust),
            is_bot=is_bot,
            trust_score=trust,
            created_at=at,
        )

    def test_round_trip(self, any_store, clock):
        any_store.put_classification(self._record("evt-1", at=clock()))
        stored = any_store.get_classification("evt-1")
        assert stored.trust_score == 70
        assert stored.local_classification.trust_score == 70
        assert stored.security_signal == {"browser_major": 120}

    def test_later_report_overwrites(self, any_store, clock):
        any_store.put_classification(self._record("evt-1", trust=70, at=clock()))
        any_store.put_classification(self._record("evt-1", trust=10, is_bot=True, at=clock()))
        records = any_store.classifications_for("user-a", 1)
        assert len(records) == 1
        assert records[0].is_bot is True
        assert records[0].trust_score == 10

    def test_missing_classification(self, any_store):
        assert any_store.get_classification("evt-404") is None


def test_counts(any_store, clock):
    domain, _ = any_store.get_or_create_domain("a.example", clock())
    event = any_store.add_login_event(_event(domain.id, at=clock()))
    any_store.upsert_fingerprint(domain.id, "user-a", "fp-1", clock())
    any_store.put_classification(
        ClassificationRecord(
            id=generate_id(),
            login_event_id=event.id,
            user_token="user-a",
            domain_id=domain.id,
            created_at=clock(),
        )
    )
    assert any_store.counts() == {
        "domains": 1,
        "login_events": 1,
        "device_fingerprints": 1,
        "classification_records": 1,
    }


class CountingLock:
    """RLock that records how often it was entered."""

    def __init__(self):
        self._lock = threading.RLock()
        self.entered = 0

    def __enter__(self):
        self._lock.acquire()
        self.entered += 1
        return self

    def __exit__(self, *exc):
        self._lock.release()
        return False


def test_counts_reads_under_table_locks():
    store = InMemoryStore()
    names = ("_domains_lock", "_events_lock", "_fp_lock", "_class_lock")
    locks = {name: CountingLock() for name in names}
    for name, lock in locks.items():
        setattr(store, name, lock)
    store.counts()
    assert {name: lock.entered for name, lock in locks.items()} == dict.fromkeys(names, 1)
