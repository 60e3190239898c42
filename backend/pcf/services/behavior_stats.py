"""
Behavioral statistics over the login history of one user on one domain.

Every function is a read-only aggregation through RiskStore: calling it twice
with unchanged tables yields the same result. Windows are inclusive, an entry
exactly `window` old still counts.
"""
from datetime import datetime, timedelta
from typing import Optional

from pcf.schemas.stats import BehaviorStats, GeoStats, HistoryStats, IpStats, MultiFpStats, VelocityStats
from pcf.services.store import RiskStore

DEFAULT_VELOCITY_WINDOW_MINUTES = 10
DEFAULT_MULTI_ACCOUNT_WINDOW_MINUTES = 5


def _within(now: datetime, ts: Optional[datetime], window: timedelta) -> bool:
    if ts is None:
        return False
    return now - ts <= window


def history_stats(store: RiskStore, user_token: str, domain_id: int) -> HistoryStats:
    """Count archived classifications, how many were bots, and the mean reported trust."""
    total = 0
    bot_count = 0
    trust_sum = 0.0
    trust_count = 0
    for record in store.classifications_for(user_token, domain_id):
        total += 1
        if record.is_bot:
            bot_count += 1
        if record.trust_score is not None:
            trust_sum += record.trust_score
            trust_count += 1
    avg = trust_sum / trust_count if trust_count > 0 else None
    return HistoryStats(total=total, bot_count=bot_count, avg_trust_score=avg)


def velocity_stats(
    store: RiskStore,
    user_token: str,
    domain_id: int,
    now: datetime,
    window_minutes: int = DEFAULT_VELOCITY_WINDOW_MINUTES,
) -> VelocityStats:
    """Login attempts inside the trailing window ending at `now`."""
    window = timedelta(minutes=window_minutes)
    total = 0
    recent = 0
    for event in store.login_events_for(user_token, domain_id):
        total += 1
        if _within(now, event.created_at, window):
            recent += 1
    return VelocityStats(recent_count=recent, window_minutes=window_minutes, total_logins=total)


def ip_stats(store: RiskStore, user_token: str, domain_id: int, current_ip: Optional[str]) -> IpStats:
    total = 0
    same = 0
    seen = set()
    for event in store.login_events_for(user_token, domain_id):
        total += 1
        if event.login_ip:
            seen.add(event.login_ip)
        if current_ip and event.login_ip == current_ip:
            same += 1
    return IpStats(
        has_ip_history=total > 0,
        same_ip_ratio=(same / total) if total > 0 else None,
        distinct_ip_count=len(seen),
    )


def multi_account_stats(
    store: RiskStore,
    domain_id: int,
    safe_fp: Optional[str],
    now: datetime,
    window_minutes: int = DEFAULT_MULTI_ACCOUNT_WINDOW_MINUTES,
) -> MultiFpStats:
    """How many distinct accounts used this device fingerprint recently on the domain."""
    if not safe_fp:
        return MultiFpStats(has_fp=False, distinct_users=0, window_minutes=window_minutes)
    window = timedelta(minutes=window_minutes)
    records = store.fingerprints_for(domain_id, safe_fp)
    users = {r.user_token for r in records if _within(now, r.last_seen_at, window)}
    return MultiFpStats(has_fp=len(records) > 0, distinct_users=len(users), window_minutes=window_minutes)


def geo_stats(
    store: RiskStore,
    user_token: str,
    domain_id: int,
    current_event_id: Optional[str],
    current_country: Optional[str],
) -> GeoStats:
    """Compare the current country with countries of earlier logins (current event excluded)."""
    countries = set()
    for event in store.login_events_for(user_token, domain_id):
        if event.id == current_event_id:
            continue
        if event.country:
            countries.add(event.country)
    has_history = len(countries) > 0
    is_new = bool(current_country) and has_history and current_country not in countries
    return GeoStats(
        has_geo_history=has_history,
        is_new_country=is_new,
        distinct_country_count=len(countries),
        current_country=current_country,
    )


def collect_behavior_stats(
    store: RiskStore,
    *,
    user_token: str,
    domain_id: int,
    current_event_id: Optional[str],
    current_ip: Optional[str],
    current_country: Optional[str],
    safe_fp: Optional[str],
    now: datetime,
    velocity_window_minutes: int = DEFAULT_VELOCITY_WINDOW_MINUTES,
    multi_account_window_minutes: int = DEFAULT_MULTI_ACCOUNT_WINDOW_MINUTES,
) -> BehaviorStats:
    return BehaviorStats(
        history=history_stats(store, user_token, domain_id),
        velocity=velocity_stats(store, user_token, domain_id, now, velocity_window_minutes),
        ip=ip_stats(store, user_token, domain_id, current_ip),
        multi_fp=multi_account_stats(store, domain_id, safe_fp, now, multi_account_window_minutes),
        geo=geo_stats(store, user_token, domain_id, current_event_id, current_country),
    )
