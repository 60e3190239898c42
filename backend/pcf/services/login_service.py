"""
Login evaluation and fingerprint report handling.

Each call runs its read-aggregate-score-write sequence to completion; the
only outbound I/O (the notification) is returned to the caller for
dispatch after the response.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, NamedTuple, Optional

from pcf.config import Settings
from pcf.errors import InvalidInput, UnknownLoginEvent, UpstreamLookupFailure
from pcf.schemas.pcf import (
    EvaluateLoginResponse,
    LocalClassification,
    NotificationOut,
    ReportFingerprintResponse,
    SecuritySignal,
)
from pcf.schemas.records import ClassificationRecord, LoginEvent
from pcf.schemas.stats import BehaviorStats, RiskAssessment
from pcf.services.behavior_stats import collect_behavior_stats
from pcf.services.risk_engine import ScoringRules, assess_risk, default_rules
from pcf.services.security_signal import analyze_security_signal
from pcf.services.store import RiskStore, generate_id

logger = logging.getLogger(__name__)

CountryLookup = Callable[[Optional[str]], Optional[str]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _no_country(ip: Optional[str]) -> Optional[str]:
    return None


class ReportOutcome(NamedTuple):
    response: ReportFingerprintResponse
    notification: NotificationOut
    stats: BehaviorStats
    assessment: RiskAssessment


class LoginRiskService:
    def __init__(
        self,
        store: RiskStore,
        settings: Settings,
        rules: Optional[ScoringRules] = None,
        country_lookup: Optional[CountryLookup] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.settings = settings
        self.rules = rules or default_rules
        self.country_lookup = country_lookup or _no_country
        self.clock = clock

    def _resolve_country(self, ip: Optional[str]) -> Optional[str]:
        if not ip:
            return None
        try:
            return self.country_lookup(ip)
        except UpstreamLookupFailure as e:
            logger.warning(f"Country lookup failed, storing null: {e.message}")
        except Exception as e:
            logger.warning(f"Country lookup for {ip} raised {e.__class__.__name__}: {e}; storing null")
        return None

    def evaluate_login(
        self,
        user_token: Optional[str],
        domain: Optional[str],
        login_ip: Optional[str] = None,
    ) -> EvaluateLoginResponse:
        if not user_token or not domain:
            raise InvalidInput("user_token and domain are required")

        now = self.clock()
        domain_record, created = self.store.get_or_create_domain(domain, now)
        if created:
            logger.info(f"New domain registered: id={domain_record.id} name={domain_record.name}")

        event = LoginEvent(
            id=generate_id(),
            user_token=user_token,
            domain_id=domain_record.id,
            login_ip=login_ip or None,
            country=self._resolve_country(login_ip),
            created_at=now,
        )
        self.store.add_login_event(event)
        logger.info(f"New login event {event.id} domain_id={event.domain_id} country={event.country}")

        return EvaluateLoginResponse(
            login_event_id=event.id,
            domain=domain_record.name,
            domain_salt=domain_record.salt,
            run_sandbox=self.settings.run_sandbox,
        )

    def report_fingerprint(
        self,
        login_event_id: Optional[str],
        safe_fp: Optional[str] = None,
        security_signal: Optional[SecuritySignal] = None,
        local_classification: Optional[LocalClassification] = None,
        domain: Optional[str] = None,
    ) -> ReportOutcome:
        if not login_event_id:
            raise InvalidInput("login_event_id is required")

        event = self.store.get_login_event(login_event_id)
        if event is None:
            raise UnknownLoginEvent("unknown login_event_id", details={"login_event_id": login_event_id})

        domain_record = self.store.get_domain(event.domain_id)
        domain_name = domain_record.name if domain_record else ""
        if domain and domain != domain_name:
            # The event's domain stays authoritative
            logger.warning(
                f"Domain mismatch for login event {event.id}: report={domain!r} event={domain_name!r}"
            )

        # Everything that can reject the input runs before the first write
        flags = analyze_security_signal(security_signal)
        signal_data = security_signal.model_dump(exclude_none=True) if security_signal else {}

        now = self.clock()
        record = ClassificationRecord(
            id=generate_id(),
            login_event_id=event.id,
            user_token=event.user_token,
            domain_id=event.domain_id,
            safe_fp=safe_fp or None,
            security_signal=signal_data,
            local_classification=local_classification,
            is_bot=bool(local_classification and local_classification.is_bot),
            trust_score=local_classification.trust_score if local_classification else None,
            created_at=now,
        )

        if safe_fp:
            self.store.upsert_fingerprint(event.domain_id, event.user_token, safe_fp, now)
        self.store.put_classification(record)

        stats = collect_behavior_stats(
            self.store,
            user_token=event.user_token,
            domain_id=event.domain_id,
            current_event_id=event.id,
            current_ip=event.login_ip,
            current_country=event.country,
            safe_fp=safe_fp,
            now=now,
            velocity_window_minutes=self.settings.velocity_window_minutes,
            multi_account_window_minutes=self.settings.multi_account_window_minutes,
        )
        assessment = assess_risk(local_classification, stats, self.rules)

        notification = NotificationOut(
            login_event_id=event.id,
            user_token=event.user_token,
            domain=domain_name,
            risk_score=assessment.risk_score,
            security_flags=flags,
            debug={
                "local_classification": local_classification.model_dump() if local_classification else None,
                **stats.model_dump(),
                "adjustments": [a.model_dump() for a in assessment.adjustments],
            },
        )
        response = ReportFingerprintResponse(accepted=True, risk_score=assessment.risk_score)
        return ReportOutcome(response=response, notification=notification, stats=stats, assessment=assessment)
