import logging
import os
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from pcf.schemas.pcf import LocalClassification
from pcf.schemas.stats import Adjustment, BehaviorStats, RiskAssessment

logger = logging.getLogger(__name__)


class ScoringRules(BaseModel):
    """Thresholds and deltas for login risk. Defaults are the canonical ruleset."""

    # Base score
    neutral_base: float = 0.5
    trust_scale: float = 100.0
    bot_floor: float = 0.8

    # Historical bot ratio
    history_min_total: int = 3
    history_bot_ratio: float = 0.5
    history_bot_delta: float = 0.15
    history_trust_threshold: float = 80.0
    history_trust_delta: float = 0.15

    # Velocity
    velocity_threshold: int = 5
    velocity_delta: float = 0.10

    # IP consistency
    same_ip_ratio: float = 0.7
    same_ip_delta: float = 0.05

    # Device shared across accounts
    multi_account_threshold: int = 3
    multi_account_delta: float = 0.20

    # Geo novelty
    geo_novelty_delta: float = 0.15

    min_score: float = 0.0
    max_score: float = 1.0


default_rules = ScoringRules()


def load_rules_from_env(prefix: str = "PCF_RISK_") -> ScoringRules:
    """Overlay PCF_RISK_<FIELD> environment variables on the default rules."""
    overrides = {}
    for name in ScoringRules.model_fields:
        raw = os.environ.get(prefix + name.upper())
        if raw is None or raw.strip() == "":
            continue
        overrides[name] = raw.strip()
    if not overrides:
        return default_rules
    try:
        rules = ScoringRules(**overrides)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid risk rule overrides {sorted(overrides)}; using defaults: {e}")
        return default_rules
    logger.info(f"Risk rules overridden from environment: {sorted(overrides)}")
    return rules


def base_score(local_classification: Optional[LocalClassification], rules: ScoringRules = default_rules) -> float:
    """Map trust 0..trust_scale inversely onto risk 1..0; unknown trust is neutral."""
    trust = local_classification.trust_score if local_classification else None
    if trust is None:
        return rules.neutral_base
    return 1 - trust / rules.trust_scale


def assess_risk(
    local_classification: Optional[LocalClassification],
    stats: Optional[BehaviorStats] = None,
    rules: Optional[ScoringRules] = None,
) -> RiskAssessment:
    """
    Combine the local classification with behavioral statistics.
    Rules, in order:
    - base from trust_score (or neutral_base when absent)
    - bot verdict raises the score to at least bot_floor
    - history (only with >= history_min_total records): bot ratio adds, high average trust subtracts;
      the two are independent
    - velocity burst adds
    - consistent source IP subtracts
    - fingerprint shared by several accounts adds
    - login from a country never seen before adds
    - clamp to [min_score, max_score]
    Pure function: the same inputs always give the same result.
    """
    rules = rules or default_rules
    stats = stats or BehaviorStats()
    adjustments: List[Adjustment] = []

    score = base_score(local_classification, rules)
    adjustments.append(Adjustment(rule="base", delta=score, score_after=score))

    def apply(rule: str, delta: float) -> None:
        nonlocal score
        score += delta
        adjustments.append(Adjustment(rule=rule, delta=delta, score_after=score))

    is_bot = bool(local_classification and local_classification.is_bot)
    if is_bot and score < rules.bot_floor:
        delta = rules.bot_floor - score
        score = rules.bot_floor
        adjustments.append(Adjustment(rule="bot_floor", delta=delta, score_after=score))

    history = stats.history
    if history.total >= rules.history_min_total:
        if history.bot_count / history.total >= rules.history_bot_ratio:
            apply("history_bot_ratio", rules.history_bot_delta)
        if history.avg_trust_score is not None and history.avg_trust_score >= rules.history_trust_threshold:
            apply("history_high_trust", -rules.history_trust_delta)

    if stats.velocity.recent_count >= rules.velocity_threshold:
        apply("velocity_burst", rules.velocity_delta)

    ip = stats.ip
    if ip.has_ip_history and ip.same_ip_ratio is not None and ip.same_ip_ratio >= rules.same_ip_ratio:
        apply("consistent_ip", -rules.same_ip_delta)

    if stats.multi_fp.has_fp and stats.multi_fp.distinct_users >= rules.multi_account_threshold:
        apply("shared_device", rules.multi_account_delta)

    if stats.geo.is_new_country:
        apply("new_country", rules.geo_novelty_delta)

    clamped = min(max(score, rules.min_score), rules.max_score)
    if clamped != score:
        adjustments.append(Adjustment(rule="clamp", delta=clamped - score, score_after=clamped))

    return RiskAssessment(risk_score=clamped, adjustments=adjustments)


def score(
    local_classification: Optional[LocalClassification],
    stats: Optional[BehaviorStats] = None,
    rules: Optional[ScoringRules] = None,
) -> float:
    return assess_risk(local_classification, stats, rules).risk_score
