from typing import List, Optional

from pydantic import BaseModel, Field


class HistoryStats(BaseModel):
    total: int = 0
    bot_count: int = 0
    avg_trust_score: Optional[float] = None


class VelocityStats(BaseModel):
    recent_count: int = 0
    window_minutes: int = 10
    total_logins: int = 0


class IpStats(BaseModel):
    has_ip_history: bool = False
    same_ip_ratio: Optional[float] = None
    distinct_ip_count: int = 0


class MultiFpStats(BaseModel):
    has_fp: bool = False
    distinct_users: int = 0
    window_minutes: int = 5


class GeoStats(BaseModel):
    has_geo_history: bool = False
    is_new_country: bool = False
    distinct_country_count: int = 0
    current_country: Optional[str] = None


class BehaviorStats(BaseModel):
    """All behavioral statistics for one login, as consumed by the risk engine"""

    history: HistoryStats = Field(default_factory=HistoryStats)
    velocity: VelocityStats = Field(default_factory=VelocityStats)
    ip: IpStats = Field(default_factory=IpStats)
    multi_fp: MultiFpStats = Field(default_factory=MultiFpStats)
    geo: GeoStats = Field(default_factory=GeoStats)


class Adjustment(BaseModel):
    rule: str
    delta: float
    score_after: float


class RiskAssessment(BaseModel):
    risk_score: float
    adjustments: List[Adjustment] = Field(default_factory=list)
