from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class LocalClassification(BaseModel):
    """Client-computed bot/trust judgement. Trusted as input, not re-verified."""

    is_bot: bool = False
    trust_score: Optional[float] = Field(None, ge=0, le=100)


class SecuritySignal(BaseModel):
    """Low-resolution environment descriptor sent by the extension."""

    model_config = ConfigDict(extra="allow")

    browser_major: Optional[Union[int, float, str]] = Field(None, description="e.g., 119 or 'Chrome 119'")
    os_major: Optional[str] = Field(None, description="e.g., Windows 10, macOS 13.4")
    # Non-string versions are accepted and flagged as outdated
    security_version: Optional[Any] = Field(None, description="e.g., v1.0.0")


class EvaluateLoginRequest(BaseModel):
    user_token: Optional[str] = None
    domain: Optional[str] = None
    login_ip: Optional[str] = None


class EvaluateLoginResponse(BaseModel):
    login_event_id: str
    domain: str
    domain_salt: str
    run_sandbox: bool = True


class ReportFingerprintRequest(BaseModel):
    login_event_id: Optional[str] = None
    domain: Optional[str] = None
    safe_fp: Optional[str] = None
    security_signal: Optional[SecuritySignal] = None
    local_classification: Optional[LocalClassification] = None


class ReportFingerprintResponse(BaseModel):
    accepted: bool = True
    risk_score: float
    message: str = "sandbox report stored"


class NotificationOut(BaseModel):
    login_event_id: str
    user_token: str
    domain: str
    risk_score: float
    security_flags: Dict[str, bool] = Field(default_factory=dict)
    debug: Dict[str, Any] = Field(default_factory=dict)


class RecentNotificationsOut(BaseModel):
    ok: bool = True
    notifications: List[NotificationOut] = Field(default_factory=list)
