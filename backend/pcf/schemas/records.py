from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from pcf.schemas.pcf import LocalClassification


class Domain(BaseModel):
    id: int
    name: str
    salt: str
    created_at: datetime


class LoginEvent(BaseModel):
    id: str
    user_token: str
    domain_id: int
    login_ip: Optional[str] = None
    # Derived once from login_ip when the event is created
    country: Optional[str] = None
    created_at: datetime


class DeviceFingerprint(BaseModel):
    id: str
    domain_id: int
    user_token: str
    safe_fp: str
    first_seen_at: datetime
    last_seen_at: datetime


class ClassificationRecord(BaseModel):
    id: str
    login_event_id: str
    user_token: str
    domain_id: int
    safe_fp: Optional[str] = None
    security_signal: Dict[str, Any] = Field(default_factory=dict)
    local_classification: Optional[LocalClassification] = None
    is_bot: bool = False
    trust_score: Optional[float] = None
    created_at: datetime
