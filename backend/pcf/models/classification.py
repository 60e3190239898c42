from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey, Index, JSON
from pcf.models.domain import Base


class ClassificationRow(Base):
    __tablename__ = "classification_records"
    id = Column(String(64), primary_key=True)
    login_event_id = Column(String(64), ForeignKey("login_events.id"), unique=True, nullable=False)
    user_token = Column(String, nullable=False)
    domain_id = Column(Integer, ForeignKey("domains.id"), nullable=False)
    safe_fp = Column(String, nullable=True)
    security_signal = Column(JSON, nullable=False, default=dict)
    local_classification = Column(JSON, nullable=True)
    is_bot = Column(Boolean, default=False, nullable=False)
    trust_score = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_classification_records_domain_user", "domain_id", "user_token"),
    )
