from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from pcf.models.domain import Base


class LoginEventRow(Base):
    __tablename__ = "login_events"
    id = Column(String(64), primary_key=True)
    user_token = Column(String, nullable=False)
    domain_id = Column(Integer, ForeignKey("domains.id"), nullable=False)
    login_ip = Column(String, nullable=True)
    country = Column(String(8), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_login_events_domain_user", "domain_id", "user_token"),
    )
