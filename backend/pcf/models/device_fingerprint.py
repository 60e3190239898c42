from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint
from pcf.models.domain import Base


class DeviceFingerprintRow(Base):
    __tablename__ = "device_fingerprints"
    id = Column(String(64), primary_key=True)
    domain_id = Column(Integer, ForeignKey("domains.id"), nullable=False)
    user_token = Column(String, nullable=False)
    safe_fp = Column(String, nullable=False)
    first_seen_at = Column(DateTime(timezone=True), nullable=False)
    last_seen_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("domain_id", "user_token", "safe_fp", name="uq_device_fingerprint_key"),
        Index("ix_device_fingerprints_domain_fp", "domain_id", "safe_fp"),
    )
