from datetime import datetime, timedelta

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from app.database import Base

OTP_TTL_MINUTES = 10
OTP_MAX_ATTEMPTS = 3


def _default_expiry() -> datetime:
    return datetime.utcnow() + timedelta(minutes=OTP_TTL_MINUTES)


class OTP(Base):
    __tablename__ = "otps"
    __table_args__ = (Index("ix_otps_email_expires_at", "email", "expires_at"),)

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False)
    otp = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False, default=_default_expiry)
    verified = Column(Boolean, nullable=False, default=False)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
