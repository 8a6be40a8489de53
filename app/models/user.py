from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base

ROLE_ADMIN = "admin"
ROLE_TRAINER = "trainer"
ROLE_MEMBER = "member"
ROLES = (ROLE_ADMIN, ROLE_TRAINER, ROLE_MEMBER)

PLAN_BASIC = "basic"
PLAN_PREMIUM = "premium"
PLAN_NAMES = (PLAN_BASIC, PLAN_PREMIUM)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Registration fields
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(32), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    role = Column(String(20), nullable=False, default=ROLE_MEMBER, index=True)
    is_verified = Column(Boolean, nullable=False, default=False)

    # Subscription
    subscription_plan = Column(String(20), nullable=True)
    subscription_valid_till = Column(DateTime, nullable=True)

    # Set only on members; mirrored by TrainerProfile.members_assigned
    trainer_assigned_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    trainer = relationship("User", remote_side=[id], foreign_keys=[trainer_assigned_id])
