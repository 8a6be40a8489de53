from sqlalchemy import JSON, Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base


class MemberProfile(Base):
    __tablename__ = "member_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    age = Column(Integer, nullable=True)
    weight = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    goal = Column(String(120), nullable=True)  # e.g. "weight loss", "muscle gain"
    preferred_time_slots = Column(JSON, nullable=False, default=list)  # [{day, from, to}]

    user = relationship("User")


class TrainerProfile(Base):
    __tablename__ = "trainer_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    expertise = Column(JSON, nullable=False, default=list)
    available_time_slots = Column(JSON, nullable=False, default=list)  # [{day, from, to}]
    # Member user ids; mirrors User.trainer_assigned_id. Always reassign, never mutate in place.
    members_assigned = Column(JSON, nullable=False, default=list)

    user = relationship("User")
