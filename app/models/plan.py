from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String

from app.database import Base


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(20), unique=True, nullable=False)  # basic | premium
    price = Column(Float, nullable=False)
    duration_in_days = Column(Integer, nullable=False)
    features = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
