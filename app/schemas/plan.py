from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class PlanNameEnum(str, Enum):
    basic = "basic"
    premium = "premium"


class PlanBase(BaseModel):
    name: PlanNameEnum
    price: float = Field(..., gt=0)
    duration_in_days: int = Field(..., gt=0)
    features: list[str] = Field(default_factory=list)


class PlanCreate(PlanBase):
    pass


class PlanUpdate(BaseModel):
    price: float | None = Field(None, gt=0)
    duration_in_days: int | None = Field(None, gt=0)
    features: list[str] | None = None


class PlanResponse(PlanBase):
    id: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class SubscribeRequest(BaseModel):
    plan_id: int = Field(..., gt=0)


class ChoosePlanRequest(BaseModel):
    plan_name: PlanNameEnum
