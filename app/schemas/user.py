from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, field_validator


class RoleEnum(str, Enum):
    admin = "admin"
    trainer = "trainer"
    member = "member"


class TimeSlot(BaseModel):
    day: str = Field(..., min_length=1, max_length=20)  # Monday, Tuesday...
    from_: str = Field(..., alias="from", min_length=1, max_length=5)  # "09:00"
    to: str = Field(..., min_length=1, max_length=5)  # "11:00"

    model_config = {"populate_by_name": True}

    @field_validator("from_", "to")
    @classmethod
    def pad_time(cls, value: str) -> str:
        return value.strip().rjust(5, "0")

    def as_document(self) -> dict:
        return {"day": self.day, "from": self.from_, "to": self.to}


class UserResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: str
    role: str
    is_verified: bool
    subscription_plan: str | None
    subscription_valid_till: datetime | None
    trainer_assigned_id: int | None
    last_login_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=120)
    phone: str | None = Field(None, min_length=5, max_length=32)
    # member fields
    age: int | None = Field(None, gt=0, lt=130)
    weight: float | None = Field(None, gt=0)
    height: float | None = Field(None, gt=0)
    goal: str | None = Field(None, max_length=120)
    preferred_time_slots: list[TimeSlot] | None = None
    # trainer fields
    expertise: list[str] | None = None
    available_time_slots: list[TimeSlot] | None = None


class MemberProfileUpdate(BaseModel):
    age: int | None = Field(None, gt=0, lt=130)
    weight: float | None = Field(None, gt=0)
    height: float | None = Field(None, gt=0)
    goal: str | None = Field(None, max_length=120)
    preferred_time_slots: list[TimeSlot] | None = None


class TrainerProfileUpdate(BaseModel):
    expertise: list[str] | None = None
    available_time_slots: list[TimeSlot] | None = None


class TimeSlotSelection(BaseModel):
    preferred_time_slots: list[TimeSlot]


class ChangePassword(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class VerifyUserRequest(BaseModel):
    is_verified: bool


class AssignTrainerRequest(BaseModel):
    member_id: int = Field(..., gt=0)
    trainer_id: int = Field(..., gt=0)


class UnassignTrainerRequest(BaseModel):
    member_id: int = Field(..., gt=0)


class TrainerChangeRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)
