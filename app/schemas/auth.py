from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.user import RoleEnum


class RegisterInitiate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(..., min_length=5, max_length=32)
    password: str = Field(..., min_length=6)
    role: RoleEnum = RoleEnum.member

    @field_validator("name", "phone")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("field cannot be empty")
        return value

    @field_validator("role")
    @classmethod
    def self_service_role(cls, value: RoleEnum) -> RoleEnum:
        if value == RoleEnum.admin:
            raise ValueError("admin accounts cannot self-register")
        return value


class RegisterVerify(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=6)
    temp_data: str = Field(..., min_length=1)


class ResendOtp(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=120)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
