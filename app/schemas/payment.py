from enum import Enum

from pydantic import BaseModel, Field


class PaymentStatusEnum(str, Enum):
    success = "success"
    failed = "failed"
    pending = "pending"
    refunded = "refunded"


class ProcessPayment(BaseModel):
    plan_id: int = Field(..., gt=0)
    payment_gateway: str = Field("mock", max_length=50)
    # Placeholder for a real gateway callback; never trust this outside the mock flow.
    mock_success: bool = True


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatusEnum


class RefundRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)

