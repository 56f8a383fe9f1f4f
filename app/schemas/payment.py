from pydantic import BaseModel, Field

from app.models.enums import PaymentStatus


class PaymentCreate(BaseModel):
    booking_id: int


class PaymentCreated(BaseModel):
    payment_url: str
    token: str
    order_id: str


class CheckStatusRequest(BaseModel):
    booking_ref: str = Field(min_length=1)


class CancelFailedRequest(BaseModel):
    booking_ref: str = Field(min_length=1)
    status_code: str | None = None
    reason: str | None = None


class ReconcileResult(BaseModel):
    booking_ref: str
    status: PaymentStatus
    message: str
    already_processed: bool = False
