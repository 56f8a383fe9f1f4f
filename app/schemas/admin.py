from pydantic import BaseModel, EmailStr
from datetime import datetime

from app.models.enums import NotificationType


class AdminBase(BaseModel):
    name: str
    email: EmailStr

    class Config:
        from_attributes = True


class AdminCreate(AdminBase):
    password: str


class AdminLogin(BaseModel):
    email: EmailStr
    password: str


class AdminOut(AdminBase):
    id: int


class NotificationOut(BaseModel):
    id: int
    booking_id: int | None = None
    type: NotificationType
    title: str
    message: str
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
