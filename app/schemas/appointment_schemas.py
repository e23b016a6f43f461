import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration"""

    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


OPEN_APPOINTMENT_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.ONGOING)
TERMINAL_APPOINTMENT_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)


class AppointmentCreateSchema(BaseModel):
    """Schema for booking an appointment."""

    appointment_id: str = Field(..., min_length=1, max_length=64)
    patient_id: str = Field(..., min_length=1, max_length=64)
    date: date
    time: Optional[str] = Field(None, description="Start time as HH:MM")
    doctor: Optional[str] = Field(None, max_length=255)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not re.match(r"^([01]\d|2[0-3]):[0-5]\d$", v):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return v


class AppointmentStatusUpdateSchema(BaseModel):
    """Schema for an admin status change."""

    status: AppointmentStatus
    performed_by: Optional[str] = Field(None, max_length=255)


class AppointmentResponseSchema(BaseModel):
    """Schema for appointment response."""

    appointment_id: str
    patient_id: str
    status: AppointmentStatus
    date: date
    time: Optional[str] = None
    doctor: Optional[str] = None
    billing_amount: Optional[Decimal] = None
    billing_date: Optional[date] = None
    created_at: datetime

    model_config = {"from_attributes": True}
