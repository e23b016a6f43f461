from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class BillingStatus(str, Enum):
    """Billing status enumeration"""

    PENDING = "pending"
    COMPLETED = "completed"


class PaymentMode(str, Enum):
    AUTO_PAID = "Auto-Paid"
    CASH = "Cash"
    CARD = "Card"
    UPI = "UPI"


class BillingResponseSchema(BaseModel):
    """Schema for billing record response."""

    billing_id: str
    appointment_id: str
    patient_id: str
    patient_name: Optional[str] = None
    doctor: Optional[str] = None
    amount: Decimal
    billing_date: date
    status: BillingStatus
    payment_mode: Optional[str] = None
    created_by_name: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
