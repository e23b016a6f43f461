import datetime as dt
import uuid
from decimal import Decimal
from typing import Optional
from sqlalchemy import TIMESTAMP, Date, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from app.db.base import Base
from app.schemas.billing_schemas import BillingStatus


class BillingRecord(Base):
    """Billing record; at most one per appointment."""

    __tablename__ = "billing_records"

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )
    billing_id: Mapped[str] = mapped_column(String(80), nullable=False, index=True)

    # Idempotence key
    appointment_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    patient_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    doctor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    billing_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=BillingStatus.PENDING.value, nullable=False, index=True
    )
    payment_mode: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    created_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<BillingRecord billing_id={self.billing_id} amount={self.amount}>"
