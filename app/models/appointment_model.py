import datetime as dt
import uuid
from decimal import Decimal
from typing import Optional
from sqlalchemy import TIMESTAMP, Date, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, validates
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from app.db.base import Base
from app.schemas.appointment_schemas import AppointmentStatus


class Appointment(Base):
    """
    A booked treatment session.

    ``patient_id`` refers to ``Patient.patient_id`` but is not enforced as a
    foreign key, matching the document store this ledger was designed for.
    """

    __tablename__ = "appointments"

    __table_args__ = (
        Index("idx_appointment_patient_status", "patient_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )
    appointment_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=AppointmentStatus.PENDING.value,
        nullable=False,
        index=True,
    )

    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    doctor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Stamped when auto-billing creates a record for this appointment
    billing_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    billing_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)

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

    @validates("status")
    def validate_status(self, key, value):
        valid_values = [e.value for e in AppointmentStatus]
        value = value.value if isinstance(value, AppointmentStatus) else value
        if value not in valid_values:
            raise ValueError(
                f"Invalid appointment status: {value}. "
                f"Must be one of: {', '.join(valid_values)}"
            )
        return value

    def __repr__(self) -> str:
        return (
            f"<Appointment appointment_id={self.appointment_id} "
            f"patient_id={self.patient_id} status={self.status} date={self.date}>"
        )
