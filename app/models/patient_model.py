import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import (
    JSON,
    TIMESTAMP,
    CheckConstraint,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, validates
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from app.db.base import Base
from app.schemas.patient_schemas import PatientStatus


class Patient(Base):
    """
    Patient record with its live clinical report and session counters.

    ``remaining_sessions`` is derived from ``total_sessions_required`` and the
    number of completed appointments, and is persisted for fast reads. It is
    only written by the session ledger or an explicit admin edit.
    """

    __tablename__ = "patients"

    __table_args__ = (
        CheckConstraint(
            "total_sessions_required IS NULL OR total_sessions_required >= 0",
            name="non_negative_total_sessions",
        ),
        CheckConstraint(
            "remaining_sessions IS NULL OR remaining_sessions >= 0",
            name="non_negative_remaining_sessions",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )

    # Stable external identifier shared with appointments and report versions
    patient_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Free-form category; DYES triggers auto-billing
    patient_type: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, index=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=PatientStatus.PENDING.value,
        nullable=False,
        index=True,
    )

    total_sessions_required: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    remaining_sessions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    report_data: Mapped[Dict[str, Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )

    # Optimistic concurrency counter, bumped on every UPDATE
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": row_version}

    @validates("status")
    def validate_status(self, key, value):
        valid_values = [e.value for e in PatientStatus]
        value = value.value if isinstance(value, PatientStatus) else value
        if value not in valid_values:
            raise ValueError(
                f"Invalid patient status: {value}. "
                f"Must be one of: {', '.join(valid_values)}"
            )
        return value

    @validates("total_sessions_required", "remaining_sessions")
    def validate_session_counts(self, key, value):
        if value is not None and value < 0:
            raise ValueError(f"{key} cannot be negative")
        return value

    @property
    def is_completed(self) -> bool:
        return self.status == PatientStatus.COMPLETED.value

    def __repr__(self) -> str:
        return (
            f"<Patient patient_id={self.patient_id} status={self.status} "
            f"remaining={self.remaining_sessions}/{self.total_sessions_required}>"
        )
