import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import JSON, TIMESTAMP, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from app.db.base import Base


class ReportVersion(Base):
    """
    Immutable snapshot of a patient's report content.

    For a given ``patient_id`` the ``version`` values form the sequence
    1..N. Deleting a version triggers renumbering of the rest; the snapshot
    itself is never edited. The (patient_id, version) index is deliberately
    not unique: racing writers can produce duplicates that renumbering later
    resolves.
    """

    __tablename__ = "report_versions"

    __table_args__ = (
        Index("idx_report_version_patient_version", "patient_id", "version"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    patient_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    report_data: Mapped[Dict[str, Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )

    created_by: Mapped[str] = mapped_column(
        String(255), default="Unknown", nullable=False
    )
    # Version number this snapshot was taken from when it preserves a pre-restore state
    restored_from: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ReportVersion patient_id={self.patient_id} version={self.version}>"
