from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, computed_field, field_validator


class PatientStatus(str, Enum):
    """Patient status enumeration"""

    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ============= Patient Schemas =============
class PatientBaseSchema(BaseModel):
    """Base schema for patient."""

    name: str = Field(..., min_length=1, max_length=255)
    patient_type: Optional[str] = Field(
        None, max_length=50, description="Free-form category, e.g. DYES, VIP, PAID"
    )
    total_sessions_required: Optional[int] = Field(None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @field_validator("patient_type")
    @classmethod
    def validate_patient_type(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None


class PatientCreateSchema(PatientBaseSchema):
    """Schema for registering a patient."""

    patient_id: str = Field(
        ..., min_length=1, max_length=64, description="Stable external identifier"
    )
    status: PatientStatus = PatientStatus.PENDING

    @field_validator("patient_id")
    @classmethod
    def validate_patient_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Patient ID cannot be blank")
        return v


class PatientUpdateSchema(BaseModel):
    """Schema for an admin edit of a patient. All fields optional."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    patient_type: Optional[str] = Field(None, max_length=50)
    status: Optional[PatientStatus] = None
    total_sessions_required: Optional[int] = Field(None, ge=0)
    remaining_sessions: Optional[int] = Field(None, ge=0)


class PatientResponseSchema(BaseModel):
    """Schema for patient response."""

    patient_id: str
    name: str
    patient_type: Optional[str] = None
    status: PatientStatus
    total_sessions_required: Optional[int] = None
    remaining_sessions: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def effective_remaining_sessions(self) -> Optional[int]:
        """Remaining sessions as shown to staff: the stored value, else the full total."""
        if self.remaining_sessions is not None:
            return self.remaining_sessions
        return self.total_sessions_required


class PatientSyncSchema(BaseModel):
    """Result of re-syncing one patient's ledger and status."""

    patient_id: str
    remaining_sessions: Optional[int] = None
    remaining_updated: bool = False
    status: PatientStatus
    status_completed: bool = False


class SyncReportSchema(BaseModel):
    """Summary of a full patients x appointments rescan."""

    patients_scanned: int = 0
    remaining_updated: int = 0
    statuses_completed: int = 0
    failures: dict[str, str] = Field(default_factory=dict)
