import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional
from pydantic import BaseModel, Field

from app.schemas.workflow_schemas import CompletionResultSchema, LedgerUpdateSchema


# ============= Report Content =============
class ReportContentSchema(BaseModel):
    """
    The clinical report's semantic field set.

    Only these fields are stored as live report content, captured in
    snapshots and restored from history. Every field is optional; a report
    with none of them filled in is considered empty.
    """

    # Consultation
    date_of_consultation: Optional[date] = None
    referred_by: Optional[str] = None
    chief_complaint: Optional[str] = None
    complaints: Optional[str] = None

    # History
    present_history: Optional[str] = None
    past_history: Optional[str] = None
    surgical_history: Optional[str] = None
    med_xray: Optional[bool] = None
    med_mri: Optional[bool] = None
    med_ct: Optional[bool] = None
    med_report: Optional[bool] = None

    # Pain assessment
    site_side: Optional[str] = None
    onset: Optional[str] = None
    duration: Optional[str] = None
    nature_of_injury: Optional[str] = None
    pain_type: Optional[str] = None
    vas_scale: Optional[int] = Field(None, ge=0, le=10)
    aggravating_factor: Optional[str] = None
    relieving_factor: Optional[str] = None

    # Examination
    rom: Optional[Dict[str, Any]] = None
    mmt: Optional[Dict[str, Any]] = None
    special_test: Optional[str] = None

    # Diagnosis
    clinical_diagnosis: Optional[str] = None
    differential_diagnosis: Optional[str] = None
    final_diagnosis: Optional[str] = None

    # Management
    treatment_plan: Optional[List[Dict[str, Any]]] = None
    treatment_provided: Optional[str] = None
    progress_notes: Optional[str] = None
    follow_up_visits: Optional[List[Dict[str, Any]]] = None
    short_term_goals: Optional[str] = None
    long_term_goals: Optional[str] = None
    rehab_protocol: Optional[str] = None
    advice: Optional[str] = None
    recommendations: Optional[str] = None

    # Sign-off
    physio_name: Optional[str] = None
    physio_id: Optional[str] = None
    next_follow_up_date: Optional[date] = None
    next_follow_up_time: Optional[str] = None


REPORT_FIELDS = tuple(ReportContentSchema.model_fields)


def _is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    # 0 and False are answers, not blanks
    return True


def has_report_content(data: Optional[Mapping[str, Any]]) -> bool:
    """True if at least one declared report field holds a meaningful value."""
    if not data:
        return False
    return any(_is_filled(data.get(field)) for field in REPORT_FIELDS)


def extract_report_fields(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Restrict a stored document to the declared report fields, dropping unset ones."""
    if not data:
        return {}
    return {
        field: data[field]
        for field in REPORT_FIELDS
        if field in data and data[field] is not None
    }


def dump_report_content(content: ReportContentSchema) -> Dict[str, Any]:
    """JSON-safe dict of the filled-in fields of a report."""
    return content.model_dump(mode="json", exclude_none=True)


# ============= Save Report =============
class ReportSaveSchema(BaseModel):
    """Schema for saving a patient's report."""

    content: ReportContentSchema
    created_by: str = Field("Unknown", max_length=255)
    session_completed: bool = False
    report_date: Optional[date] = Field(
        None,
        description="Date of the appointment to complete; defaults to the consultation date",
    )
    total_sessions_required: Optional[int] = Field(None, ge=0)


class SaveReportResultSchema(BaseModel):
    """Result of a report save."""

    patient_id: str
    snapshot_version: Optional[int] = None
    ledger: Optional[LedgerUpdateSchema] = None
    completion: Optional[CompletionResultSchema] = None


# ============= Report Versions =============
class ReportVersionResponseSchema(BaseModel):
    """One entry in a patient's report history."""

    id: uuid.UUID
    patient_id: str
    version: int
    created_at: datetime
    created_by: str
    restored_from: Optional[int] = None
    report_data: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class ReportVersionDetailSchema(BaseModel):
    """A version's snapshot merged over the patient's current report, for read-only viewing."""

    version: ReportVersionResponseSchema
    patient_name: str
    merged_report: Dict[str, Any]


class RestoreVersionSchema(BaseModel):
    performed_by: str = Field("Unknown", max_length=255)


class RestoreResultSchema(BaseModel):
    """Result of restoring a version into the live report."""

    patient_id: str
    restored_version: int
    preserved_as_version: Optional[int] = None
    report_data: Dict[str, Any]
    versions: List[ReportVersionResponseSchema]


class DeleteVersionResultSchema(BaseModel):
    """Result of deleting a version. ``renumbered`` is False when renumbering failed and needs a retry."""

    patient_id: str
    deleted_version: int
    renumbered: bool
    versions: List[ReportVersionResponseSchema]


class RenumberResultSchema(BaseModel):
    patient_id: str
    total_versions: int
    updated: int
