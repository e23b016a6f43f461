from datetime import date
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class WorkflowStep(str, Enum):
    """Steps of the session completion workflow, in execution order."""

    LOCATE_APPOINTMENT = "locate_appointment"
    COMPLETE_APPOINTMENT = "complete_appointment"
    RECORD_SESSION_USAGE = "record_session_usage"
    CREATE_BILLING = "create_billing"
    SWEEP_PATIENT_STATUS = "sweep_patient_status"


RETRYABLE_STEPS = (
    WorkflowStep.COMPLETE_APPOINTMENT,
    WorkflowStep.RECORD_SESSION_USAGE,
    WorkflowStep.CREATE_BILLING,
    WorkflowStep.SWEEP_PATIENT_STATUS,
)


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    NOT_APPLICABLE = "not_applicable"
    FAILED = "failed"


class StepOutcome(BaseModel):
    """Outcome of one workflow step."""

    step: WorkflowStep
    status: StepStatus
    detail: Optional[str] = None
    error: Optional[str] = None


class LedgerUpdateSchema(BaseModel):
    """Result of recomputing a patient's remaining sessions."""

    applicable: bool
    total_sessions_required: Optional[int] = None
    completed_count: Optional[int] = None
    remaining_sessions: Optional[int] = None
    status_completed: bool = False


class CompletionResultSchema(BaseModel):
    """Per-step record of one completion workflow run."""

    patient_id: str
    appointment_id: Optional[str] = None
    steps: List[StepOutcome] = Field(default_factory=list)
    ledger: Optional[LedgerUpdateSchema] = None

    @property
    def succeeded(self) -> bool:
        return all(s.status != StepStatus.FAILED for s in self.steps)

    @property
    def failed_steps(self) -> List[WorkflowStep]:
        return [s.step for s in self.steps if s.status == StepStatus.FAILED]

    def outcome_for(self, step: WorkflowStep) -> Optional[StepOutcome]:
        for outcome in self.steps:
            if outcome.step == step:
                return outcome
        return None


class RetryStepSchema(BaseModel):
    """Request to re-run one workflow step for an appointment."""

    step: WorkflowStep
    appointment_id: str = Field(..., min_length=1, max_length=64)
    performed_by: Optional[str] = Field(None, max_length=255)


class CompleteSessionSchema(BaseModel):
    """Request to complete the patient's current session without a report save."""

    report_date: Optional[date] = None
    performed_by: Optional[str] = Field(None, max_length=255)
