"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt

from .enums import (
    TicketStatus, Priority, StepStatus, ActionType, SlaUnit, SlaOutcome, StepStatusSource
)
from ..utils.time import ensure_utc


# Datetimes round-trip through MongoDB as naive UTC
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


# ============================================================================
# SLA
# ============================================================================

class SlaQuantity(BaseModel):
    """An expected or actual duration: value + unit (hours or working days)"""
    model_config = ConfigDict(extra="forbid", frozen=True)

    value: NonNegativeInt = Field(..., description="Amount of the unit")
    unit: SlaUnit = Field(default=SlaUnit.DAYS, description="hours or (working) days")


# ============================================================================
# Catalog (read-only from the engine's perspective)
# ============================================================================

class TicketType(BaseModel):
    """Ticket type offered by a department"""
    model_config = ConfigDict(extra="ignore")

    ticket_type_id: str = Field(..., description="Unique ticket type ID")
    name: str = Field(..., description="Display name")
    default_wd: PositiveInt = Field(..., description="Default SLA in working days")
    sub_category: Optional[str] = None
    priority: Priority = Field(default=Priority.MEDIUM)
    workflow_id: Optional[str] = Field(None, description="Workflow bound to this ticket type")
    description: Optional[str] = None


class Department(BaseModel):
    """Department catalog entry"""
    model_config = ConfigDict(extra="ignore")

    department_id: str = Field(..., description="Unique department ID")
    name: str = Field(..., description="Department name, referenced by tickets")
    sub_categories: List[str] = Field(default_factory=list)
    ticket_types: List[TicketType] = Field(default_factory=list)


class WorkflowStep(BaseModel):
    """One department hand-off in a workflow definition"""
    model_config = ConfigDict(extra="ignore")

    department_id: str
    department_name: str
    estimated_days: Optional[NonNegativeInt] = None
    estimated_hours: Optional[NonNegativeInt] = None
    sla_unit: SlaUnit = Field(default=SlaUnit.DAYS)

    @property
    def sla(self) -> SlaQuantity:
        """Expected SLA of this step"""
        if self.sla_unit == SlaUnit.HOURS:
            hours = self.estimated_hours if self.estimated_hours is not None else self.estimated_days
            return SlaQuantity(value=hours if hours is not None else 1, unit=SlaUnit.HOURS)
        days = self.estimated_days if self.estimated_days is not None else 1
        return SlaQuantity(value=days, unit=SlaUnit.DAYS)


class Workflow(BaseModel):
    """Ordered list of department steps; step number = position (1-based)"""
    model_config = ConfigDict(extra="ignore")

    workflow_id: str = Field(..., description="Unique workflow ID")
    name: str
    description: Optional[str] = None
    is_default: bool = Field(default=False)
    steps: List[WorkflowStep] = Field(default_factory=list)

    def get_step(self, step_number: int) -> Optional[WorkflowStep]:
        """Get the step definition for a 1-based step number"""
        if 1 <= step_number <= len(self.steps):
            return self.steps[step_number - 1]
        return None


# ============================================================================
# Ticket workflow state
# ============================================================================

class WorkflowAction(BaseModel):
    """Append-only action recorded by a department on a step"""
    model_config = ConfigDict(extra="ignore")

    action_id: str
    action_type: ActionType
    notes: str
    is_complete: bool = False
    performed_by: Optional[str] = None
    new_assignee: Optional[str] = None
    timestamp: UtcDatetime


class WorkflowStepStatus(BaseModel):
    """Progress of a ticket through one workflow step"""
    model_config = ConfigDict(extra="ignore")

    step_number: PositiveInt
    department_id: str
    department_name: str
    status: StepStatus = Field(default=StepStatus.PENDING)
    actions: List[WorkflowAction] = Field(default_factory=list)
    started_at: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None


class RecordedStepStatus(WorkflowStepStatus):
    """Step status taken verbatim from the ticket"""
    source: Literal[StepStatusSource.RECORDED] = StepStatusSource.RECORDED

    def to_stored(self) -> WorkflowStepStatus:
        return WorkflowStepStatus.model_validate(self.model_dump(exclude={"source"}))


class InferredStepStatus(WorkflowStepStatus):
    """Step status derived from the ticket's current step and status"""
    source: Literal[StepStatusSource.INFERRED] = StepStatusSource.INFERRED

    def to_stored(self) -> WorkflowStepStatus:
        return WorkflowStepStatus.model_validate(self.model_dump(exclude={"source"}))


ReconciledStep = Annotated[
    Union[RecordedStepStatus, InferredStepStatus],
    Field(discriminator="source")
]


class Ticket(BaseModel):
    """Support ticket moving through a department workflow"""
    model_config = ConfigDict(extra="ignore")

    ticket_id: str = Field(..., description="Unique ticket ID")
    department: str = Field(..., description="Department name snapshot at creation")
    ticket_type: str = Field(..., description="Ticket type name snapshot")
    sub_category: Optional[str] = None
    client_name: str
    working_days: NonNegativeInt = Field(..., description="SLA override in working days")
    sla: Optional[SlaQuantity] = Field(None, description="SLA override with explicit unit")
    priority: Priority = Field(default=Priority.MEDIUM)
    status: TicketStatus = Field(default=TicketStatus.OPEN)
    description: Optional[str] = None
    assignee: Optional[str] = None
    workflow_id: Optional[str] = Field(None, description="None means the default workflow")
    current_workflow_step: PositiveInt = Field(default=1)
    current_department: Optional[str] = None
    workflow_status: List[WorkflowStepStatus] = Field(default_factory=list)
    created_at: UtcDatetime
    updated_at: UtcDatetime
    due_date: UtcDatetime
    version: int = Field(default=1, description="Optimistic concurrency counter")


# ============================================================================
# Audit trail
# ============================================================================

class FileAttachment(BaseModel):
    """Attachment metadata; bytes live in the attachment store"""
    model_config = ConfigDict(extra="ignore")

    attachment_id: str
    ticket_id: Optional[str] = None
    name: str
    size: NonNegativeInt
    mime_type: str
    storage_path: str = Field(..., description="Path relative to the attachment store root")
    uploaded_at: UtcDatetime


class AttachmentPayload(BaseModel):
    """Inbound file: base64 content (a data URL is accepted)"""
    name: str = Field(..., min_length=1)
    mime_type: str = Field(default="application/octet-stream")
    data: str = Field(..., description="Base64 encoded bytes")


class WorkflowResolution(BaseModel):
    """Immutable record of a department completion or a revert"""
    model_config = ConfigDict(extra="ignore")

    resolution_id: str
    ticket_id: str
    step_number: PositiveInt
    from_department: str
    resolved_by: str
    resolution_text: str
    attachments: List[FileAttachment] = Field(default_factory=list)
    resolved_at: UtcDatetime
    is_revert: bool = False
    expected_sla: Optional[SlaQuantity] = None
    actual_time_taken: Optional[SlaQuantity] = None
    sla_status: Optional[SlaOutcome] = None
    is_final_resolution: bool = False


HistoryValue = Union[SlaQuantity, UtcDatetime, int, float, str, None]


class HistoryChange(BaseModel):
    """Before/after value of one ticket field"""
    model_config = ConfigDict(extra="ignore")

    field: str
    old_value: HistoryValue = None
    new_value: HistoryValue = None


class TicketHistory(BaseModel):
    """Append-only entry describing one mutating update to a ticket"""
    model_config = ConfigDict(extra="ignore")

    history_id: str
    ticket_id: str
    changed_at: UtcDatetime
    changed_by: Optional[str] = None
    reason: Optional[str] = None
    changes: List[HistoryChange] = Field(default_factory=list)
