"""
Ticket Schemas

Request and response models for ticket API endpoints.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, NonNegativeInt

from ....domain.enums import ActionType, Priority, TicketStatus
from ....domain.models import AttachmentPayload, SlaQuantity, Ticket


# =============================================================================
# Ticket CRUD Schemas
# =============================================================================

class CreateTicketRequest(BaseModel):
    """Request to create a new ticket"""
    department: str = Field(..., max_length=200)
    ticket_type: str = Field(..., max_length=200)
    client_name: str = Field(..., max_length=500)
    sub_category: Optional[str] = Field(None, max_length=200)
    priority: Optional[Priority] = None
    description: Optional[str] = Field(None, max_length=5000)
    working_days: Optional[NonNegativeInt] = Field(
        None, description="SLA override in working days; defaults to the ticket type"
    )
    sla: Optional[SlaQuantity] = Field(None, description="SLA override with explicit unit")
    assignee: Optional[str] = Field(None, max_length=200)
    workflow_id: Optional[str] = Field(
        None, description="Workflow binding; defaults to the ticket type's workflow"
    )


class UpdateTicketRequest(BaseModel):
    """Partial update of descriptive ticket fields"""
    department: Optional[str] = Field(None, max_length=200)
    ticket_type: Optional[str] = Field(None, max_length=200)
    sub_category: Optional[str] = Field(None, max_length=200)
    client_name: Optional[str] = Field(None, max_length=500)
    working_days: Optional[NonNegativeInt] = None
    sla: Optional[SlaQuantity] = None
    priority: Optional[Priority] = None
    description: Optional[str] = Field(None, max_length=5000)
    reason: Optional[str] = Field(None, max_length=1000, description="Recorded on the history entry")


class TicketListResponse(BaseModel):
    """Response for ticket list"""
    items: List[Dict[str, Any]]
    skip: int
    limit: int
    total: int


# =============================================================================
# Action Schemas
# =============================================================================

class DepartmentActionRequest(BaseModel):
    """Department action on the current step"""
    action_type: ActionType
    notes: str = Field(..., max_length=5000)
    is_final: Optional[bool] = Field(
        None, description="Final resolution flag; defaults to whether this is the last step"
    )
    assignee: Optional[str] = Field(None, max_length=200, description="Hand the ticket to this person")
    attachments: List[AttachmentPayload] = Field(default_factory=list)


class RevertRequest(BaseModel):
    """Send the ticket back to a department that already processed it"""
    target_department: str = Field(..., max_length=200)
    reason: str = Field(..., max_length=2000)
    assignee: Optional[str] = Field(None, max_length=200)


class ReassignRequest(BaseModel):
    """Change the ticket assignee"""
    assignee: str = Field(..., max_length=200)
    reason: Optional[str] = Field(None, max_length=1000)


class RevertTargetsResponse(BaseModel):
    """Departments the ticket can be reverted to"""
    ticket_id: str
    departments: List[str]


def ticket_response(ticket: Ticket, effective_status: TicketStatus) -> Dict[str, Any]:
    """Ticket as JSON with the derived Overdue flag applied"""
    payload = ticket.model_dump(mode="json")
    payload["effective_status"] = effective_status.value
    return payload
