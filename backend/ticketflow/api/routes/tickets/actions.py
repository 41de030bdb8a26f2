"""
Ticket Action Routes

Department actions, revert and reassignment. These are plain def endpoints:
FastAPI runs them in its thread pool, so waiting on a ticket lock never
blocks the event loop.
"""

from typing import Any, Dict
from fastapi import APIRouter, Depends, Path

from ...deps import get_acting_user_dep, get_ticket_service
from ....services.ticket_service import TicketService
from .schemas import (
    DepartmentActionRequest, RevertRequest, ReassignRequest, RevertTargetsResponse,
    ticket_response
)

router = APIRouter()


@router.post("/{ticket_id}/steps/{step_number}/actions")
def record_department_action(
    request: DepartmentActionRequest,
    ticket_id: str,
    step_number: int = Path(..., ge=1),
    actor: str = Depends(get_acting_user_dep),
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """
    Record a department action on the current step

    - in_progress: progress note, optional hand-off to a new assignee
    - completed: closes the step, evaluates its SLA and moves the ticket to
      the next department (or resolves it after the last step)
    """
    ticket = service.record_action(
        ticket_id=ticket_id,
        step_number=step_number,
        action_type=request.action_type,
        notes=request.notes,
        actor=actor,
        is_final=request.is_final,
        assignee=request.assignee,
        attachments=request.attachments
    )
    return ticket_response(ticket, service.effective_status(ticket))


@router.post("/{ticket_id}/revert")
def revert_ticket(
    request: RevertRequest,
    ticket_id: str,
    actor: str = Depends(get_acting_user_dep),
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """Send the ticket back to a department that already processed it"""
    ticket = service.revert(
        ticket_id=ticket_id,
        target_department=request.target_department,
        reason=request.reason,
        actor=actor,
        assignee=request.assignee
    )
    return ticket_response(ticket, service.effective_status(ticket))


@router.get("/{ticket_id}/revert-targets", response_model=RevertTargetsResponse)
def get_revert_targets(
    ticket_id: str,
    service: TicketService = Depends(get_ticket_service)
):
    """Departments eligible as revert targets"""
    return RevertTargetsResponse(
        ticket_id=ticket_id,
        departments=service.revert_targets(ticket_id)
    )


@router.post("/{ticket_id}/reassign")
def reassign_ticket(
    request: ReassignRequest,
    ticket_id: str,
    actor: str = Depends(get_acting_user_dep),
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """Change the assignee without touching workflow state"""
    ticket = service.reassign(ticket_id, request.assignee, actor=actor, reason=request.reason)
    return ticket_response(ticket, service.effective_status(ticket))
