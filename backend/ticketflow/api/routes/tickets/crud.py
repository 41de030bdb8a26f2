"""
Ticket CRUD Routes

Create, read, list and edit ticket endpoints.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, status

from ...deps import get_acting_user_dep, get_ticket_service
from ....domain.enums import TicketStatus, Priority
from ....services.ticket_service import TicketService
from .schemas import (
    CreateTicketRequest, UpdateTicketRequest, TicketListResponse, ticket_response
)

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_ticket(
    request: CreateTicketRequest,
    actor: str = Depends(get_acting_user_dep),
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """
    Create a new ticket

    SLA, priority and workflow default from the catalog ticket type. The
    first workflow step starts immediately.
    """
    ticket = service.create_ticket(actor=actor, **request.model_dump())
    return ticket_response(ticket, service.effective_status(ticket))


@router.get("/", response_model=TicketListResponse)
def list_tickets(
    department: Optional[str] = Query(None, description="Filter by department"),
    status: Optional[TicketStatus] = Query(None, description="Filter by status; Overdue is derived"),
    priority: Optional[Priority] = Query(None, description="Filter by priority"),
    search: Optional[str] = Query(None, description="Search client name, ticket ID and ticket type"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    service: TicketService = Depends(get_ticket_service)
):
    """List tickets, newest first"""
    tickets, total = service.list_tickets(
        department=department,
        status=status,
        priority=priority,
        search=search,
        skip=skip,
        limit=limit
    )

    return TicketListResponse(
        items=[ticket_response(t, service.effective_status(t)) for t in tickets],
        skip=skip,
        limit=limit,
        total=total
    )


@router.get("/{ticket_id}")
def get_ticket(
    ticket_id: str,
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """
    Get ticket detail

    Includes the reconciled workflow steps, the current step, the effective
    status and the display due date.
    """
    return service.get_ticket_detail(ticket_id)


@router.patch("/{ticket_id}")
def update_ticket(
    ticket_id: str,
    request: UpdateTicketRequest,
    actor: str = Depends(get_acting_user_dep),
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """Edit descriptive fields; one history entry records the changes"""
    updates = request.model_dump(exclude_unset=True, exclude={"reason"})
    ticket = service.update_ticket(ticket_id, updates, actor=actor, reason=request.reason)
    return ticket_response(ticket, service.effective_status(ticket))
