"""
Ticket Audit Routes

Read-only views of the append-only history and resolution logs, and of
the files attached to resolutions.
"""

from typing import Any, Dict
from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from ...deps import get_ticket_service
from ....services.ticket_service import TicketService

router = APIRouter()


@router.get("/{ticket_id}/history")
def get_ticket_history(
    ticket_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """Field-level change history, latest first"""
    entries = service.list_history(ticket_id, skip=skip, limit=limit)
    return {
        "ticket_id": ticket_id,
        "items": [e.model_dump(mode="json") for e in entries],
    }


@router.get("/{ticket_id}/resolutions")
def get_ticket_resolutions(
    ticket_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """Department completions and reverts, latest first"""
    resolutions = service.list_resolutions(ticket_id, skip=skip, limit=limit)
    return {
        "ticket_id": ticket_id,
        "items": [r.model_dump(mode="json") for r in resolutions],
    }


@router.get("/{ticket_id}/attachments")
def list_ticket_attachments(
    ticket_id: str,
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """Metadata of every file attached to the ticket's resolutions"""
    attachments = service.list_attachments(ticket_id)
    return {
        "ticket_id": ticket_id,
        "items": [a.model_dump(mode="json") for a in attachments],
    }


@router.get("/{ticket_id}/attachments/{attachment_id}")
def download_ticket_attachment(
    ticket_id: str,
    attachment_id: str,
    service: TicketService = Depends(get_ticket_service)
) -> FileResponse:
    attachment, path = service.get_attachment_file(ticket_id, attachment_id)
    return FileResponse(
        path,
        media_type=attachment.mime_type,
        filename=attachment.name,
        headers={"Cache-Control": "no-cache"},
    )
