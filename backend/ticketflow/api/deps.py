"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Header

from ..engine.engine import SYSTEM_ACTOR
from ..services.ticket_service import TicketService
from ..services.catalog_service import CatalogService


def get_acting_user_dep(
    x_acting_user: Optional[str] = Header(None, alias="X-Acting-User")
) -> str:
    """
    Name of the user performing the request

    Recorded on actions, resolutions and history; never verified.
    """
    if x_acting_user and x_acting_user.strip():
        return x_acting_user.strip()
    return SYSTEM_ACTOR


def get_ticket_service() -> TicketService:
    """Ticket service bound to the application database"""
    return TicketService()


def get_catalog_service() -> CatalogService:
    return CatalogService()
