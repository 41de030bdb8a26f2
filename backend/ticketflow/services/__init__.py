"""Service modules - Business logic layer"""
from .ticket_service import TicketService
from .catalog_service import CatalogService
from .attachment_service import AttachmentService

__all__ = [
    "TicketService",
    "CatalogService",
    "AttachmentService",
]
