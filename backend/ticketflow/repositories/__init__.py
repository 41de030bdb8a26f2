"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection, create_indexes, close_connection
from .catalog_repo import CatalogRepository
from .ticket_repo import TicketRepository
from .audit_repo import AuditRepository
from .attachment_repo import AttachmentRepository

__all__ = [
    "get_database",
    "get_collection",
    "create_indexes",
    "close_connection",
    "CatalogRepository",
    "TicketRepository",
    "AuditRepository",
    "AttachmentRepository",
]
