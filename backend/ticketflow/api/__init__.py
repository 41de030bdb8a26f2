"""API module - Routes and dependencies"""
from .deps import get_acting_user_dep, get_ticket_service, get_catalog_service

__all__ = ["get_acting_user_dep", "get_ticket_service", "get_catalog_service"]
