"""
Ticket Routes Module

This module contains all ticket-related API endpoints organized by functionality:

- crud.py: Create, list, get and edit tickets
- actions.py: Department actions, revert, reassign
- history.py: History and resolution logs

All routes are combined into a single router for inclusion in the API.
"""

from fastapi import APIRouter

from .schemas import (
    CreateTicketRequest, UpdateTicketRequest, TicketListResponse,
    DepartmentActionRequest, RevertRequest, ReassignRequest, RevertTargetsResponse
)
from .crud import router as crud_router
from .actions import router as actions_router
from .history import router as history_router

# Create main router and include all sub-routers
router = APIRouter()
router.include_router(crud_router)
router.include_router(actions_router)
router.include_router(history_router)

__all__ = [
    "router",
    # Schemas
    "CreateTicketRequest", "UpdateTicketRequest", "TicketListResponse",
    "DepartmentActionRequest", "RevertRequest", "ReassignRequest", "RevertTargetsResponse",
]
