"""API Routes module"""
from fastapi import APIRouter

from .workflows import router as workflows_router
from .departments import router as departments_router
from .tickets import router as tickets_router

# Main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(workflows_router, prefix="/workflows", tags=["Workflows"])
api_router.include_router(departments_router, prefix="/departments", tags=["Departments"])
api_router.include_router(tickets_router, prefix="/tickets", tags=["Tickets"])

__all__ = ["api_router"]
