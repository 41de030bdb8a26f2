"""Workflow API Routes - Read-only catalog of department workflows"""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_catalog_service
from ...engine.sla_calculator import workflow_total_sla, format_sla
from ...domain.models import Workflow
from ...services.catalog_service import CatalogService

router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================

class WorkflowListResponse(BaseModel):
    """Response for workflow list"""
    items: List[Dict[str, Any]]
    total: int


def _workflow_payload(workflow: Workflow) -> Dict[str, Any]:
    payload = workflow.model_dump(mode="json")
    total = workflow_total_sla(workflow)
    payload["total_sla"] = total.model_dump(mode="json") if total else None
    payload["total_sla_display"] = format_sla(total) if total else None
    return payload


# ============================================================================
# Routes
# ============================================================================

@router.get("", response_model=WorkflowListResponse)
def list_workflows(service: CatalogService = Depends(get_catalog_service)):
    """List workflows by name"""
    workflows = service.list_workflows()
    return WorkflowListResponse(
        items=[_workflow_payload(w) for w in workflows],
        total=len(workflows)
    )


@router.get("/default")
def get_default_workflow(service: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    """Workflow applied to tickets without a binding"""
    return _workflow_payload(service.get_default_workflow())


@router.get("/{workflow_id}")
def get_workflow(
    workflow_id: str,
    service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    """Get workflow by ID"""
    return _workflow_payload(service.get_workflow(workflow_id))
