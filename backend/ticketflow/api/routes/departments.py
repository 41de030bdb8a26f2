"""Department API Routes - Departments and their ticket types"""
from typing import Any, Dict
from fastapi import APIRouter, Depends

from ..deps import get_catalog_service
from ...services.catalog_service import CatalogService

router = APIRouter()


@router.get("")
def list_departments(service: CatalogService = Depends(get_catalog_service)) -> Dict[str, Any]:
    """List departments by name"""
    departments = service.list_departments()
    return {
        "items": [d.model_dump(mode="json") for d in departments],
        "total": len(departments),
    }


@router.get("/{department_id}")
def get_department(
    department_id: str,
    service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    """Get department with its ticket types"""
    return service.get_department(department_id).model_dump(mode="json")
