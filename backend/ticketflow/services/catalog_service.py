"""Catalog Service - Read access to workflows and departments"""
from typing import List, Optional
from pymongo.database import Database

from ..domain.models import Workflow, Department
from ..domain.errors import WorkflowNotFoundError
from ..repositories.catalog_repo import CatalogRepository


class CatalogService:
    """Service for catalog lookups"""

    def __init__(self, db: Optional[Database] = None):
        self.catalog_repo = CatalogRepository(db)

    def list_workflows(self) -> List[Workflow]:
        return self.catalog_repo.list_workflows()

    def get_workflow(self, workflow_id: str) -> Workflow:
        return self.catalog_repo.get_workflow_or_raise(workflow_id)

    def get_default_workflow(self) -> Workflow:
        """The default workflow; 404 when the catalog has none"""
        workflow = self.catalog_repo.get_default_workflow()
        if workflow is None:
            raise WorkflowNotFoundError("No workflows are configured")
        return workflow

    def list_departments(self) -> List[Department]:
        return self.catalog_repo.list_departments()

    def get_department(self, department_id: str) -> Department:
        return self.catalog_repo.get_department_or_raise(department_id)
