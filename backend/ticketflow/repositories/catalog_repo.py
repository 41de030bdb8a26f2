"""Catalog Repository - Read access to workflows, departments and ticket types"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo import ASCENDING

from .mongo_client import get_collection
from ..domain.models import Workflow, Department, TicketType
from ..domain.errors import WorkflowNotFoundError, DepartmentNotFoundError, AlreadyExistsError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CatalogRepository:
    """
    Repository for catalog records

    The engine only reads the catalog. The create helpers exist for seeding
    and tests.
    """

    def __init__(self, db: Optional[Database] = None):
        self._workflows: Collection = get_collection("workflows", db)
        self._departments: Collection = get_collection("departments", db)

    # =========================================================================
    # Workflows
    # =========================================================================

    def create_workflow(self, workflow: Workflow) -> Workflow:
        """Insert a workflow definition"""
        doc = workflow.model_dump()
        doc["_id"] = workflow.workflow_id

        try:
            self._workflows.insert_one(doc)
        except Exception as e:
            if "duplicate key" in str(e).lower():
                raise AlreadyExistsError(f"Workflow {workflow.workflow_id} already exists")
            raise
        logger.info(f"Created workflow: {workflow.workflow_id}", extra={"workflow_id": workflow.workflow_id})
        return workflow

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Get workflow by ID"""
        doc = self._workflows.find_one({"workflow_id": workflow_id})
        if doc:
            doc.pop("_id", None)
            return Workflow.model_validate(doc)
        return None

    def get_workflow_or_raise(self, workflow_id: str) -> Workflow:
        workflow = self.get_workflow(workflow_id)
        if not workflow:
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )
        return workflow

    def get_default_workflow(self) -> Optional[Workflow]:
        """The workflow flagged as default, else the first one by name"""
        doc = self._workflows.find_one({"is_default": True})
        if doc is None:
            docs = list(self._workflows.find({}).sort("name", ASCENDING).limit(1))
            doc = docs[0] if docs else None
        if doc is None:
            return None
        doc.pop("_id", None)
        return Workflow.model_validate(doc)

    def resolve_workflow(self, workflow_id: Optional[str] = None) -> Optional[Workflow]:
        """
        Workflow governing a ticket

        The bound workflow when it exists, otherwise the default workflow.
        A dangling binding is logged and treated as unbound.
        """
        if workflow_id:
            workflow = self.get_workflow(workflow_id)
            if workflow is not None:
                return workflow
            logger.warning(
                f"Workflow {workflow_id} not found, using default workflow",
                extra={"workflow_id": workflow_id}
            )
        return self.get_default_workflow()

    def list_workflows(self) -> List[Workflow]:
        """List all workflows by name"""
        workflows = []
        for doc in self._workflows.find({}).sort("name", ASCENDING):
            doc.pop("_id", None)
            workflows.append(Workflow.model_validate(doc))
        return workflows

    # =========================================================================
    # Departments and ticket types
    # =========================================================================

    def create_department(self, department: Department) -> Department:
        """Insert a department with its ticket types"""
        doc = department.model_dump()
        doc["_id"] = department.department_id

        try:
            self._departments.insert_one(doc)
        except Exception as e:
            if "duplicate key" in str(e).lower():
                raise AlreadyExistsError(f"Department {department.department_id} already exists")
            raise
        logger.info(f"Created department: {department.name}")
        return department

    def get_department(self, department_id: str) -> Optional[Department]:
        """Get department by ID"""
        doc = self._departments.find_one({"department_id": department_id})
        if doc:
            doc.pop("_id", None)
            return Department.model_validate(doc)
        return None

    def get_department_or_raise(self, department_id: str) -> Department:
        department = self.get_department(department_id)
        if not department:
            raise DepartmentNotFoundError(
                f"Department {department_id} not found",
                details={"department_id": department_id}
            )
        return department

    def get_department_by_name(self, name: str) -> Optional[Department]:
        """Tickets reference departments by name"""
        doc = self._departments.find_one({"name": name})
        if doc:
            doc.pop("_id", None)
            return Department.model_validate(doc)
        return None

    def list_departments(self) -> List[Department]:
        """List all departments by name"""
        departments = []
        for doc in self._departments.find({}).sort("name", ASCENDING):
            doc.pop("_id", None)
            departments.append(Department.model_validate(doc))
        return departments

    def find_ticket_type(self, department_name: str, ticket_type_name: str) -> Optional[TicketType]:
        """Look up a ticket type by name within a department"""
        department = self.get_department_by_name(department_name)
        if department is None:
            return None
        for ticket_type in department.ticket_types:
            if ticket_type.name == ticket_type_name:
                return ticket_type
        return None
