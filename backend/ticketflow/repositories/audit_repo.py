"""Audit Repository - Data access for ticket history and workflow resolutions"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo import ASCENDING, DESCENDING

from .mongo_client import get_collection
from ..domain.models import TicketHistory, WorkflowResolution
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit records (append-only)"""

    def __init__(self, db: Optional[Database] = None):
        self._history: Collection = get_collection("ticket_history", db)
        self._resolutions: Collection = get_collection("workflow_resolutions", db)

    # =========================================================================
    # Ticket history
    # =========================================================================

    def append_history(self, entry: TicketHistory) -> TicketHistory:
        """Append a history entry (append-only)"""
        doc = entry.model_dump()
        doc["_id"] = entry.history_id

        self._history.insert_one(doc)
        logger.info(
            f"Recorded history for ticket {entry.ticket_id}: "
            f"{', '.join(c.field for c in entry.changes)}",
            extra={"ticket_id": entry.ticket_id, "actor": entry.changed_by}
        )
        return entry

    def list_history(self, ticket_id: str, skip: int = 0, limit: int = 100) -> List[TicketHistory]:
        """Get history for a ticket, newest first"""
        cursor = self._history.find({"ticket_id": ticket_id}).sort("changed_at", DESCENDING).skip(skip).limit(limit)

        entries = []
        for doc in cursor:
            doc.pop("_id", None)
            entries.append(TicketHistory.model_validate(doc))

        return entries

    def count_history(self, ticket_id: str) -> int:
        return self._history.count_documents({"ticket_id": ticket_id})

    # =========================================================================
    # Workflow resolutions
    # =========================================================================

    def append_resolution(self, resolution: WorkflowResolution) -> WorkflowResolution:
        """Append a workflow resolution (append-only)"""
        doc = resolution.model_dump()
        doc["_id"] = resolution.resolution_id

        self._resolutions.insert_one(doc)
        logger.info(
            f"Recorded {'revert' if resolution.is_revert else 'resolution'} "
            f"for ticket {resolution.ticket_id} step {resolution.step_number}",
            extra={
                "ticket_id": resolution.ticket_id,
                "step_number": resolution.step_number,
                "actor": resolution.resolved_by
            }
        )
        return resolution

    def list_resolutions(self, ticket_id: str, skip: int = 0, limit: int = 100) -> List[WorkflowResolution]:
        """Get resolutions for a ticket, newest first"""
        cursor = self._resolutions.find({"ticket_id": ticket_id}).sort("resolved_at", DESCENDING).skip(skip).limit(limit)

        resolutions = []
        for doc in cursor:
            doc.pop("_id", None)
            resolutions.append(WorkflowResolution.model_validate(doc))

        return resolutions

    def count_resolutions(self, ticket_id: str) -> int:
        return self._resolutions.count_documents({"ticket_id": ticket_id})

    def list_resolved_departments(self, ticket_id: str) -> List[str]:
        """Distinct departments in the resolution log, in order of first appearance"""
        cursor = self._resolutions.find(
            {"ticket_id": ticket_id},
            {"from_department": 1}
        ).sort("resolved_at", ASCENDING)

        departments: List[str] = []
        for doc in cursor:
            department = doc.get("from_department")
            if department and department not in departments:
                departments.append(department)
        return departments
