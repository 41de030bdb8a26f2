"""Audit Writer - Append-only ticket history and workflow resolutions"""
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from ..domain.models import (
    Ticket, TicketHistory, HistoryChange, WorkflowResolution, FileAttachment, SlaQuantity
)
from ..domain.enums import SlaOutcome
from ..repositories.audit_repo import AuditRepository
from ..utils.idgen import generate_history_id, generate_resolution_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Fields compared for every ticket update
TRACKED_FIELDS = (
    "department",
    "ticket_type",
    "assignee",
    "client_name",
    "working_days",
    "priority",
    "status",
    "description",
    "due_date",
)

# Extra fields captured when a workflow transition moves the ticket
WORKFLOW_FIELDS = TRACKED_FIELDS + (
    "current_workflow_step",
    "current_department",
    "updated_at",
)


class AuditWriter:
    """
    Write audit records (append-only)

    History entries are field-level diffs of a ticket; resolutions record
    each department hand-off or revert. Neither is ever edited after it is
    written.
    """

    def __init__(
        self,
        repo: Optional[AuditRepository] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.repo = repo if repo is not None else AuditRepository()
        self.clock = clock

    def diff(
        self,
        before: Ticket,
        after: Ticket,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
        fields: Sequence[str] = TRACKED_FIELDS,
        force: bool = False
    ) -> Optional[TicketHistory]:
        """
        Compare two versions of a ticket

        Args:
            force: Return an entry even when no field changed (workflow
                actions always leave one history entry)

        Returns:
            One history entry with a change per differing field, or None
            when nothing tracked changed
        """
        changes: List[HistoryChange] = []
        for field in fields:
            old_value = getattr(before, field)
            new_value = getattr(after, field)
            if old_value != new_value:
                changes.append(HistoryChange(
                    field=field,
                    old_value=self._plain(old_value),
                    new_value=self._plain(new_value),
                ))

        if not changes and not force:
            return None

        return TicketHistory(
            history_id=generate_history_id(),
            ticket_id=after.ticket_id,
            changed_at=self.clock(),
            changed_by=actor,
            reason=reason,
            changes=changes,
        )

    def write_history(self, entry: TicketHistory) -> TicketHistory:
        """Append a history entry"""
        return self.repo.append_history(entry)

    def build_resolution(
        self,
        ticket_id: str,
        step_number: int,
        from_department: str,
        resolved_by: str,
        resolution_text: str,
        resolved_at: datetime,
        attachments: Optional[List[FileAttachment]] = None,
        is_revert: bool = False,
        expected_sla: Optional[SlaQuantity] = None,
        actual_time_taken: Optional[SlaQuantity] = None,
        sla_status: Optional[SlaOutcome] = None,
        is_final_resolution: bool = False
    ) -> WorkflowResolution:
        return WorkflowResolution(
            resolution_id=generate_resolution_id(),
            ticket_id=ticket_id,
            step_number=step_number,
            from_department=from_department,
            resolved_by=resolved_by,
            resolution_text=resolution_text,
            attachments=attachments or [],
            resolved_at=resolved_at,
            is_revert=is_revert,
            expected_sla=expected_sla,
            actual_time_taken=actual_time_taken,
            sla_status=sla_status,
            is_final_resolution=is_final_resolution,
        )

    def write_resolution(self, resolution: WorkflowResolution) -> WorkflowResolution:
        """Append a workflow resolution"""
        return self.repo.append_resolution(resolution)

    def _plain(self, value: Any) -> Any:
        """Store enums by value; SLA quantities and datetimes keep their type"""
        if isinstance(value, Enum):
            return value.value
        return value
