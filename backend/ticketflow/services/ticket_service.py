"""Ticket Service - Ticket management business logic"""
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from datetime import datetime
from pymongo.database import Database

from ..config.settings import Settings
from ..domain.models import (
    Ticket, Workflow, FileAttachment, AttachmentPayload, TicketHistory,
    WorkflowResolution, ReconciledStep, WorkflowStepStatus
)
from ..domain.enums import TicketStatus, Priority, ActionType
from ..domain.errors import InvalidStepError
from ..engine.engine import WorkflowEngine, require_text
from ..engine.locks import TicketLockManager
from ..engine.sla_calculator import effective_status, format_sla, workflow_total_sla
from .attachment_service import AttachmentService
from ..utils.time import utc_now, format_iso
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TicketService:
    """Service for ticket operations"""

    def __init__(
        self,
        db: Optional[Database] = None,
        clock: Callable[[], datetime] = utc_now,
        lock_manager: Optional[TicketLockManager] = None,
        app_settings: Optional[Settings] = None
    ):
        self.engine = WorkflowEngine(db, clock=clock, lock_manager=lock_manager, app_settings=app_settings)
        self.ticket_repo = self.engine.ticket_repo
        self.audit_repo = self.engine.audit_repo
        self.catalog_repo = self.engine.catalog_repo
        self.reconciler = self.engine.reconciler
        self.attachment_service = AttachmentService(db, app_settings=app_settings, clock=clock)
        self.clock = clock

    # =========================================================================
    # Creation and listing
    # =========================================================================

    def create_ticket(self, actor: Optional[str] = None, **fields: Any) -> Ticket:
        """Create a new ticket"""
        return self.engine.create_ticket(actor=actor, **fields)

    def list_tickets(
        self,
        department: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        priority: Optional[Priority] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Ticket], int]:
        """
        List tickets with filters

        Overdue is never stored authoritatively, so the Overdue filter
        selects unresolved tickets past their due date.
        """
        filters: Dict[str, Any] = {
            "department": department,
            "priority": priority,
            "search": search,
        }
        if status == TicketStatus.OVERDUE:
            filters["overdue_at"] = self.clock()
        else:
            filters["status"] = status

        tickets = self.ticket_repo.list_tickets(skip=skip, limit=limit, **filters)
        total = self.ticket_repo.count_tickets(**filters)
        return tickets, total

    def effective_status(self, ticket: Ticket) -> TicketStatus:
        """Stored status with the derived Overdue flag applied"""
        return effective_status(ticket.status, ticket.due_date, self.clock())

    # =========================================================================
    # Reads
    # =========================================================================

    def reconcile(self, ticket_id: str) -> Tuple[Ticket, Optional[Workflow], List[ReconciledStep]]:
        """Ticket, its governing workflow and the reconciled step list"""
        ticket = self.ticket_repo.get_ticket_or_raise(ticket_id)
        workflow = self.catalog_repo.resolve_workflow(ticket.workflow_id)
        return ticket, workflow, self.reconciler.reconcile(ticket, workflow)

    def current_step(self, ticket_id: str) -> Optional[ReconciledStep]:
        ticket, _, steps = self.reconcile(ticket_id)
        if ticket.status == TicketStatus.RESOLVED:
            return None
        return self.reconciler.current_step(steps)

    def get_ticket_detail(self, ticket_id: str) -> Dict[str, Any]:
        """Get ticket with reconciled steps and SLA display data"""
        ticket, workflow, steps = self.reconcile(ticket_id)

        current = None
        if ticket.status != TicketStatus.RESOLVED:
            current = self.reconciler.current_step(steps)
        display_due = self.reconciler.current_due_date(ticket, workflow, steps)
        total_sla = workflow_total_sla(workflow)
        ticket_sla = self.reconciler.ticket_sla(ticket)

        return {
            "ticket": ticket.model_dump(mode="json"),
            "effective_status": effective_status(ticket.status, display_due, self.clock()).value,
            "due_date": format_iso(display_due),
            "sla_display": format_sla(ticket_sla),
            "steps": [s.model_dump(mode="json") for s in steps],
            "current_step": current.model_dump(mode="json") if current else None,
            "workflow": {
                "workflow_id": workflow.workflow_id,
                "name": workflow.name,
            } if workflow else None,
            "workflow_total_sla": total_sla.model_dump(mode="json") if total_sla else None,
            "workflow_total_sla_display": format_sla(total_sla) if total_sla else None,
        }

    def list_history(self, ticket_id: str, skip: int = 0, limit: int = 100) -> List[TicketHistory]:
        """History entries, latest first"""
        self.ticket_repo.get_ticket_or_raise(ticket_id)
        return self.audit_repo.list_history(ticket_id, skip=skip, limit=limit)

    def list_resolutions(self, ticket_id: str, skip: int = 0, limit: int = 100) -> List[WorkflowResolution]:
        """Resolutions, latest first"""
        self.ticket_repo.get_ticket_or_raise(ticket_id)
        return self.audit_repo.list_resolutions(ticket_id, skip=skip, limit=limit)

    def list_attachments(self, ticket_id: str) -> List[FileAttachment]:
        self.ticket_repo.get_ticket_or_raise(ticket_id)
        return self.attachment_service.list_for_ticket(ticket_id)

    def get_attachment_file(self, ticket_id: str, attachment_id: str) -> Tuple[FileAttachment, str]:
        """Attachment metadata plus the path of its stored bytes"""
        self.ticket_repo.get_ticket_or_raise(ticket_id)
        return self.attachment_service.resolve_file(ticket_id, attachment_id)

    # =========================================================================
    # Mutations
    # =========================================================================

    def record_action(
        self,
        ticket_id: str,
        step_number: int,
        action_type: ActionType,
        notes: str,
        actor: str,
        is_final: Optional[bool] = None,
        assignee: Optional[str] = None,
        attachments: Optional[List[AttachmentPayload]] = None
    ) -> Ticket:
        """
        Record a department action, storing any attachments first

        Every payload is decoded and validated before the first file is
        written. Files stored for an action the engine then rejects are
        removed again, so a rejected action leaves nothing behind.
        """
        stored: List[FileAttachment] = []
        if attachments:
            require_text(notes=notes)
            self._ensure_current_step(ticket_id, step_number)
            prepared = self.attachment_service.prepare(attachments)
            stored = self.attachment_service.store_all(ticket_id, prepared)

        try:
            return self.engine.record_department_action(
                ticket_id=ticket_id,
                step_number=step_number,
                action_type=action_type,
                notes=notes,
                is_final=is_final,
                assignee=assignee,
                performed_by=actor,
                attachments=stored,
            )
        except Exception:
            if stored:
                logger.info(
                    f"Action on step {step_number} rejected; removing {len(stored)} attachment(s)",
                    extra={"ticket_id": ticket_id, "step_number": step_number}
                )
                self.attachment_service.discard(stored)
            raise

    def revert(
        self,
        ticket_id: str,
        target_department: str,
        reason: str,
        actor: str,
        assignee: Optional[str] = None
    ) -> Ticket:
        return self.engine.revert(ticket_id, target_department, reason, actor, assignee=assignee)

    def revert_targets(self, ticket_id: str) -> List[str]:
        return self.engine.revert_targets(ticket_id)

    def reassign(
        self,
        ticket_id: str,
        new_assignee: str,
        actor: Optional[str] = None,
        reason: Optional[str] = None
    ) -> Ticket:
        return self.engine.reassign(ticket_id, new_assignee, actor=actor, reason=reason)

    def update_ticket(
        self,
        ticket_id: str,
        updates: Mapping[str, Any],
        actor: Optional[str] = None,
        reason: Optional[str] = None
    ) -> Ticket:
        return self.engine.update_ticket(ticket_id, updates, reason=reason, actor=actor)

    def _ensure_current_step(self, ticket_id: str, step_number: int) -> WorkflowStepStatus:
        current = self.current_step(ticket_id)
        if current is None or current.step_number != step_number:
            raise InvalidStepError(
                f"Step {step_number} is not the current step of ticket {ticket_id}",
                details={
                    "step_number": step_number,
                    "current_step": current.step_number if current else None,
                }
            )
        return current
