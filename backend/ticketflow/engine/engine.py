"""
Workflow Engine - Per-ticket state machine

This module contains the WorkflowEngine class that owns every mutation of a
ticket's workflow state.

=============================================================================
MODULE STRUCTURE
=============================================================================

1. INITIALIZATION
   - Constructor with injectable database, clock, locks and settings

2. TICKET CREATION
   - create_ticket: Materialise workflow steps and the first due date

3. DEPARTMENT ACTIONS
   - record_department_action: in_progress / completed actions on the
     current step, SLA evaluation and hand-off to the next department

4. CORRECTIVE ACTIONS
   - revert: Send the ticket back to a department that already handled it
   - revert_targets: Departments eligible for a revert
   - reassign: Change the assignee
   - update_ticket: Edit descriptive fields

5. HELPERS
   - _load: Resolve the workflow and materialise reconciled steps
   - _commit: Save ticket, append resolution, append history

=============================================================================
WRITE ORDER
=============================================================================

Every mutating operation runs inside the per-ticket lock and validates
before touching storage. Writes then happen in a fixed order:

    save ticket (version check) -> append resolution -> append history

A rejected call persists nothing.

=============================================================================
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from datetime import datetime
from pymongo.database import Database

from ..config.settings import Settings, settings
from ..domain.models import (
    Ticket, Workflow, WorkflowAction, WorkflowStepStatus, WorkflowResolution,
    TicketHistory, FileAttachment, SlaQuantity
)
from ..domain.enums import TicketStatus, StepStatus, ActionType, Priority, SlaUnit
from ..domain.errors import (
    ValidationError, InvalidStepError, InvalidRevertTargetError
)
from ..repositories.ticket_repo import TicketRepository
from ..repositories.audit_repo import AuditRepository
from ..repositories.catalog_repo import CatalogRepository
from .audit_writer import AuditWriter, TRACKED_FIELDS, WORKFLOW_FIELDS
from .step_reconciler import StepReconciler
from .locks import TicketLockManager
from .sla_calculator import (
    due_date, actual_time_taken, evaluate_sla_status, parse_sla, format_sla
)
from ..utils.idgen import generate_ticket_id, generate_action_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"

# Fields a caller may edit through update_ticket
EDITABLE_FIELDS = (
    "department",
    "ticket_type",
    "sub_category",
    "client_name",
    "working_days",
    "sla",
    "priority",
    "description",
)

# Shared by every engine instance in the process
ticket_locks = TicketLockManager()


def require_text(**fields: Optional[str]) -> None:
    """Reject missing or blank text fields"""
    for name, value in fields.items():
        if value is None or not str(value).strip():
            raise ValidationError(
                f"{name} is required",
                details={"field": name},
                error_code="REQUIRED_FIELD_MISSING"
            )


class WorkflowEngine:
    """
    The Workflow Engine - single writer of ticket workflow state

    Responsibilities:
    - Create tickets with materialised workflow steps
    - Advance tickets through department steps with SLA evaluation
    - Revert and reassign without losing audit history
    - Serialise mutations per ticket id
    """

    def __init__(
        self,
        db: Optional[Database] = None,
        clock: Callable[[], datetime] = utc_now,
        lock_manager: Optional[TicketLockManager] = None,
        app_settings: Optional[Settings] = None
    ):
        self.ticket_repo = TicketRepository(db)
        self.audit_repo = AuditRepository(db)
        self.catalog_repo = CatalogRepository(db)
        self.reconciler = StepReconciler()
        self.audit_writer = AuditWriter(self.audit_repo, clock)
        self.lock_manager = lock_manager if lock_manager is not None else ticket_locks
        self.clock = clock
        self.settings = app_settings if app_settings is not None else settings

    # =========================================================================
    # TICKET CREATION
    # =========================================================================

    def create_ticket(
        self,
        department: str,
        ticket_type: str,
        client_name: str,
        priority: Optional[Priority] = None,
        description: Optional[str] = None,
        working_days: Optional[int] = None,
        sla: Any = None,
        sub_category: Optional[str] = None,
        assignee: Optional[str] = None,
        workflow_id: Optional[str] = None,
        actor: Optional[str] = None
    ) -> Ticket:
        """
        Create a new ticket

        Defaults come from the catalog ticket type (SLA, priority, sub
        category, workflow binding). Step 1 of the resolved workflow starts
        immediately; creation writes no history entry.
        """
        require_text(department=department, ticket_type=ticket_type, client_name=client_name)

        catalog_type = self.catalog_repo.find_ticket_type(department, ticket_type)

        if working_days is None:
            working_days = catalog_type.default_wd if catalog_type else self.settings.default_working_days
        if priority is None:
            priority = catalog_type.priority if catalog_type else Priority.MEDIUM
        if sub_category is None and catalog_type:
            sub_category = catalog_type.sub_category

        if workflow_id:
            # An explicit binding must exist
            self.catalog_repo.get_workflow_or_raise(workflow_id)
            bound_workflow_id: Optional[str] = workflow_id
        else:
            bound_workflow_id = catalog_type.workflow_id if catalog_type else None
        workflow = self.catalog_repo.resolve_workflow(bound_workflow_id)

        now = self.clock()
        ticket_sla = parse_sla(sla) if sla is not None else None

        steps: List[WorkflowStepStatus] = []
        if workflow is not None:
            for index, step in enumerate(workflow.steps):
                steps.append(WorkflowStepStatus(
                    step_number=index + 1,
                    department_id=step.department_id,
                    department_name=step.department_name,
                    status=StepStatus.IN_PROGRESS if index == 0 else StepStatus.PENDING,
                    started_at=now if index == 0 else None,
                ))

        if steps:
            first_sla = workflow.steps[0].sla
        elif ticket_sla is not None:
            first_sla = ticket_sla
        else:
            first_sla = SlaQuantity(value=working_days, unit=SlaUnit.DAYS)

        ticket = Ticket(
            ticket_id=generate_ticket_id(),
            department=department.strip(),
            ticket_type=ticket_type.strip(),
            sub_category=sub_category,
            client_name=client_name.strip(),
            working_days=working_days,
            sla=ticket_sla,
            priority=priority,
            status=TicketStatus.OPEN,
            description=description,
            assignee=assignee,
            workflow_id=bound_workflow_id,
            current_workflow_step=1,
            current_department=steps[0].department_name if steps else department.strip(),
            workflow_status=steps,
            created_at=now,
            updated_at=now,
            due_date=due_date(now, first_sla),
        )

        self.ticket_repo.create_ticket(ticket)
        logger.info(
            f"Ticket {ticket.ticket_id} created for {ticket.client_name} "
            f"({len(steps)} workflow steps, first SLA {format_sla(first_sla)})",
            extra={
                "ticket_id": ticket.ticket_id,
                "workflow_id": workflow.workflow_id if workflow else None,
                "actor": actor,
            }
        )
        return ticket

    # =========================================================================
    # DEPARTMENT ACTIONS
    # =========================================================================

    def record_department_action(
        self,
        ticket_id: str,
        step_number: int,
        action_type: ActionType,
        notes: str,
        is_final: Optional[bool] = None,
        assignee: Optional[str] = None,
        performed_by: Optional[str] = None,
        attachments: Optional[List[FileAttachment]] = None
    ) -> Ticket:
        """
        Record a department action on the ticket's current step

        in_progress: appends the action, starts a pending step and moves an
        Open ticket to In Progress.

        completed: closes the step, evaluates its SLA, appends a resolution
        and either hands the ticket to the next department (auto-started)
        or resolves it after the last step.

        Raises:
            TicketNotFoundError: Unknown ticket
            InvalidStepError: step_number is not the current step
            ValidationError: Blank notes
        """
        action_type = ActionType(action_type)
        require_text(notes=notes)
        actor = performed_by or SYSTEM_ACTOR

        with self.lock_manager.hold(ticket_id):
            ticket, workflow, steps = self._load(ticket_id)
            current = self.reconciler.current_step(steps)

            if ticket.status == TicketStatus.RESOLVED:
                current = None
            if current is None or current.step_number != step_number:
                raise InvalidStepError(
                    f"Step {step_number} is not the current step of ticket {ticket_id}",
                    details={
                        "step_number": step_number,
                        "current_step": current.step_number if current else None,
                    }
                )

            now = self.clock()
            step = current.model_copy(deep=True)
            step.actions.append(WorkflowAction(
                action_id=generate_action_id(),
                action_type=action_type,
                notes=notes.strip(),
                is_complete=action_type == ActionType.COMPLETED,
                performed_by=actor,
                new_assignee=assignee,
                timestamp=now,
            ))

            updates: Dict[str, Any] = {"updated_at": now}
            if assignee and assignee != ticket.assignee:
                updates["assignee"] = assignee
            # A stale stored Overdue counts as In Progress
            if ticket.status in (TicketStatus.OPEN, TicketStatus.OVERDUE):
                updates["status"] = TicketStatus.IN_PROGRESS

            resolution: Optional[WorkflowResolution] = None
            next_step: Optional[WorkflowStepStatus] = None

            if action_type == ActionType.IN_PROGRESS:
                if step.status == StepStatus.PENDING:
                    step.status = StepStatus.IN_PROGRESS
                    step.started_at = now
                updates["current_workflow_step"] = step.step_number
                updates["current_department"] = step.department_name
            else:
                started = self.reconciler.step_started_at(ticket, steps, current)
                expected = self.reconciler.step_sla(ticket, workflow, step.step_number)
                actual = actual_time_taken(started, now, expected)
                outcome = evaluate_sla_status(expected, actual, self.settings.sla_exceeded_factor)

                step.status = StepStatus.COMPLETED
                step.started_at = started
                step.completed_at = now

                next_step = self._step_after(steps, step.step_number)
                if is_final is None:
                    is_final = next_step is None

                if next_step is None:
                    updates["status"] = TicketStatus.RESOLVED
                    updates["current_workflow_step"] = step.step_number
                    updates["current_department"] = None
                else:
                    next_step = next_step.model_copy(deep=True)
                    next_step.status = StepStatus.IN_PROGRESS
                    next_step.started_at = now
                    next_step.completed_at = None
                    updates["current_workflow_step"] = next_step.step_number
                    updates["current_department"] = next_step.department_name
                    updates["due_date"] = due_date(
                        now, self.reconciler.step_sla(ticket, workflow, next_step.step_number)
                    )

                self._warn_on_repeated_completion(ticket_id, step.step_number)
                resolution = self.audit_writer.build_resolution(
                    ticket_id=ticket_id,
                    step_number=step.step_number,
                    from_department=step.department_name,
                    resolved_by=actor,
                    resolution_text=notes.strip(),
                    resolved_at=now,
                    attachments=attachments,
                    expected_sla=expected,
                    actual_time_taken=actual,
                    sla_status=outcome,
                    is_final_resolution=bool(is_final),
                )

            replaced = {step.step_number: step}
            if next_step is not None:
                replaced[next_step.step_number] = next_step
            updates["workflow_status"] = [replaced.get(s.step_number, s) for s in steps]

            after = ticket.model_copy(update=updates)
            history = self.audit_writer.diff(
                ticket, after, reason=notes.strip(), actor=actor, fields=WORKFLOW_FIELDS, force=True
            )
            saved = self._commit(ticket, after, resolution, history)

        logger.info(
            f"Ticket {ticket_id} step {step_number} {action_type.value} by {actor}"
            + (f" (SLA {resolution.sla_status.value})" if resolution else ""),
            extra={
                "ticket_id": ticket_id,
                "step_number": step_number,
                "action": action_type.value,
                "actor": actor,
                "status": saved.status.value,
            }
        )
        return saved

    # =========================================================================
    # CORRECTIVE ACTIONS
    # =========================================================================

    def revert(
        self,
        ticket_id: str,
        target_department: str,
        reason: str,
        acting_user: str,
        assignee: Optional[str] = None
    ) -> Ticket:
        """
        Send a ticket back to a department that already processed it

        The target step restarts, every later step returns to pending and a
        revert resolution is appended. Earlier resolutions are never touched.

        Raises:
            TicketNotFoundError: Unknown ticket
            InvalidRevertTargetError: Department never resolved this ticket,
                or it is the current department
            ValidationError: Blank target, reason or acting user
        """
        require_text(target_department=target_department, reason=reason, acting_user=acting_user)
        target_department = target_department.strip()
        reason = reason.strip()

        with self.lock_manager.hold(ticket_id):
            ticket, workflow, steps = self._load(ticket_id)
            current = self.reconciler.current_step(steps)
            if ticket.status == TicketStatus.RESOLVED:
                current = None

            eligible = self._eligible_targets(ticket_id, current)
            if target_department not in eligible:
                raise InvalidRevertTargetError(
                    f"Ticket {ticket_id} cannot be reverted to {target_department}",
                    details={"target_department": target_department, "eligible_departments": eligible}
                )

            target = self._revert_step(steps, target_department, current)
            if target is None:
                raise InvalidRevertTargetError(
                    f"Department {target_department} has no earlier step on ticket {ticket_id}",
                    details={"target_department": target_department, "eligible_departments": eligible}
                )

            source = current if current is not None else steps[-1]
            now = self.clock()

            new_steps: List[WorkflowStepStatus] = []
            for step in steps:
                step = step.model_copy(deep=True)
                if step.step_number == target.step_number:
                    step.status = StepStatus.IN_PROGRESS
                    step.started_at = now
                    step.completed_at = None
                    step.actions.append(WorkflowAction(
                        action_id=generate_action_id(),
                        action_type=ActionType.IN_PROGRESS,
                        notes=f"Reverted from {source.department_name}: {reason}",
                        performed_by=acting_user,
                        new_assignee=assignee,
                        timestamp=now,
                    ))
                elif step.step_number > target.step_number:
                    step.status = StepStatus.PENDING
                    step.started_at = None
                    step.completed_at = None
                new_steps.append(step)

            updates: Dict[str, Any] = {
                "workflow_status": new_steps,
                "current_workflow_step": target.step_number,
                "current_department": target.department_name,
                "status": TicketStatus.IN_PROGRESS,
                "due_date": due_date(now, self.reconciler.step_sla(ticket, workflow, target.step_number)),
                "updated_at": now,
            }
            if assignee:
                updates["assignee"] = assignee

            after = ticket.model_copy(update=updates)
            resolution = self.audit_writer.build_resolution(
                ticket_id=ticket_id,
                step_number=source.step_number,
                from_department=source.department_name,
                resolved_by=acting_user,
                resolution_text=reason,
                resolved_at=now,
                is_revert=True,
            )
            history = self.audit_writer.diff(
                ticket, after, reason=reason, actor=acting_user, fields=WORKFLOW_FIELDS, force=True
            )
            saved = self._commit(ticket, after, resolution, history)

        logger.info(
            f"Ticket {ticket_id} reverted from {source.department_name} to {target_department}",
            extra={
                "ticket_id": ticket_id,
                "step_number": target.step_number,
                "action": "revert",
                "actor": acting_user,
            }
        )
        return saved

    def revert_targets(self, ticket_id: str) -> List[str]:
        """Departments the ticket can currently be reverted to"""
        ticket, _, steps = self._load(ticket_id)
        current = None if ticket.status == TicketStatus.RESOLVED else self.reconciler.current_step(steps)
        return [
            department for department in self._eligible_targets(ticket_id, current)
            if self._revert_step(steps, department, current) is not None
        ]

    def reassign(
        self,
        ticket_id: str,
        new_assignee: str,
        actor: Optional[str] = None,
        reason: Optional[str] = None
    ) -> Ticket:
        """
        Change the assignee

        Writes one history entry for the assignee field; workflow state is
        untouched. Reassigning to the current assignee changes nothing.
        """
        require_text(new_assignee=new_assignee)
        new_assignee = new_assignee.strip()

        with self.lock_manager.hold(ticket_id):
            ticket = self.ticket_repo.get_ticket_or_raise(ticket_id)
            if ticket.assignee == new_assignee:
                logger.info(
                    f"Ticket {ticket_id} already assigned to {new_assignee}",
                    extra={"ticket_id": ticket_id, "actor": actor}
                )
                return ticket

            after = ticket.model_copy(update={"assignee": new_assignee, "updated_at": self.clock()})
            history = self.audit_writer.diff(ticket, after, reason=reason, actor=actor, fields=("assignee",))
            saved = self._commit(ticket, after, None, history)

        logger.info(
            f"Ticket {ticket_id} reassigned from {ticket.assignee} to {new_assignee}",
            extra={"ticket_id": ticket_id, "action": "reassign", "actor": actor}
        )
        return saved

    def update_ticket(
        self,
        ticket_id: str,
        updates: Mapping[str, Any],
        reason: Optional[str] = None,
        actor: Optional[str] = None
    ) -> Ticket:
        """
        Edit descriptive ticket fields

        The due date is re-derived from working_days / sla only when no
        workflow step drives the SLA. Nothing is written when no field
        actually changes.

        Raises:
            TicketNotFoundError: Unknown ticket
            ValidationError: Unknown or non-editable field, blank required text
        """
        unknown = sorted(set(updates) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(unknown)}",
                details={"fields": unknown}
            )
        required = {f: updates[f] for f in ("department", "ticket_type", "client_name") if f in updates}
        require_text(**required)

        changes = dict(updates)
        for field in required:
            changes[field] = changes[field].strip()
        if changes.get("sla") is not None:
            changes["sla"] = parse_sla(changes["sla"])

        with self.lock_manager.hold(ticket_id):
            ticket, workflow, steps = self._load(ticket_id)

            merged = ticket.model_dump()
            merged.update(changes)
            try:
                after = Ticket.model_validate(merged)
            except ValueError as e:
                raise ValidationError(f"Invalid ticket update: {e}", details={"fields": sorted(changes)})

            if workflow is None or not workflow.steps:
                after = after.model_copy(update={
                    "due_date": self.reconciler.current_due_date(after, None, steps)
                })

            history = self.audit_writer.diff(
                ticket, after, reason=reason, actor=actor,
                fields=TRACKED_FIELDS + ("sub_category", "sla")
            )
            if history is None:
                return ticket

            after = after.model_copy(update={"updated_at": self.clock(), "workflow_status": steps})
            saved = self._commit(ticket, after, None, history)

        logger.info(
            f"Ticket {ticket_id} updated: {', '.join(c.field for c in history.changes)}",
            extra={"ticket_id": ticket_id, "action": "update", "actor": actor}
        )
        return saved

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _load(self, ticket_id: str) -> Tuple[Ticket, Optional[Workflow], List[WorkflowStepStatus]]:
        """Ticket, its governing workflow and the materialised step list"""
        ticket = self.ticket_repo.get_ticket_or_raise(ticket_id)
        workflow = self.catalog_repo.resolve_workflow(ticket.workflow_id)
        steps = [s.to_stored() for s in self.reconciler.reconcile(ticket, workflow)]
        return ticket, workflow, steps

    def _commit(
        self,
        before: Ticket,
        after: Ticket,
        resolution: Optional[WorkflowResolution],
        history: Optional[TicketHistory]
    ) -> Ticket:
        saved = self.ticket_repo.save_ticket(after, expected_version=before.version)
        try:
            if resolution is not None:
                self.audit_writer.write_resolution(resolution)
            if history is not None:
                self.audit_writer.write_history(history)
        except Exception as e:
            # The ticket is already saved at this point; its audit trail is incomplete
            logger.error(
                f"Audit append failed after saving ticket {after.ticket_id} "
                f"(version {saved.version}): {e}",
                extra={"ticket_id": after.ticket_id, "status": after.status.value},
                exc_info=True
            )
            raise
        return saved

    def _step_after(
        self,
        steps: List[WorkflowStepStatus],
        step_number: int
    ) -> Optional[WorkflowStepStatus]:
        for step in steps:
            if step.step_number == step_number + 1:
                return step
        return None

    def _eligible_targets(
        self,
        ticket_id: str,
        current: Optional[WorkflowStepStatus]
    ) -> List[str]:
        """Departments in the resolution log, minus the current department"""
        current_department = current.department_name if current else None
        return [
            department for department in self.audit_repo.list_resolved_departments(ticket_id)
            if department != current_department
        ]

    def _revert_step(
        self,
        steps: List[WorkflowStepStatus],
        department: str,
        current: Optional[WorkflowStepStatus]
    ) -> Optional[WorkflowStepStatus]:
        """Last step of the department before the current step (anywhere once completed)"""
        limit = current.step_number if current is not None else len(steps) + 1
        candidates = [s for s in steps if s.department_name == department and s.step_number < limit]
        return candidates[-1] if candidates else None

    def _warn_on_repeated_completion(self, ticket_id: str, step_number: int) -> None:
        # Newest first; a revert since the last completion makes a repeat legitimate
        for resolution in self.audit_repo.list_resolutions(ticket_id, limit=0):
            if resolution.is_revert:
                return
            if resolution.step_number == step_number:
                logger.warning(
                    f"Step {step_number} of ticket {ticket_id} completed again without a revert",
                    extra={"ticket_id": ticket_id, "step_number": step_number}
                )
                return
