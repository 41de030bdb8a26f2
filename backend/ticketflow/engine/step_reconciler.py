"""Step Reconciler - Merge workflow definitions with recorded ticket progress"""
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..domain.models import (
    Ticket, Workflow, WorkflowStepStatus, RecordedStepStatus, InferredStepStatus,
    ReconciledStep, SlaQuantity
)
from ..domain.enums import StepStatus, TicketStatus, SlaUnit
from .sla_calculator import due_date


class StepReconciler:
    """
    Produce the authoritative ordered step list for a ticket

    Precedence:
    1. Workflow with at least one step -> one entry per step; a recorded
       entry for the step number wins, otherwise the status is inferred
       from current_workflow_step and the ticket status
    2. No usable workflow but recorded statuses -> recorded list unchanged
    3. Otherwise a single synthetic step for the ticket's own department

    The workflow is always passed in by the caller; nothing is looked up here.
    """

    def reconcile(
        self,
        ticket: Ticket,
        workflow: Optional[Workflow] = None
    ) -> List[ReconciledStep]:
        recorded: Dict[int, WorkflowStepStatus] = {
            s.step_number: s for s in ticket.workflow_status
        }

        if workflow is not None and workflow.steps:
            current = ticket.current_workflow_step or 1
            merged: List[ReconciledStep] = []
            for index, step in enumerate(workflow.steps):
                step_number = index + 1
                existing = recorded.get(step_number)
                if existing is not None:
                    merged.append(RecordedStepStatus(
                        step_number=step_number,
                        department_id=step.department_id,
                        department_name=step.department_name,
                        status=existing.status,
                        actions=list(existing.actions),
                        started_at=existing.started_at,
                        completed_at=existing.completed_at,
                    ))
                else:
                    merged.append(InferredStepStatus(
                        step_number=step_number,
                        department_id=step.department_id,
                        department_name=step.department_name,
                        status=self._infer_status(step_number, current, ticket.status),
                    ))
            return merged

        if ticket.workflow_status:
            return [
                RecordedStepStatus.model_validate(s.model_dump())
                for s in ticket.workflow_status
            ]

        return [InferredStepStatus(
            step_number=1,
            department_id=ticket.department,
            department_name=ticket.department,
            status=self._single_step_status(ticket.status),
        )]

    def _infer_status(self, step_number: int, current: int, ticket_status: TicketStatus) -> StepStatus:
        if step_number < current:
            return StepStatus.COMPLETED
        if step_number == current:
            if ticket_status == TicketStatus.RESOLVED:
                return StepStatus.COMPLETED
            return StepStatus.IN_PROGRESS
        return StepStatus.PENDING

    def _single_step_status(self, ticket_status: TicketStatus) -> StepStatus:
        if ticket_status in (TicketStatus.IN_PROGRESS, TicketStatus.OVERDUE):
            return StepStatus.IN_PROGRESS
        if ticket_status == TicketStatus.RESOLVED:
            return StepStatus.COMPLETED
        return StepStatus.PENDING

    # =========================================================================
    # Derived views
    # =========================================================================

    def current_step(
        self,
        steps: Sequence[WorkflowStepStatus]
    ) -> Optional[WorkflowStepStatus]:
        """First in_progress step, else first pending step, else None"""
        for step in steps:
            if step.status == StepStatus.IN_PROGRESS:
                return step
        for step in steps:
            if step.status == StepStatus.PENDING:
                return step
        return None

    def step_started_at(
        self,
        ticket: Ticket,
        steps: Sequence[WorkflowStepStatus],
        step: WorkflowStepStatus
    ) -> datetime:
        """When the SLA clock of a step started"""
        if step.started_at is not None:
            return step.started_at
        if step.actions:
            return min(a.timestamp for a in step.actions)
        for previous in steps:
            if previous.step_number == step.step_number - 1 and previous.completed_at is not None:
                return previous.completed_at
        return ticket.created_at

    def step_sla(
        self,
        ticket: Ticket,
        workflow: Optional[Workflow],
        step_number: int
    ) -> SlaQuantity:
        """Expected SLA for a step; falls back to the ticket's own SLA"""
        if workflow is not None:
            definition = workflow.get_step(step_number)
            if definition is not None:
                return definition.sla
        return self.ticket_sla(ticket)

    def ticket_sla(self, ticket: Ticket) -> SlaQuantity:
        if ticket.sla is not None:
            return ticket.sla
        return SlaQuantity(value=ticket.working_days, unit=SlaUnit.DAYS)

    def current_due_date(
        self,
        ticket: Ticket,
        workflow: Optional[Workflow],
        steps: Sequence[WorkflowStepStatus]
    ) -> datetime:
        """Due date of the current step, or the stored due date once completed"""
        current = self.current_step(steps)
        if current is None:
            return ticket.due_date
        started = self.step_started_at(ticket, steps, current)
        return due_date(started, self.step_sla(ticket, workflow, current.step_number))
