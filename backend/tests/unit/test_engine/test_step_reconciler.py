"""
Tests for the Step Reconciler.

Merging workflow definitions with the step statuses recorded on a ticket.
"""

from datetime import datetime, timedelta, timezone

from ticketflow.domain.enums import ActionType, SlaUnit, StepStatus, StepStatusSource, TicketStatus
from ticketflow.domain.models import (
    SlaQuantity, Ticket, Workflow, WorkflowAction, WorkflowStep, WorkflowStepStatus
)
from ticketflow.engine.step_reconciler import StepReconciler

MONDAY = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

WORKFLOW = Workflow(
    workflow_id="WF-1",
    name="Three Step",
    steps=[
        WorkflowStep(department_id="D1", department_name="Intake", estimated_days=1),
        WorkflowStep(department_id="D2", department_name="Review", estimated_days=2),
        WorkflowStep(department_id="D3", department_name="Billing", estimated_hours=6, sla_unit=SlaUnit.HOURS),
    ]
)


def make_ticket(**overrides):
    fields = {
        "ticket_id": "TKT-1",
        "department": "Intake",
        "ticket_type": "Onboarding",
        "client_name": "Acme Corp",
        "working_days": 3,
        "created_at": MONDAY,
        "updated_at": MONDAY,
        "due_date": MONDAY + timedelta(days=3),
    }
    fields.update(overrides)
    return Ticket(**fields)


def recorded(step_number, status, **kwargs):
    department = WORKFLOW.steps[step_number - 1]
    return WorkflowStepStatus(
        step_number=step_number,
        department_id=department.department_id,
        department_name=department.department_name,
        status=status,
        **kwargs
    )


class TestReconcile:
    """Tests for the three precedence rules."""

    def test_workflow_steps_inferred_from_current_step(self):
        """Test that missing entries are inferred from current_workflow_step."""
        ticket = make_ticket(current_workflow_step=2, status=TicketStatus.IN_PROGRESS)

        steps = StepReconciler().reconcile(ticket, WORKFLOW)

        assert [s.status for s in steps] == [StepStatus.COMPLETED, StepStatus.IN_PROGRESS, StepStatus.PENDING]
        assert all(s.source == StepStatusSource.INFERRED for s in steps)
        assert [s.department_name for s in steps] == ["Intake", "Review", "Billing"]

    def test_recorded_entry_wins(self):
        """Test that a recorded status overrides the inferred one."""
        ticket = make_ticket(
            current_workflow_step=1,
            workflow_status=[recorded(1, StepStatus.COMPLETED, completed_at=MONDAY)]
        )

        steps = StepReconciler().reconcile(ticket, WORKFLOW)

        assert steps[0].status == StepStatus.COMPLETED
        assert steps[0].source == StepStatusSource.RECORDED
        assert steps[0].completed_at == MONDAY
        assert steps[1].source == StepStatusSource.INFERRED
        assert steps[1].status == StepStatus.PENDING

    def test_resolved_ticket_infers_current_step_completed(self):
        ticket = make_ticket(current_workflow_step=3, status=TicketStatus.RESOLVED)

        steps = StepReconciler().reconcile(ticket, WORKFLOW)

        assert all(s.status == StepStatus.COMPLETED for s in steps)

    def test_recorded_list_used_without_workflow(self):
        ticket = make_ticket(workflow_status=[
            recorded(1, StepStatus.COMPLETED),
            recorded(2, StepStatus.IN_PROGRESS),
        ])

        steps = StepReconciler().reconcile(ticket, None)

        assert [s.step_number for s in steps] == [1, 2]
        assert [s.status for s in steps] == [StepStatus.COMPLETED, StepStatus.IN_PROGRESS]
        assert all(s.source == StepStatusSource.RECORDED for s in steps)

    def test_empty_workflow_counts_as_missing(self):
        ticket = make_ticket(status=TicketStatus.IN_PROGRESS)

        steps = StepReconciler().reconcile(ticket, Workflow(workflow_id="WF-0", name="Empty"))

        assert len(steps) == 1
        assert steps[0].department_name == "Intake"
        assert steps[0].status == StepStatus.IN_PROGRESS

    def test_synthetic_step_status_follows_ticket(self):
        reconciler = StepReconciler()

        open_steps = reconciler.reconcile(make_ticket(status=TicketStatus.OPEN))
        resolved_steps = reconciler.reconcile(make_ticket(status=TicketStatus.RESOLVED))

        assert open_steps[0].status == StepStatus.PENDING
        assert resolved_steps[0].status == StepStatus.COMPLETED
        assert open_steps[0].source == StepStatusSource.INFERRED

    def test_reconcile_is_idempotent(self):
        """Test that reconciling twice yields the same list and leaves the ticket alone."""
        ticket = make_ticket(
            current_workflow_step=2,
            workflow_status=[recorded(1, StepStatus.COMPLETED, completed_at=MONDAY)]
        )
        before = ticket.model_dump()
        reconciler = StepReconciler()

        first = reconciler.reconcile(ticket, WORKFLOW)
        second = reconciler.reconcile(ticket, WORKFLOW)

        assert [s.model_dump() for s in first] == [s.model_dump() for s in second]
        assert ticket.model_dump() == before


class TestCurrentStep:
    """Tests for current_step."""

    def test_first_in_progress_wins(self):
        steps = [recorded(1, StepStatus.PENDING), recorded(2, StepStatus.IN_PROGRESS)]
        assert StepReconciler().current_step(steps).step_number == 2

    def test_first_pending_when_nothing_in_progress(self):
        steps = [recorded(1, StepStatus.COMPLETED), recorded(2, StepStatus.PENDING), recorded(3, StepStatus.PENDING)]
        assert StepReconciler().current_step(steps).step_number == 2

    def test_none_when_all_completed(self):
        steps = [recorded(1, StepStatus.COMPLETED), recorded(2, StepStatus.COMPLETED)]
        assert StepReconciler().current_step(steps) is None


class TestStepTiming:
    """Tests for step_started_at, step_sla and current_due_date."""

    def test_started_at_preferred(self):
        start = MONDAY + timedelta(hours=2)
        steps = [recorded(1, StepStatus.IN_PROGRESS, started_at=start)]
        assert StepReconciler().step_started_at(make_ticket(), steps, steps[0]) == start

    def test_earliest_action_used(self):
        actions = [
            WorkflowAction(action_id="A2", action_type=ActionType.IN_PROGRESS, notes="later",
                           timestamp=MONDAY + timedelta(hours=5)),
            WorkflowAction(action_id="A1", action_type=ActionType.IN_PROGRESS, notes="first",
                           timestamp=MONDAY + timedelta(hours=1)),
        ]
        steps = [recorded(1, StepStatus.IN_PROGRESS, actions=actions)]
        assert StepReconciler().step_started_at(make_ticket(), steps, steps[0]) == MONDAY + timedelta(hours=1)

    def test_previous_completion_used(self):
        done = MONDAY + timedelta(days=1)
        steps = [recorded(1, StepStatus.COMPLETED, completed_at=done), recorded(2, StepStatus.IN_PROGRESS)]
        assert StepReconciler().step_started_at(make_ticket(), steps, steps[1]) == done

    def test_falls_back_to_created_at(self):
        steps = [recorded(1, StepStatus.PENDING)]
        assert StepReconciler().step_started_at(make_ticket(), steps, steps[0]) == MONDAY

    def test_step_sla_from_workflow_then_ticket(self):
        reconciler = StepReconciler()
        ticket = make_ticket(working_days=4)

        assert reconciler.step_sla(ticket, WORKFLOW, 3) == SlaQuantity(value=6, unit=SlaUnit.HOURS)
        assert reconciler.step_sla(ticket, WORKFLOW, 9) == SlaQuantity(value=4, unit=SlaUnit.DAYS)
        assert reconciler.step_sla(ticket.model_copy(update={"sla": SlaQuantity(value=8, unit=SlaUnit.HOURS)}),
                                   None, 1) == SlaQuantity(value=8, unit=SlaUnit.HOURS)

    def test_current_due_date(self):
        ticket = make_ticket(current_workflow_step=2, status=TicketStatus.IN_PROGRESS)
        reconciler = StepReconciler()
        steps = reconciler.reconcile(ticket, WORKFLOW)

        # Step 2 has no start of its own, so the clock starts at ticket creation
        assert reconciler.current_due_date(ticket, WORKFLOW, steps) == datetime(2024, 1, 3, 9, 0, tzinfo=timezone.utc)

    def test_completed_ticket_keeps_stored_due_date(self):
        ticket = make_ticket(current_workflow_step=3, status=TicketStatus.RESOLVED)
        reconciler = StepReconciler()
        steps = reconciler.reconcile(ticket, WORKFLOW)

        assert reconciler.current_due_date(ticket, WORKFLOW, steps) == ticket.due_date
