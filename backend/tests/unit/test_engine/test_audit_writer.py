"""
Tests for the Audit Writer.

Field-level diffs and append-only persistence of history and resolutions.
"""

from datetime import datetime, timedelta, timezone

from ticketflow.domain.enums import Priority, SlaOutcome, SlaUnit, TicketStatus
from ticketflow.domain.models import SlaQuantity, Ticket
from ticketflow.engine.audit_writer import AuditWriter
from ticketflow.repositories.audit_repo import AuditRepository

MONDAY = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


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


class TestDiff:
    """Tests for AuditWriter.diff."""

    def test_no_op_update_returns_none(self, db):
        ticket = make_ticket()
        writer = AuditWriter(AuditRepository(db), clock=lambda: MONDAY)

        assert writer.diff(ticket, ticket.model_copy()) is None

    def test_untracked_field_ignored(self, db):
        ticket = make_ticket()
        writer = AuditWriter(AuditRepository(db), clock=lambda: MONDAY)

        assert writer.diff(ticket, ticket.model_copy(update={"updated_at": MONDAY + timedelta(hours=1)})) is None

    def test_one_change_per_field(self, db):
        """Test that changed fields share one entry with plain enum values."""
        before = make_ticket()
        after = before.model_copy(update={
            "priority": Priority.CRITICAL,
            "status": TicketStatus.IN_PROGRESS,
            "working_days": 5,
        })
        writer = AuditWriter(AuditRepository(db), clock=lambda: MONDAY)

        entry = writer.diff(before, after, reason="escalated", actor="alice")

        changes = {c.field: (c.old_value, c.new_value) for c in entry.changes}
        assert changes == {
            "working_days": (3, 5),
            "priority": ("Medium", "Critical"),
            "status": ("Open", "In Progress"),
        }
        assert entry.changed_by == "alice"
        assert entry.reason == "escalated"
        assert entry.changed_at == MONDAY

    def test_force_returns_empty_entry(self, db):
        ticket = make_ticket()
        writer = AuditWriter(AuditRepository(db), clock=lambda: MONDAY)

        entry = writer.diff(ticket, ticket, reason="note", force=True)

        assert entry is not None
        assert entry.changes == []

    def test_typed_values_survive_storage(self, db):
        """Test that SLA quantities and datetimes keep their type in the log."""
        before = make_ticket()
        after = before.model_copy(update={
            "sla": SlaQuantity(value=12, unit=SlaUnit.HOURS),
            "due_date": MONDAY + timedelta(hours=12),
        })
        writer = AuditWriter(AuditRepository(db), clock=lambda: MONDAY)

        writer.write_history(writer.diff(before, after, fields=("sla", "due_date")))
        stored = AuditRepository(db).list_history("TKT-1")[0]

        changes = {c.field: c for c in stored.changes}
        assert changes["sla"].old_value is None
        assert changes["sla"].new_value == SlaQuantity(value=12, unit=SlaUnit.HOURS)
        assert changes["due_date"].new_value == MONDAY + timedelta(hours=12)


class TestResolutions:
    """Tests for resolution records."""

    def test_write_and_list(self, db):
        repo = AuditRepository(db)
        writer = AuditWriter(repo, clock=lambda: MONDAY)

        for step_number, department in ((1, "Intake"), (2, "Review")):
            writer.write_resolution(writer.build_resolution(
                ticket_id="TKT-1",
                step_number=step_number,
                from_department=department,
                resolved_by="alice",
                resolution_text="done",
                resolved_at=MONDAY + timedelta(days=step_number),
                expected_sla=SlaQuantity(value=2),
                actual_time_taken=SlaQuantity(value=1),
                sla_status=SlaOutcome.MET,
            ))

        resolutions = repo.list_resolutions("TKT-1")
        assert [r.step_number for r in resolutions] == [2, 1]
        assert resolutions[0].sla_status == SlaOutcome.MET
        assert repo.count_resolutions("TKT-1") == 2
        assert repo.list_resolved_departments("TKT-1") == ["Intake", "Review"]
