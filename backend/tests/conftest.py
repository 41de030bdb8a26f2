"""
Pytest Configuration and Fixtures

This file contains shared fixtures and configuration for all tests.

Repositories receive a mongomock database, and the engine and services
receive a settable clock. Dates are whole seconds because MongoDB keeps
millisecond precision. 2024-01-01 is a Monday.
"""

from datetime import datetime, timedelta, timezone

import mongomock
import pytest

from ticketflow.config.settings import Settings
from ticketflow.domain.enums import Priority, SlaUnit
from ticketflow.domain.models import Department, TicketType, Workflow, WorkflowStep
from ticketflow.engine.engine import WorkflowEngine
from ticketflow.engine.locks import TicketLockManager
from ticketflow.repositories.catalog_repo import CatalogRepository
from ticketflow.services.ticket_service import TicketService

MONDAY = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

TWO_STEP_WORKFLOW_ID = "WF-two-step"
HOURLY_WORKFLOW_ID = "WF-hourly"


class FrozenClock:
    """Clock that only moves when a test moves it"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(MONDAY)


@pytest.fixture
def db():
    client = mongomock.MongoClient(tz_aware=True)
    return client["ticketflow_test"]


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        attachments_base_path=str(tmp_path / "attachments"),
        attachments_max_mb=1,
        allowed_mime_types="application/pdf,text/plain",
        default_working_days=5,
        sla_exceeded_factor=2.0,
    )


@pytest.fixture
def catalog(db):
    """
    Seeded catalog

    - "Two Step" (default): Intake 2WD -> Review 2WD
    - "Hourly": Security 4h -> Intake 8h
    """
    repo = CatalogRepository(db)
    repo.create_workflow(Workflow(
        workflow_id=TWO_STEP_WORKFLOW_ID,
        name="Two Step",
        is_default=True,
        steps=[
            WorkflowStep(department_id="DEPT-intake", department_name="Intake", estimated_days=2),
            WorkflowStep(department_id="DEPT-review", department_name="Review", estimated_days=2),
        ]
    ))
    repo.create_workflow(Workflow(
        workflow_id=HOURLY_WORKFLOW_ID,
        name="Hourly",
        steps=[
            WorkflowStep(department_id="DEPT-security", department_name="Security",
                         estimated_hours=4, sla_unit=SlaUnit.HOURS),
            WorkflowStep(department_id="DEPT-intake", department_name="Intake",
                         estimated_hours=8, sla_unit=SlaUnit.HOURS),
        ]
    ))
    repo.create_department(Department(
        department_id="DEPT-intake",
        name="Intake",
        sub_categories=["General"],
        ticket_types=[
            TicketType(ticket_type_id="TT-onboarding", name="Onboarding", default_wd=3,
                       sub_category="General", priority=Priority.HIGH),
        ]
    ))
    repo.create_department(Department(
        department_id="DEPT-review",
        name="Review",
        ticket_types=[
            TicketType(ticket_type_id="TT-audit", name="Audit", default_wd=4),
        ]
    ))
    repo.create_department(Department(
        department_id="DEPT-security",
        name="Security",
        ticket_types=[
            TicketType(ticket_type_id="TT-incident", name="Incident", default_wd=1,
                       priority=Priority.CRITICAL, workflow_id=HOURLY_WORKFLOW_ID),
        ]
    ))
    return repo


@pytest.fixture
def engine(db, catalog, clock, test_settings):
    return WorkflowEngine(db, clock=clock, lock_manager=TicketLockManager(), app_settings=test_settings)


@pytest.fixture
def service(db, catalog, clock, test_settings):
    return TicketService(db, clock=clock, lock_manager=TicketLockManager(), app_settings=test_settings)


@pytest.fixture
def make_ticket(engine):
    """Create a ticket in the default two-step workflow"""
    def _make(**overrides):
        fields = {
            "department": "Intake",
            "ticket_type": "Onboarding",
            "client_name": "Acme Corp",
        }
        fields.update(overrides)
        return engine.create_ticket(**fields)
    return _make
