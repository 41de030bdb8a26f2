"""
Seed Data Script - Creates sample departments and workflows for testing
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ticketflow.repositories.mongo_client import create_indexes
from ticketflow.repositories.catalog_repo import CatalogRepository
from ticketflow.domain.models import Department, TicketType, Workflow, WorkflowStep
from ticketflow.domain.enums import Priority, SlaUnit
from ticketflow.engine.sla_calculator import parse_sla
from ticketflow.utils.idgen import generate_workflow_id, generate_department_id, generate_ticket_type_id


# Department name -> [(ticket type, legacy SLA text, priority)]
DEPARTMENTS = {
    "Customer Care": [
        ("Complaint", "2 WD", Priority.HIGH),
        ("General Inquiry", "Same Day", Priority.LOW),
    ],
    "Contracts": [
        ("Contract Amendment", "5 Working Days", Priority.MEDIUM),
        ("Contract Termination", "10WD", Priority.HIGH),
    ],
    "Collection": [
        ("Payment Plan", "3 Days", Priority.MEDIUM),
    ],
    "Security": [
        ("Access Card", "4h", Priority.MEDIUM),
        ("Incident Report", "2 hours", Priority.CRITICAL),
    ],
    "FM (Facilities Management)": [
        ("Maintenance Request", "3WD", Priority.MEDIUM),
    ],
}


def create_sample_catalog():
    """Create sample departments and two workflows"""
    repo = CatalogRepository()

    # Check if already seeded
    if repo.list_departments() or repo.list_workflows():
        print("Database already has data. Skipping seed.")
        return

    department_ids = {name: generate_department_id() for name in DEPARTMENTS}

    handover = Workflow(
        workflow_id=generate_workflow_id(),
        name="Standard Handover",
        description="Customer Care triage, contract review, then collection",
        is_default=True,
        steps=[
            WorkflowStep(department_id=department_ids["Customer Care"], department_name="Customer Care",
                         estimated_days=1, sla_unit=SlaUnit.DAYS),
            WorkflowStep(department_id=department_ids["Contracts"], department_name="Contracts",
                         estimated_days=2, sla_unit=SlaUnit.DAYS),
            WorkflowStep(department_id=department_ids["Collection"], department_name="Collection",
                         estimated_days=2, sla_unit=SlaUnit.DAYS),
        ]
    )
    incident = Workflow(
        workflow_id=generate_workflow_id(),
        name="Security Incident",
        description="Security assessment followed by facilities repair",
        steps=[
            WorkflowStep(department_id=department_ids["Security"], department_name="Security",
                         estimated_hours=4, sla_unit=SlaUnit.HOURS),
            WorkflowStep(department_id=department_ids["FM (Facilities Management)"],
                         department_name="FM (Facilities Management)",
                         estimated_hours=8, sla_unit=SlaUnit.HOURS),
        ]
    )
    repo.create_workflow(handover)
    repo.create_workflow(incident)

    for name, ticket_types in DEPARTMENTS.items():
        types = []
        for type_name, sla_text, priority in ticket_types:
            sla = parse_sla(sla_text)
            types.append(TicketType(
                ticket_type_id=generate_ticket_type_id(),
                name=type_name,
                # default_wd is in working days; hour SLAs round up to one day
                default_wd=max(sla.value, 1) if sla.unit == SlaUnit.DAYS else 1,
                sub_category="General",
                priority=priority,
                workflow_id=incident.workflow_id if type_name == "Incident Report" else None,
            ))
        repo.create_department(Department(
            department_id=department_ids[name],
            name=name,
            sub_categories=["General"],
            ticket_types=types,
        ))

    print("Created sample catalog:")
    print(f"  Departments: {', '.join(DEPARTMENTS)}")
    print(f"  Workflows: {handover.name} (default, {handover.workflow_id}), "
          f"{incident.name} ({incident.workflow_id})")


if __name__ == "__main__":
    print("Creating indexes...")
    create_indexes()
    print("Seeding data...")
    create_sample_catalog()
    print("Done!")
