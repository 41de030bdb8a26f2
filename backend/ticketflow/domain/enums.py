"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class TicketStatus(str, Enum):
    """Global ticket status"""
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    OVERDUE = "Overdue"  # Derived flag, recomputed on read


class Priority(str, Enum):
    """Ticket priority"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class StepStatus(str, Enum):
    """Runtime state per workflow step of a ticket"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ActionType(str, Enum):
    """Department action recorded against a step"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SlaUnit(str, Enum):
    """Unit of an SLA quantity"""
    HOURS = "hours"
    DAYS = "days"  # Working days (Mon-Fri)


class SlaOutcome(str, Enum):
    """SLA result of a department completion"""
    MET = "met"
    MISSED = "missed"
    EXCEEDED = "exceeded"


class StepStatusSource(str, Enum):
    """Where a reconciled step status came from"""
    RECORDED = "RECORDED"  # Stored on the ticket
    INFERRED = "INFERRED"  # Derived from current_workflow_step / ticket status
