"""Workflow Engine - Ticket state machine and SLA arithmetic"""
from .engine import WorkflowEngine
from .step_reconciler import StepReconciler
from .audit_writer import AuditWriter
from .locks import TicketLockManager

__all__ = [
    "WorkflowEngine",
    "StepReconciler",
    "AuditWriter",
    "TicketLockManager",
]
