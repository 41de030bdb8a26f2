"""
SLA Calculator - Working-day calendar arithmetic

Pure functions converting SLA quantities into due dates and measuring the
time a department actually took. A working day is any day that is not a
Saturday or Sunday.
"""
import math
import re
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from ..domain.enums import SlaOutcome, SlaUnit, TicketStatus
from ..domain.models import SlaQuantity, Workflow
from ..utils.time import is_overdue
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SLA = SlaQuantity(value=5, unit=SlaUnit.DAYS)

_HOURS_PATTERN = re.compile(r"^(\d+)\s*(h|hr|hrs|hour|hours)$", re.IGNORECASE)
_DAYS_PATTERN = re.compile(r"^(\d+)\s*(wd|working\s+days?|days?|d)?$", re.IGNORECASE)
_SAME_DAY_PATTERN = re.compile(r"^same\s*day$", re.IGNORECASE)


def is_working_day(day: datetime) -> bool:
    """Monday-Friday"""
    return day.weekday() < 5


def due_date(start: datetime, sla: SlaQuantity) -> datetime:
    """
    Calculate the due date for an SLA starting at ``start``

    Hours are added directly. Working days walk forward one calendar day at
    a time, counting only weekdays, and keep the wall-clock time of
    ``start``. A zero SLA returns ``start``.

    Args:
        start: Moment the SLA clock starts
        sla: Expected duration

    Returns:
        Due datetime (same timezone as ``start``)
    """
    if sla.unit == SlaUnit.HOURS:
        return start + timedelta(hours=sla.value)

    current = start
    days_added = 0
    while days_added < sla.value:
        current = current + timedelta(days=1)
        if is_working_day(current):
            days_added += 1
    return current


def working_days_between(start: datetime, end: datetime) -> int:
    """Count weekdays d with start.date() < d <= end.date()"""
    if end <= start:
        return 0

    count = 0
    current = start.date()
    last = end.date()
    while current < last:
        current = current + timedelta(days=1)
        if current.weekday() < 5:
            count += 1
    return count


def actual_time_taken(start: datetime, end: datetime, expected: SlaQuantity) -> SlaQuantity:
    """
    Measure elapsed time in the unit of the expected SLA

    Working days use the same weekend-skipping walk as ``due_date``; hours
    are rounded up to the next whole hour.
    """
    if expected.unit == SlaUnit.HOURS:
        seconds = max((end - start).total_seconds(), 0)
        return SlaQuantity(value=math.ceil(seconds / 3600), unit=SlaUnit.HOURS)
    return SlaQuantity(value=working_days_between(start, end), unit=SlaUnit.DAYS)


def evaluate_sla_status(
    expected: SlaQuantity,
    actual: SlaQuantity,
    exceeded_factor: float = 2.0
) -> SlaOutcome:
    """
    Compare actual against expected (same unit)

    met      - actual <= expected
    exceeded - actual > expected * exceeded_factor
    missed   - anything in between
    """
    if actual.value <= expected.value:
        return SlaOutcome.MET
    if actual.value > expected.value * exceeded_factor:
        return SlaOutcome.EXCEEDED
    return SlaOutcome.MISSED


def parse_sla(raw: Any) -> SlaQuantity:
    """
    Parse an SLA from any stored encoding

    Accepts SlaQuantity, {"value", "unit"} mappings, integers and legacy
    text such as "12h", "5WD", "5 Working Days", "Same Day" or "7".
    Anything that cannot be understood falls back to DEFAULT_SLA (5 working
    days).
    """
    if isinstance(raw, SlaQuantity):
        return raw

    if isinstance(raw, bool):
        return _fallback(raw)

    if isinstance(raw, int):
        return SlaQuantity(value=raw, unit=SlaUnit.DAYS) if raw >= 0 else _fallback(raw)

    if isinstance(raw, Mapping):
        value = raw.get("value")
        unit = raw.get("unit", SlaUnit.DAYS.value)
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0 \
                and unit in (SlaUnit.HOURS.value, SlaUnit.DAYS.value):
            return SlaQuantity(value=value, unit=SlaUnit(unit))
        return _fallback(raw)

    if isinstance(raw, str):
        text = raw.strip()
        match = _HOURS_PATTERN.match(text)
        if match:
            return SlaQuantity(value=int(match.group(1)), unit=SlaUnit.HOURS)
        match = _DAYS_PATTERN.match(text)
        if match:
            return SlaQuantity(value=int(match.group(1)), unit=SlaUnit.DAYS)
        if _SAME_DAY_PATTERN.match(text):
            return SlaQuantity(value=0, unit=SlaUnit.DAYS)

    return _fallback(raw)


def _fallback(raw: Any) -> SlaQuantity:
    logger.debug(f"Unparseable SLA {raw!r}, using default {format_sla(DEFAULT_SLA)}")
    return DEFAULT_SLA


def format_sla(sla: SlaQuantity) -> str:
    """Short display form: 12h / 5WD"""
    if sla.unit == SlaUnit.HOURS:
        return f"{sla.value}h"
    return f"{sla.value}WD"


def workflow_total_sla(workflow: Optional[Workflow]) -> Optional[SlaQuantity]:
    """Sum of all step estimates, expressed in the unit of the first step"""
    if workflow is None or not workflow.steps:
        return None

    unit = workflow.steps[0].sla_unit
    total = 0
    for step in workflow.steps:
        if unit == SlaUnit.HOURS:
            total += step.estimated_hours if step.estimated_hours is not None else (step.estimated_days or 1)
        else:
            total += step.estimated_days if step.estimated_days is not None else 1
    return SlaQuantity(value=total, unit=unit)


def effective_status(
    status: TicketStatus,
    due: Optional[datetime],
    now: Optional[datetime] = None
) -> TicketStatus:
    """Overlay the derived Overdue flag on a stored status"""
    if status == TicketStatus.RESOLVED:
        return status
    if is_overdue(due, now):
        return TicketStatus.OVERDUE
    if status == TicketStatus.OVERDUE:
        # Stale stored flag; the ticket is back within its SLA
        return TicketStatus.IN_PROGRESS
    return status
