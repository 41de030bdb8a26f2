"""
Tests for time and ID utilities.
"""

from datetime import datetime, timedelta, timezone

from ticketflow.utils.idgen import generate_correlation_id, generate_id, generate_ticket_id
from ticketflow.utils.time import ensure_utc, format_iso, is_overdue, utc_now

MONDAY = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class TestTimeUtils:
    """Tests for UTC helpers."""

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None

    def test_ensure_utc_attaches_utc(self):
        assert ensure_utc(datetime(2024, 1, 1, 9, 0)) == MONDAY
        assert ensure_utc(MONDAY) is MONDAY

    def test_format_iso_uses_z_suffix(self):
        assert format_iso(MONDAY) == "2024-01-01T09:00:00Z"
        assert format_iso(datetime(2024, 1, 1, 9, 0)) == "2024-01-01T09:00:00Z"

    def test_is_overdue(self):
        assert is_overdue(None) is False
        assert is_overdue(MONDAY, MONDAY + timedelta(seconds=1)) is True
        assert is_overdue(MONDAY, MONDAY) is False
        assert is_overdue(datetime(2024, 1, 1, 9, 0), MONDAY + timedelta(hours=1)) is True


class TestIdGeneration:
    """Tests for ID generation."""

    def test_prefixed(self):
        assert generate_ticket_id().startswith("TKT-")
        assert len(generate_id()) == 12

    def test_unique(self):
        assert len({generate_ticket_id() for _ in range(100)}) == 100

    def test_correlation_id(self):
        assert generate_correlation_id().startswith("COR-")
