"""Ticket Repository - Data access for tickets"""
import re
from typing import Any, Dict, List, Optional
from datetime import datetime
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo import DESCENDING

from .mongo_client import get_collection
from ..domain.models import Ticket
from ..domain.enums import TicketStatus, Priority
from ..domain.errors import TicketNotFoundError, ConcurrencyError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TicketRepository:
    """Repository for ticket operations"""

    def __init__(self, db: Optional[Database] = None):
        self._tickets: Collection = get_collection("tickets", db)

    # =========================================================================
    # Ticket CRUD
    # =========================================================================

    def create_ticket(self, ticket: Ticket) -> Ticket:
        """Create a new ticket"""
        # Don't use mode="json" - it converts datetime to strings, breaking MongoDB sorting
        doc = ticket.model_dump()
        doc["_id"] = ticket.ticket_id

        self._tickets.insert_one(doc)
        logger.info(f"Created ticket: {ticket.ticket_id}", extra={"ticket_id": ticket.ticket_id})
        return ticket

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID"""
        doc = self._tickets.find_one({"ticket_id": ticket_id})
        if doc:
            doc.pop("_id", None)
            return Ticket.model_validate(doc)
        return None

    def get_ticket_or_raise(self, ticket_id: str) -> Ticket:
        """Get ticket by ID or raise error"""
        ticket = self.get_ticket(ticket_id)
        if not ticket:
            raise TicketNotFoundError(
                f"Ticket {ticket_id} not found",
                details={"ticket_id": ticket_id}
            )
        return ticket

    def save_ticket(self, ticket: Ticket, expected_version: int) -> Ticket:
        """
        Replace the stored ticket with optimistic concurrency

        The write only applies if the stored version still equals
        ``expected_version``; the saved ticket carries version + 1.
        """
        saved = ticket.model_copy(update={"version": expected_version + 1})
        doc = saved.model_dump()

        result = self._tickets.replace_one(
            {"ticket_id": ticket.ticket_id, "version": expected_version},
            doc
        )

        if result.matched_count == 0:
            if self._tickets.find_one({"ticket_id": ticket.ticket_id}):
                raise ConcurrencyError(
                    f"Ticket {ticket.ticket_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise TicketNotFoundError(f"Ticket {ticket.ticket_id} not found")

        logger.info(f"Saved ticket: {ticket.ticket_id}", extra={"ticket_id": ticket.ticket_id})
        return saved

    def list_tickets(
        self,
        department: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        priority: Optional[Priority] = None,
        search: Optional[str] = None,
        overdue_at: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Ticket]:
        """List tickets with filters, newest first"""
        query = self._build_query(department, status, priority, search, overdue_at)
        cursor = self._tickets.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)

        tickets = []
        for doc in cursor:
            doc.pop("_id", None)
            tickets.append(Ticket.model_validate(doc))

        return tickets

    def count_tickets(
        self,
        department: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        priority: Optional[Priority] = None,
        search: Optional[str] = None,
        overdue_at: Optional[datetime] = None
    ) -> int:
        """Count tickets with filters"""
        query = self._build_query(department, status, priority, search, overdue_at)
        return self._tickets.count_documents(query)

    def _build_query(
        self,
        department: Optional[str],
        status: Optional[TicketStatus],
        priority: Optional[Priority],
        search: Optional[str],
        overdue_at: Optional[datetime]
    ) -> Dict[str, Any]:
        and_conditions: List[Dict[str, Any]] = []

        if department:
            and_conditions.append({"department": department})
        if status:
            and_conditions.append({"status": status.value})
        if priority:
            and_conditions.append({"priority": priority.value})
        if overdue_at is not None:
            # Overdue is derived: not resolved and past its due date
            and_conditions.append({"status": {"$ne": TicketStatus.RESOLVED.value}})
            and_conditions.append({"due_date": {"$lt": overdue_at}})
        if search:
            pattern = re.escape(search)
            and_conditions.append({"$or": [
                {"client_name": {"$regex": pattern, "$options": "i"}},
                {"ticket_id": {"$regex": pattern, "$options": "i"}},
                {"ticket_type": {"$regex": pattern, "$options": "i"}},
            ]})

        if not and_conditions:
            return {}
        if len(and_conditions) == 1:
            return and_conditions[0]
        return {"$and": and_conditions}
