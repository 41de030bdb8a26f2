"""Attachment Repository - Data access for attachment metadata"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo import DESCENDING

from .mongo_client import get_collection
from ..domain.models import FileAttachment
from ..domain.errors import AttachmentNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AttachmentRepository:
    """Repository for attachment metadata operations"""

    def __init__(self, db: Optional[Database] = None):
        self._attachments: Collection = get_collection("attachments", db)

    def create_attachment(self, attachment: FileAttachment) -> FileAttachment:
        """Create attachment record"""
        doc = attachment.model_dump()
        doc["_id"] = attachment.attachment_id

        self._attachments.insert_one(doc)
        logger.info(
            f"Created attachment: {attachment.attachment_id}",
            extra={"ticket_id": attachment.ticket_id}
        )
        return attachment

    def get_attachment(self, attachment_id: str) -> Optional[FileAttachment]:
        """Get attachment by ID"""
        doc = self._attachments.find_one({"attachment_id": attachment_id})
        if doc:
            doc.pop("_id", None)
            return FileAttachment.model_validate(doc)
        return None

    def get_attachment_or_raise(self, attachment_id: str) -> FileAttachment:
        """Get attachment by ID or raise error"""
        attachment = self.get_attachment(attachment_id)
        if not attachment:
            raise AttachmentNotFoundError(
                f"Attachment {attachment_id} not found",
                details={"attachment_id": attachment_id}
            )
        return attachment

    def get_attachments_for_ticket(self, ticket_id: str) -> List[FileAttachment]:
        """Get all attachments for a ticket"""
        cursor = self._attachments.find({"ticket_id": ticket_id}).sort("uploaded_at", DESCENDING)

        attachments = []
        for doc in cursor:
            doc.pop("_id", None)
            attachments.append(FileAttachment.model_validate(doc))

        return attachments

    def delete_attachment(self, attachment_id: str) -> bool:
        """Delete attachment record; True if one was removed"""
        result = self._attachments.delete_one({"attachment_id": attachment_id})
        return result.deleted_count > 0
