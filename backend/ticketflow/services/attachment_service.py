"""Attachment Service - Opaque file store for resolution attachments"""
import base64
import binascii
import os
from typing import Callable, List, Optional, Sequence, Tuple
from datetime import datetime
from pymongo.database import Database

from ..domain.models import FileAttachment, AttachmentPayload
from ..domain.errors import AttachmentTooLargeError, InvalidMimeTypeError, AttachmentError, AttachmentNotFoundError
from ..repositories.attachment_repo import AttachmentRepository
from ..config.settings import Settings, settings
from ..utils.idgen import generate_attachment_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

# (name, mime type, decoded bytes) accepted for storage
DecodedFile = Tuple[str, str, bytes]


class AttachmentService:
    """
    Service for attachment storage

    Bytes are written under <base path>/<ticket_id>/; only metadata and the
    relative storage path are kept in the database.
    """

    def __init__(
        self,
        db: Optional[Database] = None,
        app_settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.attachment_repo = AttachmentRepository(db)
        self.settings = app_settings if app_settings is not None else settings
        self.clock = clock

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, mime_type: str, content: bytes) -> str:
        """Check mime type and size; returns the effective mime type"""
        mime_type = mime_type or "application/octet-stream"
        if mime_type not in self.settings.allowed_mime_types_list:
            raise InvalidMimeTypeError(
                f"File type {mime_type} is not allowed",
                details={
                    "mime_type": mime_type,
                    "allowed": self.settings.allowed_mime_types_list
                }
            )

        if len(content) > self.settings.attachments_max_bytes:
            raise AttachmentTooLargeError(
                f"File exceeds maximum size of {self.settings.attachments_max_mb}MB",
                details={
                    "size_bytes": len(content),
                    "max_bytes": self.settings.attachments_max_bytes
                }
            )
        return mime_type

    def decode(self, name: str, data: str) -> bytes:
        """Decode a base64 payload; a data URL prefix is accepted"""
        if data.startswith("data:") and "," in data:
            data = data.split(",", 1)[1]
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            raise AttachmentError(
                f"Attachment {name} is not valid base64",
                details={"name": name}
            )

    def prepare(self, payloads: Sequence[AttachmentPayload]) -> List[DecodedFile]:
        """Decode and validate every payload without writing anything"""
        prepared = []
        for payload in payloads:
            content = self.decode(payload.name, payload.data)
            mime_type = self.validate(payload.mime_type, content)
            prepared.append((payload.name, mime_type, content))
        return prepared

    # =========================================================================
    # Storage
    # =========================================================================

    def store(
        self,
        ticket_id: str,
        name: str,
        mime_type: str,
        content: bytes
    ) -> FileAttachment:
        """
        Store an attachment

        Validates size and mime type before saving.
        """
        mime_type = self.validate(mime_type, content)

        attachment_id = generate_attachment_id()
        original_name = name or "unnamed"
        stored_filename = f"{attachment_id}_{self._sanitize_filename(original_name)}"

        storage_dir = os.path.join(self.settings.attachments_base_path, ticket_id)
        os.makedirs(storage_dir, exist_ok=True)
        storage_path = os.path.join(storage_dir, stored_filename)

        try:
            with open(storage_path, "wb") as f:
                f.write(content)

            attachment = FileAttachment(
                attachment_id=attachment_id,
                ticket_id=ticket_id,
                name=original_name,
                size=len(content),
                mime_type=mime_type,
                storage_path=os.path.join(ticket_id, stored_filename),
                uploaded_at=self.clock(),
            )
            self.attachment_repo.create_attachment(attachment)
        except Exception as e:
            # Cleanup on failure
            if os.path.exists(storage_path):
                os.remove(storage_path)
            logger.error(f"Failed to store attachment: {e}", extra={"ticket_id": ticket_id})
            raise

        logger.info(
            f"Stored attachment {attachment_id} ({len(content)} bytes)",
            extra={"ticket_id": ticket_id}
        )
        return attachment

    def store_encoded(
        self,
        ticket_id: str,
        name: str,
        mime_type: str,
        data: str
    ) -> FileAttachment:
        """Store a base64 payload; a data URL prefix is accepted"""
        return self.store(ticket_id, name, mime_type, self.decode(name, data))

    def store_all(self, ticket_id: str, files: Sequence[DecodedFile]) -> List[FileAttachment]:
        """
        Store prepared files as one batch

        If any write fails, files already written by this call are removed
        before the error propagates.
        """
        stored: List[FileAttachment] = []
        try:
            for name, mime_type, content in files:
                stored.append(self.store(ticket_id, name, mime_type, content))
        except Exception:
            self.discard(stored)
            raise
        return stored

    def discard(self, attachments: Sequence[FileAttachment]) -> None:
        """Remove stored files and their metadata"""
        for attachment in attachments:
            path = os.path.join(self.settings.attachments_base_path, attachment.storage_path)
            if os.path.exists(path):
                os.remove(path)
            self.attachment_repo.delete_attachment(attachment.attachment_id)
            logger.info(
                f"Discarded attachment {attachment.attachment_id}",
                extra={"ticket_id": attachment.ticket_id}
            )

    # =========================================================================
    # Lookup
    # =========================================================================

    def list_for_ticket(self, ticket_id: str) -> List[FileAttachment]:
        """Attachment metadata for a ticket, latest first"""
        return self.attachment_repo.get_attachments_for_ticket(ticket_id)

    def resolve_file(self, ticket_id: str, attachment_id: str) -> Tuple[FileAttachment, str]:
        """
        Locate a stored attachment on disk

        Returns the metadata and the absolute file path. An attachment that
        belongs to another ticket, or whose bytes are gone, is not found.
        """
        attachment = self.attachment_repo.get_attachment_or_raise(attachment_id)
        if attachment.ticket_id != ticket_id:
            raise AttachmentNotFoundError(
                f"Attachment {attachment_id} not found on ticket {ticket_id}",
                details={"ticket_id": ticket_id, "attachment_id": attachment_id}
            )

        path = os.path.abspath(os.path.join(self.settings.attachments_base_path, attachment.storage_path))
        if not os.path.isfile(path):
            logger.warning(
                f"Attachment {attachment_id} has metadata but no stored file",
                extra={"ticket_id": ticket_id}
            )
            raise AttachmentNotFoundError(
                f"File for attachment {attachment_id} is missing",
                details={"ticket_id": ticket_id, "attachment_id": attachment_id}
            )
        return attachment, path

    def _sanitize_filename(self, filename: str) -> str:
        """Sanitize filename for storage"""
        # Remove directory separators and dangerous characters
        safe = filename.replace("/", "_").replace("\\", "_").replace("..", "_")
        # Limit length
        if len(safe) > 100:
            name, ext = os.path.splitext(safe)
            safe = name[:96] + ext
        return safe
