"""
Tests for the Attachment Service.

Validation and storage of resolution attachments on the local file store.
"""

import base64
import os

import pytest

from ticketflow.domain.errors import (
    AttachmentError, AttachmentNotFoundError, AttachmentTooLargeError, InvalidMimeTypeError
)
from ticketflow.domain.models import AttachmentPayload
from ticketflow.services.attachment_service import AttachmentService

from ...conftest import MONDAY


@pytest.fixture
def attachment_service(db, test_settings, clock):
    return AttachmentService(db, app_settings=test_settings, clock=clock)


class TestStore:
    """Tests for AttachmentService.store."""

    def test_writes_file_and_metadata(self, attachment_service, test_settings):
        attachment = attachment_service.store("TKT-1", "report.pdf", "application/pdf", b"%PDF-1.4")

        assert attachment.size == 8
        assert attachment.uploaded_at == MONDAY
        assert attachment.storage_path.startswith("TKT-1")
        with open(os.path.join(test_settings.attachments_base_path, attachment.storage_path), "rb") as f:
            assert f.read() == b"%PDF-1.4"

        stored = attachment_service.attachment_repo.get_attachment(attachment.attachment_id)
        assert stored.name == "report.pdf"

    def test_rejects_mime_type(self, attachment_service):
        with pytest.raises(InvalidMimeTypeError):
            attachment_service.store("TKT-1", "tool.exe", "application/x-msdownload", b"MZ")

    def test_rejects_large_file(self, attachment_service):
        with pytest.raises(AttachmentTooLargeError):
            attachment_service.store("TKT-1", "big.txt", "text/plain", b"x" * (1024 * 1024 + 1))

    def test_sanitizes_name(self, attachment_service):
        attachment = attachment_service.store("TKT-1", "../../etc/passwd", "text/plain", b"root")

        assert ".." not in attachment.storage_path
        assert attachment.storage_path.count(os.sep) == 1
        assert attachment.name == "../../etc/passwd"


class TestStoreEncoded:
    """Tests for base64 payloads."""

    def test_plain_base64(self, attachment_service):
        data = base64.b64encode(b"hello").decode()

        attachment = attachment_service.store_encoded("TKT-1", "note.txt", "text/plain", data)

        assert attachment.size == 5

    def test_data_url(self, attachment_service):
        data = "data:text/plain;base64," + base64.b64encode(b"hello world").decode()

        attachment = attachment_service.store_encoded("TKT-1", "note.txt", "text/plain", data)

        assert attachment.size == 11

    def test_invalid_base64(self, attachment_service):
        with pytest.raises(AttachmentError):
            attachment_service.store_encoded("TKT-1", "note.txt", "text/plain", "not base64!")


class TestBatch:
    """Tests for prepare, store_all and discard."""

    def test_prepare_validates_every_payload(self, attachment_service, test_settings):
        payloads = [
            AttachmentPayload(name="a.txt", mime_type="text/plain", data=base64.b64encode(b"a").decode()),
            AttachmentPayload(name="b.exe", mime_type="application/x-msdownload", data=base64.b64encode(b"MZ").decode()),
        ]

        with pytest.raises(InvalidMimeTypeError):
            attachment_service.prepare(payloads)

        assert not os.path.exists(os.path.join(test_settings.attachments_base_path, "TKT-1"))

    def test_store_all_rolls_back_on_failure(self, attachment_service, test_settings, monkeypatch):
        create = attachment_service.attachment_repo.create_attachment
        calls = []

        def failing_second(attachment):
            calls.append(attachment.attachment_id)
            if len(calls) == 2:
                raise RuntimeError("database unavailable")
            return create(attachment)

        monkeypatch.setattr(attachment_service.attachment_repo, "create_attachment", failing_second)
        files = [("a.txt", "text/plain", b"a"), ("b.txt", "text/plain", b"b")]

        with pytest.raises(RuntimeError):
            attachment_service.store_all("TKT-1", files)

        assert os.listdir(os.path.join(test_settings.attachments_base_path, "TKT-1")) == []
        assert attachment_service.list_for_ticket("TKT-1") == []

    def test_discard(self, attachment_service, test_settings):
        stored = attachment_service.store_all("TKT-1", [("a.txt", "text/plain", b"a")])

        attachment_service.discard(stored)

        assert os.listdir(os.path.join(test_settings.attachments_base_path, "TKT-1")) == []
        assert attachment_service.attachment_repo.get_attachment(stored[0].attachment_id) is None


class TestLookup:
    """Tests for listing and locating stored attachments."""

    def test_list_for_ticket(self, attachment_service, clock):
        first = attachment_service.store("TKT-1", "a.txt", "text/plain", b"a")
        clock.advance(minutes=1)
        second = attachment_service.store("TKT-1", "b.txt", "text/plain", b"b")
        attachment_service.store("TKT-2", "c.txt", "text/plain", b"c")

        listed = attachment_service.list_for_ticket("TKT-1")

        assert [a.attachment_id for a in listed] == [second.attachment_id, first.attachment_id]

    def test_resolve_file(self, attachment_service):
        attachment = attachment_service.store("TKT-1", "a.txt", "text/plain", b"abc")

        found, path = attachment_service.resolve_file("TKT-1", attachment.attachment_id)

        assert found.attachment_id == attachment.attachment_id
        assert os.path.isabs(path)
        with open(path, "rb") as f:
            assert f.read() == b"abc"

    def test_resolve_file_other_ticket(self, attachment_service):
        attachment = attachment_service.store("TKT-1", "a.txt", "text/plain", b"abc")

        with pytest.raises(AttachmentNotFoundError):
            attachment_service.resolve_file("TKT-2", attachment.attachment_id)

    def test_resolve_file_missing_bytes(self, attachment_service, test_settings):
        attachment = attachment_service.store("TKT-1", "a.txt", "text/plain", b"abc")
        os.remove(os.path.join(test_settings.attachments_base_path, attachment.storage_path))

        with pytest.raises(AttachmentNotFoundError):
            attachment_service.resolve_file("TKT-1", attachment.attachment_id)

    def test_unknown_attachment(self, attachment_service):
        with pytest.raises(AttachmentNotFoundError):
            attachment_service.resolve_file("TKT-1", "ATT-missing")
