"""Unit tests for attachment file storage."""

import base64

import pytest

from kleinewelt.config import settings
from kleinewelt.services.errors import BadRequestError
from kleinewelt.services.file_storage import (
    extract_key,
    remove_stored_file,
    resolve_upload_path,
    store_data_url,
)
from kleinewelt_models import Attachment


def _data_url(mime_type: str, content: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode()}"


class TestStoreDataUrl:
    """Test store_data_url."""

    def test_stores_file_below_folder(self):
        attachment = store_data_url(_data_url("image/png", b"png"), "foto.PNG", "messages")

        assert attachment.key.startswith("messages/")
        assert attachment.key.endswith(".png")
        assert attachment.url == f"/uploads/{attachment.key}"
        assert attachment.file_name == "foto.PNG"
        assert attachment.mime_type == "image/png"
        assert attachment.size == 3
        assert (settings.upload_dir / attachment.key).read_bytes() == b"png"

    def test_bare_base64_uses_extension(self):
        payload = base64.b64encode(b"%PDF").decode()

        attachment = store_data_url(payload, "plan.pdf")

        assert attachment.mime_type == "application/pdf"

    def test_empty_payload(self):
        assert store_data_url("") is None
        assert store_data_url("data:image/png;base64,") is None

    def test_rejects_unsupported_type(self):
        with pytest.raises(BadRequestError, match="not supported"):
            store_data_url(_data_url("application/x-msdownload", b"MZ"), "setup.exe")

    def test_rejects_invalid_base64(self):
        with pytest.raises(BadRequestError, match="base64"):
            store_data_url("data:image/png;base64,***", "a.png")

    def test_rejects_oversize(self, monkeypatch):
        monkeypatch.setattr(settings, "upload_max_bytes", 4)

        with pytest.raises(BadRequestError, match="maximum size"):
            store_data_url(_data_url("image/png", b"12345"), "a.png")

    def test_folder_cannot_escape(self):
        attachment = store_data_url(_data_url("image/png", b"x"), "a.png", "../../etc")

        assert attachment.key.startswith("etc/")
        assert resolve_upload_path(attachment.key).is_file()


class TestRemoveStoredFile:
    """Test remove_stored_file and key extraction."""

    def test_extract_key(self):
        assert extract_key("/uploads/messages/a.png") == "messages/a.png"
        assert extract_key("messages/a.png") == "messages/a.png"
        assert extract_key("https://cdn.example.org/a.png") is None
        assert extract_key(Attachment(url="/uploads/messages/b.pdf")) == "messages/b.pdf"
        assert extract_key(None) is None

    def test_remove_by_attachment_and_url(self):
        first = store_data_url(_data_url("image/png", b"1"), "a.png", "messages")
        second = store_data_url(_data_url("image/png", b"2"), "b.png", "messages")

        assert remove_stored_file(first)
        assert remove_stored_file(second.url)
        assert not (settings.upload_dir / first.key).exists()

    def test_missing_and_foreign_files_are_ignored(self):
        assert remove_stored_file("messages/missing.png") is False
        assert remove_stored_file("https://cdn.example.org/a.png") is False

    def test_path_traversal_is_refused(self):
        with pytest.raises(BadRequestError):
            resolve_upload_path("../secret.txt")
