"""Unit tests for attachment assembly."""

import base64
import threading

import pytest

from kleinewelt.client import (
    AttachmentReadError,
    AttachmentTooLargeError,
    SelectedFile,
    assemble_attachments,
)


class TestAssembleAttachments:
    """Test assemble_attachments."""

    @pytest.mark.asyncio
    async def test_keeps_selection_order(self, tmp_path):
        """Each file becomes a data URL with its declared metadata."""
        first = tmp_path / "plan.pdf"
        first.write_bytes(b"%PDF-1.4 plan")
        second = tmp_path / "photo.png"
        second.write_bytes(b"\x89PNG fake")

        uploads = await assemble_attachments(
            [SelectedFile(first), SelectedFile(second, name="Ausflug.png")]
        )

        assert [u.name for u in uploads] == ["plan.pdf", "Ausflug.png"]
        assert uploads[0].mime_type == "application/pdf"
        assert uploads[0].size == len(b"%PDF-1.4 plan")
        assert uploads[1].data == "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()

    @pytest.mark.asyncio
    async def test_declared_mime_type_wins(self, tmp_path):
        path = tmp_path / "scan"
        path.write_bytes(b"data")

        [upload] = await assemble_attachments([SelectedFile(path, mime_type="image/jpeg")])

        assert upload.data.startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_unreadable_file_fails_the_batch(self, tmp_path):
        """A missing file raises instead of returning a partial list."""
        ok = tmp_path / "ok.txt"
        ok.write_text("ok")

        with pytest.raises(AttachmentReadError, match="missing.pdf"):
            await assemble_attachments([SelectedFile(ok), SelectedFile(tmp_path / "missing.pdf")])

    @pytest.mark.asyncio
    async def test_size_limit_is_optional(self, tmp_path):
        path = tmp_path / "big.png"
        path.write_bytes(b"x" * 100)

        assert len(await assemble_attachments([SelectedFile(path)])) == 1
        with pytest.raises(AttachmentTooLargeError):
            await assemble_attachments([SelectedFile(path)], max_bytes=99)

    @pytest.mark.asyncio
    async def test_files_are_examined_off_the_event_loop(self, tmp_path):
        """Size checks run in the worker thread together with the read."""
        path = tmp_path / "photo.png"
        path.write_bytes(b"\x89PNG fake")
        threads = []

        class TrackedFile(SelectedFile):
            def size(self) -> int:
                threads.append(threading.get_ident())
                return super().size()

        await assemble_attachments([TrackedFile(path)], max_bytes=1024)

        assert threads and threading.get_ident() not in threads

    @pytest.mark.asyncio
    async def test_no_files(self):
        assert await assemble_attachments([]) == []
