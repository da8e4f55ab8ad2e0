"""Turn locally selected files into attachment uploads."""

import asyncio
import base64
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from kleinewelt_models import AttachmentUpload

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


class AttachmentReadError(Exception):
    """A selected file could not be read."""

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        super().__init__(f"Could not read {file_name}: {reason}")


class AttachmentTooLargeError(Exception):
    """A selected file exceeds the configured size limit."""

    def __init__(self, file_name: str, size: int, max_bytes: int):
        self.file_name = file_name
        self.size = size
        self.max_bytes = max_bytes
        super().__init__(f"{file_name} is {size} bytes (limit {max_bytes})")


@dataclass
class SelectedFile:
    """A file picked by the user, with the metadata declared at selection."""

    path: Path
    name: str | None = None
    mime_type: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or Path(self.path).name

    @property
    def resolved_mime_type(self) -> str:
        if self.mime_type:
            return self.mime_type
        guessed, _ = mimetypes.guess_type(self.display_name)
        return guessed or DEFAULT_MIME_TYPE

    def size(self) -> int:
        return Path(self.path).stat().st_size


def read_as_data_url(file: SelectedFile) -> str:
    """Read the whole file and encode it as ``data:<mime>;base64,<payload>``."""
    content = Path(file.path).read_bytes()
    payload = base64.b64encode(content).decode("ascii")
    return f"data:{file.resolved_mime_type};base64,{payload}"


def _read_upload(file: SelectedFile, max_bytes: int | None) -> AttachmentUpload:
    """Check the size and read one file; blocking, so it runs in a worker thread."""
    try:
        size = file.size()
        if max_bytes is not None and size > max_bytes:
            raise AttachmentTooLargeError(file.display_name, size, max_bytes)
        data = read_as_data_url(file)
    except OSError as e:
        raise AttachmentReadError(file.display_name, str(e)) from e

    return AttachmentUpload(
        data=data,
        name=file.display_name,
        mime_type=file.resolved_mime_type,
        size=size,
    )


async def assemble_attachments(
    files: list[SelectedFile] | tuple[SelectedFile, ...],
    max_bytes: int | None = None,
) -> list[AttachmentUpload]:
    """Read all selected files concurrently.

    The result keeps the selection order. Any failure aborts the whole
    batch so a partial list is never sent.

    Raises:
        AttachmentReadError: If a file cannot be read
        AttachmentTooLargeError: If a file exceeds ``max_bytes``

    """
    if not files:
        return []
    tasks = [asyncio.create_task(asyncio.to_thread(_read_upload, f, max_bytes)) for f in files]
    try:
        uploads = await asyncio.gather(*tasks)
    except BaseException:
        # Reads that have not started yet are dropped.
        for task in tasks:
            task.cancel()
        raise
    logger.debug(f"Assembled {len(uploads)} attachments")
    return list(uploads)
