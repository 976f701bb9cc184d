"""Issue attachments: list, upload, download and delete."""

import logging
import mimetypes
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .client import JiraClient, JiraNotFoundError, JiraPermissionError

logger = logging.getLogger("jcfa.jira.attachments")

__all__ = [
    "AttachmentError",
    "AttachmentService",
    "format_file_size",
    "get_mime_type",
    "validate_file_path",
]

_SIZE_UNITS = ["KB", "MB", "GB", "TB"]


class AttachmentError(Exception):
    """Raised for unusable files, missing attachments or missing permission."""

    pass


def format_file_size(size: int) -> str:
    """Human-readable size: ``512 B``, ``1.5 KB``, ``3.4 GB``."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in _SIZE_UNITS:
        value /= 1024
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            return f"{value:.1f} {unit}"
    return f"{size} B"


def get_mime_type(filename: str) -> str:
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"


def validate_file_path(path: str | os.PathLike) -> Path:
    """Return ``path`` as a Path if it names a readable regular file.

    Raises:
        AttachmentError: If the file is missing, a directory or unreadable.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise AttachmentError(f"file '{path}' not found")
    if file_path.is_dir():
        raise AttachmentError(f"'{path}' is a directory, not a file")
    if not os.access(file_path, os.R_OK):
        raise AttachmentError(f"file '{path}' is not readable")
    return file_path


class AttachmentService:
    """Attachment operations for one Jira instance.

    Attributes:
        client: JiraClient used for every request
        max_size_mb: Upload size limit in megabytes
    """

    def __init__(self, client: JiraClient, max_size_mb: int = 10):
        self.client = client
        self.max_size_mb = max_size_mb

    def list_attachments(self, issue_key: str) -> list[dict[str, Any]]:
        if not issue_key:
            raise AttachmentError("issue key cannot be empty")
        try:
            issue = self.client.get(f"/issue/{issue_key}", params={"fields": "attachment"}) or {}
        except JiraNotFoundError:
            raise AttachmentError(f"issue '{issue_key}' not found") from None

        attachments = (issue.get("fields") or {}).get("attachment")
        if not isinstance(attachments, list):
            return []
        return [a for a in attachments if isinstance(a, dict)]

    def find_attachment(self, issue_key: str, filename: str) -> dict[str, Any]:
        for attachment in self.list_attachments(issue_key):
            if attachment.get("filename") == filename:
                return attachment
        raise AttachmentError(f"attachment '{filename}' not found on issue '{issue_key}'")

    def upload_attachment(self, issue_key: str, file_path: str | os.PathLike) -> dict[str, Any]:
        """Upload a file and return the created attachment.

        Raises:
            AttachmentError: If the file is unusable or over the size limit.
        """
        if not issue_key:
            raise AttachmentError("issue key cannot be empty")
        path = validate_file_path(file_path)

        size = path.stat().st_size
        limit = self.max_size_mb * 1024 * 1024
        if size > limit:
            raise AttachmentError(
                f"file '{path.name}' is {format_file_size(size)}, "
                f"larger than the {self.max_size_mb} MB limit"
            )

        result = self.client.upload(
            f"/issue/{issue_key}/attachments",
            filename=path.name,
            content=path.read_bytes(),
            mime_type=get_mime_type(path.name),
        )
        if not result:
            raise AttachmentError("no attachment returned from API")

        attachment = result[0] if isinstance(result, list) else result
        logger.info(
            "attachment_uploaded",
            extra={"issue": issue_key, "file_name": path.name, "size": size},
        )
        return attachment

    def download_attachment(
        self,
        attachment: dict[str, Any],
        output_path: str | os.PathLike | None = None,
        on_chunk: Callable[[int], None] | None = None,
    ) -> Path:
        """Stream an attachment to disk.

        ``output_path`` may be a file path or an existing directory; by
        default the attachment's filename in the current directory is used.

        Returns:
            The path written.
        """
        url = attachment.get("content")
        if not url:
            raise AttachmentError("attachment has no download URL")
        filename = attachment.get("filename") or f"attachment-{attachment.get('id', 'download')}"

        if output_path is None or str(output_path) == "":
            target = Path(filename)
        elif Path(output_path).is_dir():
            target = Path(output_path) / filename
        else:
            target = Path(output_path)

        try:
            with open(target, "wb") as fh:
                written = self.client.download(url, fh, on_chunk=on_chunk)
        except OSError as e:
            raise AttachmentError(f"failed to write file '{target}': {e}") from e

        logger.info("attachment_downloaded", extra={"path": str(target), "size": written})
        return target

    def delete_attachment(self, attachment_id: str) -> None:
        if not attachment_id:
            raise AttachmentError("attachment ID cannot be empty")
        try:
            self.client.delete(f"/attachment/{attachment_id}")
        except JiraNotFoundError:
            raise AttachmentError(f"attachment '{attachment_id}' not found") from None
        except JiraPermissionError:
            raise AttachmentError("you don't have permission to delete this attachment") from None
        logger.info("attachment_deleted", extra={"attachment_id": attachment_id})
