"""Issue comments."""

import logging
from typing import Any

from .adf import text_to_adf
from .client import JiraClient, JiraNotFoundError, JiraPermissionError

logger = logging.getLogger("jcfa.jira.comments")

__all__ = ["CommentError", "CommentService"]


class CommentError(Exception):
    """Raised for missing comments, missing permission or empty input."""

    pass


class CommentService:
    """Add, list, get, update and delete comments. Bodies are sent as ADF."""

    def __init__(self, client: JiraClient):
        self.client = client

    @staticmethod
    def _check(issue_key: str, comment_id: str | None = None, text: str | None = None) -> None:
        if not issue_key:
            raise CommentError("issue key cannot be empty")
        if comment_id is not None and not comment_id:
            raise CommentError("comment ID cannot be empty")
        if text is not None and not text.strip():
            raise CommentError("comment text cannot be empty")

    def add_comment(self, issue_key: str, text: str) -> dict[str, Any]:
        self._check(issue_key, text=text)
        try:
            comment = self.client.post(
                f"/issue/{issue_key}/comment", json={"body": text_to_adf(text)}
            ) or {}
        except JiraNotFoundError:
            raise CommentError(f"issue '{issue_key}' not found") from None
        logger.info("comment_added", extra={"issue": issue_key, "comment_id": comment.get("id")})
        return comment

    def list_comments(
        self,
        issue_key: str,
        order_by: str = "created",
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Return Jira's comment page (``comments``, ``total``, ...).

        Args:
            order_by: ``created`` or ``-created`` for newest first
            limit: Maximum comments to return (Jira default when None)
        """
        self._check(issue_key)
        params: dict[str, Any] = {"orderBy": order_by or "created"}
        if limit:
            params["maxResults"] = limit
        try:
            return self.client.get(f"/issue/{issue_key}/comment", params=params) or {}
        except JiraNotFoundError:
            raise CommentError(f"issue '{issue_key}' not found") from None

    def get_comment(self, issue_key: str, comment_id: str) -> dict[str, Any]:
        self._check(issue_key, comment_id)
        try:
            return self.client.get(f"/issue/{issue_key}/comment/{comment_id}") or {}
        except JiraNotFoundError:
            raise CommentError(
                f"comment '{comment_id}' not found on issue '{issue_key}'"
            ) from None

    def update_comment(self, issue_key: str, comment_id: str, text: str) -> None:
        self._check(issue_key, comment_id, text)
        try:
            self.client.put(
                f"/issue/{issue_key}/comment/{comment_id}", json={"body": text_to_adf(text)}
            )
        except JiraNotFoundError:
            raise CommentError(
                f"comment '{comment_id}' not found on issue '{issue_key}'"
            ) from None
        except JiraPermissionError:
            raise CommentError("you don't have permission to update this comment") from None
        logger.info("comment_updated", extra={"issue": issue_key, "comment_id": comment_id})

    def delete_comment(self, issue_key: str, comment_id: str) -> None:
        self._check(issue_key, comment_id)
        try:
            self.client.delete(f"/issue/{issue_key}/comment/{comment_id}")
        except JiraNotFoundError:
            raise CommentError(
                f"comment '{comment_id}' not found on issue '{issue_key}'"
            ) from None
        except JiraPermissionError:
            raise CommentError("you don't have permission to delete this comment") from None
        logger.info("comment_deleted", extra={"issue": issue_key, "comment_id": comment_id})
