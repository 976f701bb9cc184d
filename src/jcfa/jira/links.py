"""Issue links and epic linking."""

import logging
from typing import Any

from .client import JiraAPIError, JiraClient, JiraNotFoundError, JiraPermissionError
from .fields import FieldService

logger = logging.getLogger("jcfa.jira.links")

__all__ = [
    "COMMON_EPIC_LINK_FIELDS",
    "EPIC_LINK_TYPES",
    "LinkError",
    "LinkService",
]

# Epic Link custom field IDs seen on Jira Cloud instances, most common first
COMMON_EPIC_LINK_FIELDS = ["customfield_10014", "customfield_10008", "customfield_10011"]

# Link types tried, in order, when no epic link field exists
EPIC_LINK_TYPES = ["Epic-Story Link", "Relates", "Blocks", "Dependency"]


class LinkError(Exception):
    """Raised when a link cannot be created, listed or removed."""

    pass


class LinkService:
    """Creates, lists and deletes issue links; links stories to epics."""

    def __init__(
        self,
        client: JiraClient,
        fields: FieldService | None = None,
        field_mappings: dict[str, str] | None = None,
    ):
        self.client = client
        self.fields = fields or FieldService(client)
        self.field_mappings = field_mappings or {}
        self._epic_field: str | None = None
        self._epic_field_checked = False

    def detect_epic_link_field(self) -> str | None:
        """Return the Epic Link field ID, or None when the instance has none.

        Checks the ``epic_link`` field mapping, then common custom field IDs
        whose name mentions "epic", then any field named like "epic link".
        The result is remembered for the lifetime of the service.
        """
        if self._epic_field_checked:
            return self._epic_field

        field_id = self.field_mappings.get("epic_link")
        if not field_id:
            field_id = self._find_epic_link_field(self.fields.list_fields())

        self._epic_field = field_id or None
        self._epic_field_checked = True
        logger.debug("epic_link_field_detected", extra={"field_id": self._epic_field})
        return self._epic_field

    @staticmethod
    def _find_epic_link_field(fields: list[dict[str, Any]]) -> str | None:
        by_id = {f.get("id"): f for f in fields}
        for field_id in COMMON_EPIC_LINK_FIELDS:
            field = by_id.get(field_id)
            if field and "epic" in str(field.get("name", "")).lower():
                return field_id

        for field in fields:
            name = str(field.get("name", "")).lower()
            if "epic" in name and "link" in name:
                return field.get("id")
        return None

    def link_to_epic(self, child_key: str, epic_key: str) -> None:
        """Attach ``child_key`` to ``epic_key``.

        Sets the Epic Link field when the instance has one, otherwise creates
        an issue link, trying each of ``EPIC_LINK_TYPES`` in turn.

        Raises:
            JiraError: If the field update fails.
            LinkError: If no link type could be used.
        """
        epic_field = self.detect_epic_link_field()
        if epic_field:
            self.client.put(f"/issue/{child_key}", json={"fields": {epic_field: epic_key}})
            logger.info(
                "epic_linked",
                extra={"child": child_key, "epic": epic_key, "field": epic_field},
            )
            return

        last_error: JiraAPIError | None = None
        for link_type in EPIC_LINK_TYPES:
            try:
                self._post_link(epic_key, child_key, link_type)
            except JiraAPIError as e:
                last_error = e
                continue
            logger.info(
                "epic_linked",
                extra={"child": child_key, "epic": epic_key, "link_type": link_type},
            )
            return

        raise LinkError(f"could not link {child_key} to epic {epic_key}: {last_error}")

    def _post_link(self, inward_key: str, outward_key: str, link_type: str) -> None:
        self.client.post(
            "/issueLink",
            json={
                "type": {"name": link_type},
                "inwardIssue": {"key": inward_key},
                "outwardIssue": {"key": outward_key},
            },
        )

    def create_issue_link(self, inward_key: str, outward_key: str, link_type: str) -> None:
        if not inward_key or not outward_key:
            raise LinkError("both issue keys are required")
        if not link_type:
            raise LinkError("link type is required")
        self._post_link(inward_key, outward_key, link_type)
        logger.info(
            "issue_link_created",
            extra={"inward": inward_key, "outward": outward_key, "link_type": link_type},
        )

    def get_link_types(self) -> list[dict[str, Any]]:
        response = self.client.get("/issueLinkType") or {}
        return response.get("issueLinkTypes") or []

    def get_issue_links(self, issue_key: str) -> list[dict[str, Any]]:
        """Return the issue's links; malformed entries are skipped."""
        if not issue_key:
            raise LinkError("issue key cannot be empty")
        try:
            issue = self.client.get(f"/issue/{issue_key}", params={"fields": "issuelinks"}) or {}
        except JiraNotFoundError:
            raise LinkError(f"issue '{issue_key}' not found") from None

        links = (issue.get("fields") or {}).get("issuelinks")
        if not isinstance(links, list):
            return []
        return [link for link in links if isinstance(link, dict)]

    def delete_issue_link(self, link_id: str) -> None:
        if not link_id:
            raise LinkError("link ID cannot be empty")
        try:
            self.client.delete(f"/issueLink/{link_id}")
        except JiraNotFoundError:
            raise LinkError(f"link ID '{link_id}' not found") from None
        except JiraPermissionError:
            raise LinkError("you don't have permission to delete this link") from None
        logger.info("issue_link_deleted", extra={"link_id": link_id})
