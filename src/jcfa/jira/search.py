"""JQL search and workflow transitions."""

import logging
from typing import Any

from .client import JiraClient

logger = logging.getLogger("jcfa.jira.search")

__all__ = ["DEFAULT_SEARCH_FIELDS", "SearchError", "SearchService", "build_list_jql"]

DEFAULT_SEARCH_FIELDS = [
    "summary",
    "status",
    "issuetype",
    "assignee",
    "priority",
    "created",
    "updated",
    "description",
    "labels",
]

DEFAULT_MAX_RESULTS = 50


class SearchError(Exception):
    """Raised for empty queries or unknown transition targets."""

    pass


def build_list_jql(project: str = "", assignee: str = "", status: str = "") -> str:
    """Build the JQL behind ``jcfa list``.

    The assignee defaults to the current user; ``me`` is an alias for
    ``currentUser()``. Results are ordered by last update, newest first.
    """
    conditions: list[str] = []
    if project:
        conditions.append(f"project = {project}")

    if not assignee or assignee in ("me", "currentUser()"):
        conditions.append("assignee = currentUser()")
    else:
        conditions.append(f'assignee = "{assignee}"')

    if status:
        conditions.append(f'status = "{status}"')

    return " AND ".join(conditions) + " ORDER BY updated DESC"


class SearchService:
    def __init__(self, client: JiraClient):
        self.client = client

    def search(
        self,
        jql: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        fields: list[str] | None = None,
    ) -> dict[str, Any]:
        """Run a JQL query through ``POST /search/jql``.

        Returns:
            Jira's response dict with an ``issues`` list.
        """
        if not jql or not jql.strip():
            raise SearchError("JQL query cannot be empty")

        payload = {
            "jql": jql,
            "maxResults": max_results if max_results > 0 else DEFAULT_MAX_RESULTS,
            "fields": fields or DEFAULT_SEARCH_FIELDS,
        }
        result = self.client.post("/search/jql", json=payload) or {}
        logger.debug(
            "search_complete",
            extra={"jql": jql, "returned": len(result.get("issues") or [])},
        )
        return result

    def get_transitions(self, key: str) -> list[dict[str, Any]]:
        if not key:
            raise SearchError("issue key or ID cannot be empty")
        response = self.client.get(f"/issue/{key}/transitions") or {}
        return response.get("transitions") or []

    def transition_issue(self, key: str, status_name: str) -> dict[str, Any]:
        """Move an issue to the status named ``status_name`` (case-insensitive).

        Returns:
            The transition that was executed.

        Raises:
            SearchError: If no available transition leads to that status.
        """
        if not status_name:
            raise SearchError("status name cannot be empty")

        transitions = self.get_transitions(key)
        wanted = status_name.lower()
        for transition in transitions:
            target = (transition.get("to") or {}).get("name", "")
            if target.lower() == wanted:
                self.client.post(
                    f"/issue/{key}/transitions",
                    json={"transition": {"id": transition.get("id")}},
                )
                logger.info("issue_transitioned", extra={"key": key, "status": target})
                return transition

        available = [(t.get("to") or {}).get("name", "") for t in transitions]
        raise SearchError(
            f"status '{status_name}' not found. Available transitions: {available}"
        )
