"""Issue service: create, bulk create, get, update and validate issues."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from .adf import text_to_adf
from .client import JiraAPIError, JiraClient, JiraError, format_error_response
from .metadata import FieldValidationError, MetadataService
from .models import BulkCreateFailure, BulkCreateResult, CreatedIssue

logger = logging.getLogger("jcfa.jira.issues")

__all__ = [
    "MAX_BULK_CHUNK_SIZE",
    "IssueService",
    "ensure_required_fields",
    "prepare_fields",
]

MAX_BULK_CHUNK_SIZE = 50

# Rich-text fields Jira v3 only accepts as ADF
_ADF_FIELDS = ("description", "environment")


def prepare_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``fields`` with plain-string rich-text fields as ADF."""
    prepared = dict(fields)
    for name in _ADF_FIELDS:
        if isinstance(prepared.get(name), str):
            prepared[name] = text_to_adf(prepared[name])
    return prepared


def ensure_required_fields(fields: dict[str, Any], issue_type: str) -> None:
    """Check ``project`` and ``summary``; fill a missing ``issuetype`` in place.

    Raises:
        FieldValidationError: If project or summary is missing.
    """
    if fields.get("project") is None:
        raise FieldValidationError("field 'project' is required")
    if fields.get("issuetype") is None:
        fields["issuetype"] = {"name": issue_type}
    if fields.get("summary") is None:
        raise FieldValidationError("field 'summary' is required")


class IssueService:
    """Issue CRUD on top of a JiraClient.

    Attributes:
        client: JiraClient used for every request
        metadata: MetadataService for client-side validation
        chunk_size: Issues per /issue/bulk request (API maximum is 50)
        concurrency: Maximum bulk chunks in flight at once
    """

    def __init__(
        self,
        client: JiraClient,
        metadata: MetadataService | None = None,
        chunk_size: int = MAX_BULK_CHUNK_SIZE,
        concurrency: int = 4,
    ):
        self.client = client
        self.metadata = metadata or MetadataService(client)
        self.chunk_size = max(1, min(chunk_size, MAX_BULK_CHUNK_SIZE))
        self.concurrency = max(1, concurrency)

    def create_issue(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Create one issue; returns Jira's ``{id, key, self}``."""
        result = self.client.post("/issue", json={"fields": prepare_fields(fields)}) or {}
        logger.info("issue_created", extra={"key": result.get("key")})
        return result

    def bulk_create_issues(self, issues: list[dict[str, Any]]) -> BulkCreateResult:
        """Create many issues through ``/issue/bulk``.

        The list is split into chunks of ``chunk_size``. Chunks run in a
        bounded thread pool, each worker writing only to its own slot, and the
        results are reassembled in submission order. Indices in the result
        refer to positions in ``issues``.

        A chunk whose request fails outright, or whose response cannot be
        read, is reported element by element with its own error.
        Only a single-chunk call raises.

        Raises:
            JiraError: When the only chunk could not be submitted.
        """
        if not issues:
            return BulkCreateResult()

        chunks = [
            (start, issues[start:start + self.chunk_size])
            for start in range(0, len(issues), self.chunk_size)
        ]
        slots: list[BulkCreateResult | Exception | None] = [None] * len(chunks)

        def run_chunk(slot: int) -> None:
            start, chunk = chunks[slot]
            try:
                slots[slot] = self._bulk_create_chunk(start, chunk)
            except Exception as e:
                logger.warning(
                    "bulk_create_chunk_failed",
                    extra={
                        "start": start,
                        "size": len(chunk),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                slots[slot] = e

        if len(chunks) == 1:
            run_chunk(0)
            if isinstance(slots[0], Exception):
                raise slots[0]
        else:
            workers = min(self.concurrency, len(chunks))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(run_chunk, slot) for slot in range(len(chunks))]
                for future in futures:
                    future.result()

        result = BulkCreateResult()
        for slot, (start, chunk) in zip(slots, chunks):
            if isinstance(slot, Exception):
                result.failed.extend(
                    BulkCreateFailure(index=start + offset, message=str(slot))
                    for offset in range(len(chunk))
                )
            else:
                result.succeeded.extend(slot.succeeded)
                result.failed.extend(slot.failed)

        result.failed.sort(key=lambda f: f.index)
        logger.info(
            "bulk_create_complete",
            extra={
                "submitted": len(issues),
                "created_count": len(result.succeeded),
                "failed": len(result.failed),
                "chunks": len(chunks),
            },
        )
        return result

    def _bulk_create_chunk(self, start: int, chunk: list[dict[str, Any]]) -> BulkCreateResult:
        payload = {"issueUpdates": [{"fields": prepare_fields(f)} for f in chunk]}
        try:
            data = self.client.post("/issue/bulk", json=payload) or {}
        except JiraAPIError as e:
            # Jira answers 400 with per-element errors when nothing was created
            if e.status_code == 400 and isinstance(e.body, dict) and isinstance(
                e.body.get("errors"), list
            ):
                data = e.body
            else:
                raise

        if not isinstance(data, dict):
            raise JiraError("unexpected /issue/bulk response: expected an object")
        issues = data.get("issues") or []
        if not isinstance(issues, list) or not all(isinstance(i, dict) for i in issues):
            raise JiraError("unexpected /issue/bulk response: issues must be a list of objects")

        failed_positions: dict[int, str] = {}
        for error in data.get("errors") or []:
            if not isinstance(error, dict):
                continue
            position = error.get("failedElementNumber")
            if not isinstance(position, int) or not 0 <= position < len(chunk):
                continue
            failed_positions[position] = format_error_response(error.get("elementErrors"))

        # Created issues come back in submission order, failed elements omitted
        positions = (p for p in range(len(chunk)) if p not in failed_positions)
        result = BulkCreateResult()
        for issue, position in zip(issues, positions):
            result.succeeded.append(
                CreatedIssue(
                    key=issue.get("key", ""),
                    id=str(issue.get("id", "")),
                    index=start + position,
                    self_url=issue.get("self", ""),
                )
            )
        result.failed = [
            BulkCreateFailure(index=start + position, message=message)
            for position, message in sorted(failed_positions.items())
        ]

        logger.debug(
            "bulk_create_chunk",
            extra={
                "start": start,
                "size": len(chunk),
                "created_count": len(result.succeeded),
                "failed": len(result.failed),
            },
        )
        return result

    def get_issue(
        self,
        key: str,
        fields: list[str] | None = None,
        expand: list[str] | None = None,
    ) -> dict[str, Any]:
        """Fetch an issue by key or ID.

        Raises:
            JiraNotFoundError: If the issue does not exist.
        """
        if not key:
            raise ValueError("issue key cannot be empty")
        params: dict[str, Any] = {}
        if fields:
            params["fields"] = ",".join(fields)
        if expand:
            params["expand"] = ",".join(expand)
        return self.client.get(f"/issue/{key}", params=params or None) or {}

    def update_issue(self, key: str, fields: dict[str, Any]) -> None:
        if not key:
            raise ValueError("issue key cannot be empty")
        if not fields:
            raise ValueError("no fields to update")
        self.client.put(f"/issue/{key}", json={"fields": prepare_fields(fields)})
        logger.info("issue_updated", extra={"key": key, "fields": sorted(fields)})

    def validate_issue_fields(self, fields: dict[str, Any]) -> None:
        """Validate fields against the project's create metadata.

        Raises:
            FieldValidationError: On missing project/issuetype or metadata violations.
        """
        project = fields.get("project")
        if isinstance(project, str):
            project = {"key": project}
        if not isinstance(project, dict):
            raise FieldValidationError(
                "field 'project' is required and must be an object or string"
            )
        project_key = project.get("key")
        if not isinstance(project_key, str) or not project_key:
            raise FieldValidationError("project must have a 'key' field")

        issue_type = fields.get("issuetype")
        if not isinstance(issue_type, dict):
            raise FieldValidationError("field 'issuetype' is required and must be an object")
        issue_type_name = issue_type.get("name")
        if not isinstance(issue_type_name, str) or not issue_type_name:
            raise FieldValidationError("issuetype must have a 'name' field")

        self.metadata.validate_issue_data(project_key, issue_type_name, fields)

    def setup_parent(self, fields: dict[str, Any], parent_key: str) -> None:
        """Prepare ``fields`` for creating a sub-task under ``parent_key``.

        Raises:
            FieldValidationError: If the parent is missing or is itself a sub-task.
        """
        try:
            parent = self.get_issue(parent_key, fields=["issuetype"])
        except JiraError as e:
            raise FieldValidationError(f"parent issue {parent_key} not found: {e}") from e

        parent_type = (parent.get("fields") or {}).get("issuetype") or {}
        if parent_type.get("subtask") is True:
            raise FieldValidationError(
                f"cannot create subtask under {parent_key} because it is already a subtask"
            )

        issue_type = fields.get("issuetype")
        if isinstance(issue_type, dict) and isinstance(issue_type.get("name"), str):
            name = issue_type["name"].lower()
            if "sub" not in name and "task" not in name:
                logger.warning(
                    "parent_issue_type_not_subtask",
                    extra={"issue_type": issue_type["name"], "parent": parent_key},
                )

        fields["parent"] = {"key": parent_key}
