"""Issue-creation metadata and client-side field validation.

Create metadata (``/issue/createmeta``) describes which fields a project and
issue type accept, which are required, their schema types and allowed values.
It is fetched once per ``project:issuetype`` pair and cached for five minutes.
"""

import logging
import threading
import time
from typing import Any

from .client import JiraClient

logger = logging.getLogger("jcfa.jira.metadata")

__all__ = ["CACHE_TTL_SECONDS", "FieldValidationError", "IssueTypeMeta", "MetadataService"]

CACHE_TTL_SECONDS = 300.0

# Jira marks reporter as required but fills it with the calling user
_IMPLICIT_FIELDS = {"reporter"}

_OBJECT_TYPES = {"option", "priority", "user", "project", "issuetype"}


class FieldValidationError(Exception):
    """Raised when issue fields do not satisfy the create metadata."""

    pass


class IssueTypeMeta:
    """Field metadata for one issue type in one project."""

    def __init__(self, name: str, fields: dict[str, dict[str, Any]]):
        self.name = name
        self.fields = fields


class MetadataService:
    """Fetches create metadata and validates issue fields against it."""

    def __init__(self, client: JiraClient, ttl: float = CACHE_TTL_SECONDS):
        self.client = client
        self.ttl = ttl
        self._cache: dict[str, tuple[float, IssueTypeMeta]] = {}
        self._lock = threading.Lock()

    def get_create_metadata(self, project_key: str, issue_type: str) -> IssueTypeMeta:
        """Return field metadata for ``project_key`` / ``issue_type``.

        Raises:
            FieldValidationError: If the project or issue type is not visible.
            JiraError: On API failures.
        """
        cache_key = f"{project_key}:{issue_type}"
        now = time.monotonic()
        with self._lock:
            entry = self._cache.get(cache_key)
            if entry and entry[0] > now:
                return entry[1]

        response = self.client.get(
            "/issue/createmeta",
            params={
                "projectKeys": project_key,
                "issuetypeNames": issue_type,
                "expand": "projects.issuetypes.fields",
            },
        ) or {}

        projects = response.get("projects") or []
        if not projects:
            raise FieldValidationError(
                f"project '{project_key}' not found or you don't have access"
            )

        issue_types = projects[0].get("issuetypes") or []
        if not issue_types:
            raise FieldValidationError(
                f"issue type '{issue_type}' not found in project '{project_key}'"
            )

        data = issue_types[0]
        meta = IssueTypeMeta(name=data.get("name", issue_type), fields=data.get("fields") or {})

        with self._lock:
            self._cache[cache_key] = (time.monotonic() + self.ttl, meta)

        logger.debug(
            "createmeta_cached",
            extra={"project": project_key, "issue_type": issue_type, "fields": len(meta.fields)},
        )
        return meta

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def validate_issue_data(self, project_key: str, issue_type: str, data: dict[str, Any]) -> None:
        """Check required fields, schema types and allowed values.

        Fields unknown to the metadata are accepted as-is.

        Raises:
            FieldValidationError: Naming the first offending field.
        """
        meta = self.get_create_metadata(project_key, issue_type)

        for field_id, field_meta in meta.fields.items():
            if not field_meta.get("required") or field_id in _IMPLICIT_FIELDS:
                continue
            name = field_meta.get("name", field_id)
            if field_id not in data:
                raise FieldValidationError(
                    f"field '{name}' ({field_id}) is required for {issue_type} "
                    f"in project {project_key}"
                )
            if data[field_id] is None:
                raise FieldValidationError(f"field '{name}' ({field_id}) cannot be null")

        for field_id, value in data.items():
            if value is None:
                continue
            field_meta = meta.fields.get(field_id)
            if field_meta is None:
                continue
            _validate_type(field_id, field_meta, value)
            if field_meta.get("allowedValues"):
                _validate_allowed_values(field_id, field_meta, value)


def _validate_type(field_id: str, meta: dict[str, Any], value: Any) -> None:
    schema_type = (meta.get("schema") or {}).get("type")
    name = meta.get("name", field_id)
    got = type(value).__name__

    if schema_type == "string" and not isinstance(value, str):
        raise FieldValidationError(f"field '{name}' ({field_id}) expects string, got {got}")

    if schema_type == "number" and (
        isinstance(value, bool) or not isinstance(value, (int, float))
    ):
        raise FieldValidationError(f"field '{name}' ({field_id}) expects number, got {got}")

    if schema_type == "array" and not isinstance(value, list):
        raise FieldValidationError(f"field '{name}' ({field_id}) expects array, got {got}")

    if schema_type in _OBJECT_TYPES and not isinstance(value, (dict, str)):
        raise FieldValidationError(
            f"field '{name}' ({field_id}) expects object or string, got {got}"
        )


def _validate_allowed_values(field_id: str, meta: dict[str, Any], value: Any) -> None:
    if isinstance(value, str):
        candidate = value
    elif isinstance(value, dict):
        candidate = value.get("name") or value.get("id") or value.get("value")
        if not isinstance(candidate, str):
            # Objects without name/id/value cannot be checked
            return
    else:
        return

    allowed = [a for a in meta.get("allowedValues") or [] if isinstance(a, dict)]
    for option in allowed:
        if candidate in (option.get("name"), option.get("id"), option.get("value")):
            return

    names = [str(a.get("name") or a.get("value")) for a in allowed if a.get("name") or a.get("value")]
    raise FieldValidationError(
        f"field '{meta.get('name', field_id)}' ({field_id}) value '{candidate}' "
        f"not in allowed values: {names}"
    )
