"""Batch issue creation.

Creates many issues from one JSON file of templated items::

    [
      {"template": "epic", "id": "epic1", "data": {"Project": "PROJ", "Summary": "Q1 Platform"}},
      {"template": "story", "data": {"Project": "PROJ", "Summary": "Login", "EpicKey": "@epic1"}}
    ]

Pipeline, strictly in this order:

1. Prepare: render every item's template. Any failure aborts the batch.
2. Validate: check every item's fields. Any failure aborts the batch.
3. Partition into epics and others, keeping input order within each group.
4. Create epics and record ``id -> key`` for items that carry an ``id``.
5. Replace ``"@<id>"`` strings anywhere in the other items' fields.
6. Create the others.
7. Link created items to the epic named in their fields (best effort).

Steps 1 and 2 happen before any API call, so aborting there leaves nothing
half-created. From step 4 on, failures are recorded per item and the run
continues, so the result always reports which issues exist.
"""

import json
import logging
import os
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import DEFAULT_EPIC_LINK_ALIASES
from .jira.models import BulkCreateFailure, BulkCreateResult, CreatedIssue

logger = logging.getLogger("jcfa.batch")

__all__ = [
    "BatchAbortedError",
    "BatchError",
    "BatchInputError",
    "BatchItem",
    "BatchResult",
    "CreatedEntry",
    "PreparedItem",
    "find_epic_key",
    "load_batch_items",
    "partition_epics",
    "prepare_batch",
    "resolve_references",
    "run_batch",
]

EPIC_TYPE = "epic"
REFERENCE_PREFIX = "@"

RenderFn = Callable[[str, dict[str, Any]], tuple[str, dict[str, Any]]]
ValidateFn = Callable[[dict[str, Any]], None]
CreateOneFn = Callable[[dict[str, Any]], dict[str, Any]]
CreateManyFn = Callable[[list[dict[str, Any]]], BulkCreateResult]
LinkFn = Callable[[str, str], None]
ProgressFn = Callable[[int], None]


class BatchInputError(Exception):
    """Raised when the batch file cannot be read or has the wrong shape."""

    pass


class BatchAbortedError(Exception):
    """Raised when an item fails to render or validate; nothing was created.

    Attributes:
        index: Position of the offending item in the input list
        message: What went wrong with it
    """

    def __init__(self, index: int, message: str):
        super().__init__(f"item {index}: {message}")
        self.index = index
        self.message = message


@dataclass
class BatchItem:
    """One entry of a batch file."""

    template: str
    data: dict[str, Any] = field(default_factory=dict)
    id: str | None = None

    @classmethod
    def from_dict(cls, raw: Any, index: int = 0) -> "BatchItem":
        if not isinstance(raw, dict):
            raise BatchInputError(f"item {index}: expected an object, got {type(raw).__name__}")

        template = raw.get("template")
        if not isinstance(template, str) or not template:
            raise BatchInputError(f"item {index}: 'template' is required")

        data = raw.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise BatchInputError(f"item {index}: 'data' must be an object")

        item_id = raw.get("id")
        if item_id is not None and not isinstance(item_id, str):
            raise BatchInputError(f"item {index}: 'id' must be a string")

        return cls(template=template, data=data, id=item_id or None)


@dataclass
class PreparedItem:
    """A rendered batch item.

    Attributes:
        index: Position in the original input list
        id: Symbolic name other items reference as "@id"
        issue_type: Issue type name used to partition epics from others
        fields: Jira fields to submit
        template: Template the fields were rendered from
        raw_data: The item's input data, reported back on failure
    """

    index: int
    id: str | None
    issue_type: str
    fields: dict[str, Any]
    template: str = ""
    raw_data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "id": self.id,
            "type": self.issue_type,
            "template": self.template,
            "fields": self.fields,
        }


@dataclass
class CreatedEntry:
    key: str
    type: str
    summary: str = ""


@dataclass
class BatchError:
    index: int
    error: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchResult:
    """Aggregated outcome of a batch run."""

    created: list[CreatedEntry] = field(default_factory=list)
    errors: list[BatchError] = field(default_factory=list)

    @property
    def success(self) -> int:
        return len(self.created)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "failed": self.failed,
            "created": [
                {"key": c.key, "type": c.type, "summary": c.summary} for c in self.created
            ],
            "errors": [{"index": e.index, "error": e.error, "data": e.data} for e in self.errors],
        }


def load_batch_items(path: str | os.PathLike) -> list[BatchItem]:
    """Read batch items from a JSON array file (``-`` reads stdin).

    Raises:
        BatchInputError: If the file is unreadable, not JSON, not an array,
            empty, or has malformed entries.
    """
    try:
        if str(path) == "-":
            raw = json.load(sys.stdin)
        else:
            with open(Path(path), encoding="utf-8") as fh:
                raw = json.load(fh)
    except OSError as e:
        raise BatchInputError(f"failed to open batch file {path}: {e}") from e
    except ValueError as e:
        raise BatchInputError(f"failed to parse JSON in {path}: {e}") from e

    if not isinstance(raw, list):
        raise BatchInputError("batch file must contain a JSON array of items")
    if not raw:
        raise BatchInputError("batch file contains no items")

    return [BatchItem.from_dict(entry, index) for index, entry in enumerate(raw)]


def _issue_type_name(fields: dict[str, Any], default: str) -> str:
    issue_type = fields.get("issuetype")
    if isinstance(issue_type, dict) and isinstance(issue_type.get("name"), str):
        return issue_type["name"]
    return default


def prepare_batch(
    items: Sequence[BatchItem],
    render: RenderFn,
    validate: ValidateFn | None = None,
) -> list[PreparedItem]:
    """Render and validate every item; no API writes happen here.

    ``render`` returns the template's issue type name and the rendered fields.
    A missing ``issuetype`` is filled from the template type.

    Raises:
        BatchAbortedError: For the first item that fails to render or validate.
    """
    prepared: list[PreparedItem] = []

    for index, item in enumerate(items):
        try:
            template_type, fields = render(item.template, item.data)
        except Exception as e:
            raise BatchAbortedError(
                index, f"failed to render template '{item.template}': {e}"
            ) from e

        fields = dict(fields)
        if fields.get("issuetype") is None:
            fields["issuetype"] = {"name": template_type}

        prepared.append(
            PreparedItem(
                index=index,
                id=item.id,
                issue_type=_issue_type_name(fields, template_type),
                fields=fields,
                template=item.template,
                raw_data=item.data,
            )
        )

    if validate is not None:
        for item in prepared:
            try:
                validate(item.fields)
            except Exception as e:
                raise BatchAbortedError(item.index, f"validation failed: {e}") from e

    logger.debug("batch_prepared", extra={"items": len(prepared)})
    return prepared


def partition_epics(
    items: Sequence[PreparedItem],
) -> tuple[list[PreparedItem], list[PreparedItem]]:
    epics = [item for item in items if item.issue_type.lower() == EPIC_TYPE]
    others = [item for item in items if item.issue_type.lower() != EPIC_TYPE]
    return epics, others


def resolve_references(value: Any, id_to_key: dict[str, str]) -> Any:
    """Return ``value`` with ``"@<id>"`` strings replaced by issue keys.

    Walks nested dicts and lists. Only a string that is exactly ``@<id>``
    matches, and unknown ids are left as they are. The input is not modified.
    """
    if isinstance(value, str):
        if value.startswith(REFERENCE_PREFIX):
            return id_to_key.get(value[len(REFERENCE_PREFIX):], value)
        return value
    if isinstance(value, dict):
        return {key: resolve_references(child, id_to_key) for key, child in value.items()}
    if isinstance(value, list):
        return [resolve_references(child, id_to_key) for child in value]
    return value


def find_epic_key(values: dict[str, Any], aliases: Sequence[str]) -> str:
    """Return the first non-empty string stored under one of ``aliases``."""
    for alias in aliases:
        value = values.get(alias)
        if isinstance(value, str) and value:
            return value
    return ""


def _create_many_from(create_one: CreateOneFn) -> CreateManyFn:
    """Adapt a single-issue create function to the bulk interface."""

    def create_many(fields_list: list[dict[str, Any]]) -> BulkCreateResult:
        result = BulkCreateResult()
        for index, fields in enumerate(fields_list):
            try:
                created = create_one(fields)
            except Exception as e:
                result.failed.append(BulkCreateFailure(index=index, message=str(e)))
                continue
            result.succeeded.append(
                CreatedIssue(
                    key=str(created.get("key", "")),
                    id=str(created.get("id", "")),
                    index=index,
                )
            )
        return result

    return create_many


def _create_group(
    group: list[PreparedItem],
    create_many: CreateManyFn,
    result: BatchResult,
    id_to_key: dict[str, str],
    created_keys: dict[int, str],
    on_progress: ProgressFn | None,
) -> None:
    try:
        response = create_many([item.fields for item in group])
    except Exception as e:
        logger.error(
            "batch_group_failed",
            extra={"items": len(group), "error": str(e), "error_type": type(e).__name__},
        )
        for item in group:
            result.errors.append(BatchError(index=item.index, error=str(e), data=item.raw_data))
        if on_progress:
            on_progress(len(group))
        return

    for created in response.succeeded:
        if not 0 <= created.index < len(group):
            continue
        item = group[created.index]
        if item.id:
            id_to_key[item.id] = created.key
        created_keys[item.index] = created.key
        summary = item.fields.get("summary")
        result.created.append(
            CreatedEntry(
                key=created.key,
                type=item.issue_type,
                summary=summary if isinstance(summary, str) else "",
            )
        )

    for failure in response.failed:
        if not 0 <= failure.index < len(group):
            continue
        item = group[failure.index]
        result.errors.append(BatchError(index=item.index, error=failure.message, data=item.raw_data))

    if on_progress:
        on_progress(len(response.succeeded) + len(response.failed))


def _link_to_epics(
    items: list[PreparedItem],
    created_keys: dict[int, str],
    id_to_key: dict[str, str],
    link_to_epic: LinkFn,
    aliases: Sequence[str],
) -> int:
    linked = 0
    for item in items:
        child_key = created_keys.get(item.index)
        if not child_key:
            continue

        epic_key = find_epic_key(item.fields, aliases) or find_epic_key(
            resolve_references(item.raw_data, id_to_key), aliases
        )
        # Unresolved references point at epics that were not created
        if not epic_key or epic_key.startswith(REFERENCE_PREFIX):
            continue

        try:
            link_to_epic(child_key, epic_key)
            linked += 1
        except Exception as e:
            logger.warning(
                "epic_link_failed",
                extra={"child": child_key, "epic": epic_key, "error": str(e)},
            )
    return linked


def run_batch(
    items: Sequence[BatchItem],
    render: RenderFn,
    create_many: CreateManyFn | None = None,
    link_to_epic: LinkFn | None = None,
    validate: ValidateFn | None = None,
    create_one: CreateOneFn | None = None,
    epic_field_aliases: Sequence[str] = tuple(DEFAULT_EPIC_LINK_ALIASES),
    on_progress: ProgressFn | None = None,
) -> BatchResult:
    """Create every item, epics first, and aggregate per-item outcomes.

    Args:
        items: Batch items in input order
        render: (template name, data) -> (template issue type, fields)
        create_many: Bulk create; derived from ``create_one`` when omitted
        link_to_epic: (child key, epic key) -> None; failures are logged only
        validate: Checks one item's fields, raising on problems
        create_one: Single create returning ``{"key": ...}``
        epic_field_aliases: Field/data names checked, in order, for an epic key
        on_progress: Called with the number of items finished after each group

    Returns:
        BatchResult with error indices relative to ``items``.

    Raises:
        BatchAbortedError: If any item fails to render or validate.
        ValueError: If neither ``create_many`` nor ``create_one`` is given.
    """
    if create_many is None:
        if create_one is None:
            raise ValueError("run_batch needs create_many or create_one")
        create_many = _create_many_from(create_one)

    prepared = prepare_batch(items, render, validate)
    epics, others = partition_epics(prepared)

    result = BatchResult()
    id_to_key: dict[str, str] = {}
    created_keys: dict[int, str] = {}

    if epics:
        _create_group(epics, create_many, result, id_to_key, created_keys, on_progress)

    for item in others:
        item.fields = resolve_references(item.fields, id_to_key)

    if others:
        _create_group(others, create_many, result, id_to_key, created_keys, on_progress)

    linked = 0
    if link_to_epic is not None:
        linked = _link_to_epics(others, created_keys, id_to_key, link_to_epic, epic_field_aliases)

    logger.info(
        "batch_complete",
        extra={
            "items": len(prepared),
            "epics": len(epics),
            "created_count": result.success,
            "failed": result.failed,
            "linked": linked,
        },
    )
    return result
