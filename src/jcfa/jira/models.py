"""Result types shared by the Jira services."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class CreatedIssue:
    """An issue created by a single or bulk create call.

    Attributes:
        key: Issue key (e.g., PROJ-123)
        id: Numeric issue ID as returned by Jira
        index: Position of the element in the submitted list
        self_url: REST URL of the new issue
    """

    key: str
    id: str = ""
    index: int = 0
    self_url: str = ""


@dataclass
class BulkCreateFailure:
    """A submitted element that Jira refused to create."""

    index: int
    message: str


@dataclass
class BulkCreateResult:
    """Outcome of a bulk create, both lists ordered by submitted index."""

    succeeded: list[CreatedIssue] = field(default_factory=list)
    failed: list[BulkCreateFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "succeeded": [{"index": c.index, "key": c.key, "id": c.id} for c in self.succeeded],
            "failed": [{"index": f.index, "message": f.message} for f in self.failed],
        }
