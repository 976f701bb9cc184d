"""Console output helpers shared by the CLI commands.

Human output goes through a rich Console on stdout; ``--json`` output is
plain ``json.dumps`` so it stays machine-parseable. Errors go to stderr.
"""

import json
import sys
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from ..jira.adf import adf_to_text

# Transfers above this size get a progress bar
LARGE_TRANSFER_BYTES = 1024 * 1024


def make_console() -> Console:
    return Console(highlight=False)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def print_error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


def item_progress(console: Console) -> Progress:
    """Progress bar counting finished items."""
    return Progress(
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def transfer_progress(console: Console) -> Progress:
    """Progress bar for byte transfers."""
    return Progress(
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=True,
    )


def _name(value: Any, key: str = "name", default: str = "") -> str:
    if isinstance(value, dict):
        found = value.get(key)
        return str(found) if found is not None else default
    return default


def print_issue(console: Console, issue: dict[str, Any], full: bool = False) -> None:
    """Print an issue summary, followed by its description when present."""
    fields = issue.get("fields") or {}

    summary = escape(str(fields.get("summary", "")))
    console.print(f"[bold]{issue.get('key', '')}[/bold]: {summary}")
    console.print(f"  Type:     {_name(fields.get('issuetype'))}")
    console.print(f"  Status:   {_name(fields.get('status'))}")
    console.print(f"  Priority: {_name(fields.get('priority'), default='-')}")
    console.print(f"  Assignee: {_name(fields.get('assignee'), 'displayName', 'Unassigned')}")
    console.print(f"  Reporter: {_name(fields.get('reporter'), 'displayName', '-')}")

    parent = fields.get("parent")
    if isinstance(parent, dict) and parent.get("key"):
        console.print(f"  Parent:   {parent['key']}")

    labels = fields.get("labels") or []
    if labels:
        console.print(f"  Labels:   {', '.join(labels)}")

    if full:
        for name in ("created", "updated"):
            if fields.get(name):
                console.print(f"  {name.capitalize() + ':':<9} {fields[name]}")

    description = adf_to_text(fields.get("description"))
    if description:
        console.print("\n[bold]Description[/bold]")
        console.print(description, markup=False)


def print_issue_links(console: Console, links: list[dict[str, Any]]) -> None:
    console.print("\n[bold]Links[/bold]")
    if not links:
        console.print("  [dim]No links.[/dim]")
        return
    for link in links:
        link_type = link.get("type") or {}
        if "outwardIssue" in link:
            relation, other = link_type.get("outward", ""), link["outwardIssue"]
        else:
            relation, other = link_type.get("inward", ""), link.get("inwardIssue") or {}
        summary = (other.get("fields") or {}).get("summary", "")
        line = f"  [{link.get('id', '')}] {relation} {other.get('key', '')} {summary}"
        console.print(line, markup=False)


def print_subtasks(console: Console, subtasks: list[dict[str, Any]]) -> None:
    console.print("\n[bold]Subtasks[/bold]")
    if not subtasks:
        console.print("  [dim]No subtasks.[/dim]")
        return
    for subtask in subtasks:
        fields = subtask.get("fields") or {}
        status = _name(fields.get("status"))
        line = f"  {subtask.get('key', '')} [{status}] {fields.get('summary', '')}"
        console.print(line, markup=False)


def print_comments(console: Console, comments: list[dict[str, Any]]) -> None:
    console.print("\n[bold]Comments[/bold]")
    if not comments:
        console.print("  [dim]No comments.[/dim]")
        return
    for comment in comments:
        author = _name(comment.get("author"), "displayName", "Unknown")
        console.print(
            f"\n  [{comment.get('id', '')}] {author} ({comment.get('created', '')})", markup=False
        )
        body = adf_to_text(comment.get("body"))
        for line in body.splitlines():
            console.print(f"    {line}", markup=False)


def issues_table(issues: list[dict[str, Any]]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Assignee")
    table.add_column("Summary")

    for issue in issues:
        fields = issue.get("fields") or {}
        table.add_row(
            issue.get("key", ""),
            _name(fields.get("issuetype")),
            _name(fields.get("status")),
            _name(fields.get("assignee"), "displayName", "Unassigned"),
            str(fields.get("summary", "")),
        )
    return table
