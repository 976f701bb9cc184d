"""Issue commands: get, create, update, transition, comment, search, list."""

import json
import sys
from typing import Any

from ..jira.issues import ensure_required_fields
from ..jira.search import build_list_jql
from .context import CliUsageError, CommandContext
from .output import (
    issues_table,
    print_comments,
    print_issue,
    print_issue_links,
    print_json,
    print_subtasks,
)


def read_json_object(source: str) -> dict[str, Any]:
    """Read a JSON object from a file path, or stdin when ``source`` is ``-``."""
    try:
        if source == "-":
            data = json.load(sys.stdin)
        else:
            with open(source, encoding="utf-8") as fh:
                data = json.load(fh)
    except OSError as e:
        raise CliUsageError(f"failed to read data file {source}: {e}") from e
    except ValueError as e:
        raise CliUsageError(f"failed to parse JSON in {source}: {e}") from e

    if not isinstance(data, dict):
        raise CliUsageError("template data must be a JSON object")
    return data


def parse_field_assignments(assignments: list[str]) -> dict[str, Any]:
    """Parse ``name=value`` pairs; values that parse as JSON keep their type."""
    parsed: dict[str, Any] = {}
    for assignment in assignments:
        name, sep, raw = assignment.partition("=")
        name = name.strip()
        if not sep or not name:
            raise CliUsageError(f"invalid field assignment '{assignment}', expected name=value")
        try:
            parsed[name] = json.loads(raw)
        except ValueError:
            parsed[name] = raw
    return parsed


def cmd_get(ctx: CommandContext) -> int:
    args = ctx.args
    issue = ctx.issues.get_issue(args.key)
    fields = issue.get("fields") or {}

    comments: list[dict[str, Any]] = []
    if args.comments or args.full:
        comments = ctx.comments.list_comments(args.key).get("comments") or []

    if ctx.as_json:
        if args.comments or args.full:
            issue = dict(issue, comments=comments)
        print_json(issue)
        return 0

    print_issue(ctx.console, issue, full=args.full)
    if args.links or args.full:
        print_issue_links(ctx.console, fields.get("issuelinks") or [])
    if args.subtasks or args.full:
        print_subtasks(ctx.console, fields.get("subtasks") or [])
    if args.comments or args.full:
        print_comments(ctx.console, comments)
    return 0


def cmd_create(ctx: CommandContext) -> int:
    args = ctx.args
    data = read_json_object(args.data)
    issue_type, fields = ctx.templates.render(args.template, data)
    ensure_required_fields(fields, issue_type)

    if args.parent:
        ctx.issues.setup_parent(fields, args.parent)

    ctx.issues.validate_issue_fields(fields)

    if args.dry_run:
        if ctx.as_json:
            print_json({"dry_run": True, "fields": fields})
        else:
            ctx.console.print("[bold]Dry run[/bold]: issue would be created with fields:")
            print(json.dumps(fields, indent=2))
        return 0

    created = ctx.issues.create_issue(fields)
    if ctx.as_json:
        print_json(created)
    else:
        ctx.console.print(f"Created issue [bold]{created.get('key', '')}[/bold]")
    return 0


def cmd_update(ctx: CommandContext) -> int:
    args = ctx.args
    if not args.field:
        raise CliUsageError("at least one -f name=value is required")

    values = parse_field_assignments(args.field)
    fields = {
        ctx.fields.resolve_field_id(name, ctx.config.field_mappings): value
        for name, value in values.items()
    }
    ctx.issues.update_issue(args.key, fields)

    if ctx.as_json:
        print_json({"key": args.key, "updated": sorted(fields)})
    else:
        ctx.console.print(f"Updated [bold]{args.key}[/bold]: {', '.join(sorted(fields))}")
    return 0


def cmd_transition(ctx: CommandContext) -> int:
    args = ctx.args
    transition = ctx.search.transition_issue(args.key, args.status)
    target = (transition.get("to") or {}).get("name", args.status)

    if ctx.as_json:
        print_json({"key": args.key, "status": target, "transition": transition.get("id")})
    else:
        ctx.console.print(f"Transitioned [bold]{args.key}[/bold] to {target}")
    return 0


def cmd_comment(ctx: CommandContext) -> int:
    args = ctx.args
    comment = ctx.comments.add_comment(args.key, args.text)
    if ctx.as_json:
        print_json(comment)
    else:
        ctx.console.print(f"Added comment {comment.get('id', '')} to [bold]{args.key}[/bold]")
    return 0


def _print_search_results(ctx: CommandContext, result: dict[str, Any]) -> None:
    issues = result.get("issues") or []
    if ctx.as_json:
        print_json(result)
        return
    if not issues:
        ctx.console.print("[dim]No issues found.[/dim]")
        return
    ctx.console.print(issues_table(issues))
    ctx.console.print(f"[dim]{len(issues)} issue(s)[/dim]")


def cmd_search(ctx: CommandContext) -> int:
    args = ctx.args
    fields = [f.strip() for f in args.fields.split(",") if f.strip()] if args.fields else None
    result = ctx.search.search(args.jql, max_results=args.limit, fields=fields)
    _print_search_results(ctx, result)
    return 0


def cmd_list(ctx: CommandContext) -> int:
    args = ctx.args
    project = args.project or ctx.config.default_project
    jql = build_list_jql(project=project, assignee=args.assignee, status=args.status)
    result = ctx.search.search(jql, max_results=args.limit)
    _print_search_results(ctx, result)
    return 0
