"""jcfa batch create: many issues from one JSON file."""

import json
from typing import Any

from rich.markup import escape

from ..batch import BatchResult, load_batch_items, prepare_batch, run_batch
from .context import CommandContext
from .output import item_progress, print_json


def _print_result(ctx: CommandContext, result: BatchResult) -> None:
    if ctx.as_json:
        print_json(result.to_dict())
        return

    console = ctx.console
    console.print(
        f"[bold]Batch complete[/bold]: {result.success} created, {result.failed} failed"
    )
    for entry in result.created:
        console.print(f"  [green]+[/green] {entry.key} ({entry.type}) {escape(entry.summary)}")
    for error in result.errors:
        console.print(f"  [red]x[/red] item {error.index}: {escape(error.error)}")


def cmd_batch_create(ctx: CommandContext) -> int:
    args = ctx.args
    items = load_batch_items(args.file)
    issues = ctx.issues

    def validate(fields: dict[str, Any]) -> None:
        issues.validate_issue_fields(fields)

    if args.dry_run:
        prepared = prepare_batch(items, ctx.templates.render, validate)
        if ctx.as_json:
            print_json({"dry_run": True, "items": [item.to_dict() for item in prepared]})
        else:
            ctx.console.print(f"[bold]Dry run[/bold]: {len(prepared)} item(s) valid")
            for item in prepared:
                ctx.console.print(f"\n[bold]Item {item.index}[/bold] ({item.issue_type})")
                print(json.dumps(item.fields, indent=2))
        return 0

    run_kwargs = {
        "render": ctx.templates.render,
        "create_many": issues.bulk_create_issues,
        "link_to_epic": ctx.links.link_to_epic,
        "validate": validate,
        "epic_field_aliases": ctx.config.epic_link_aliases,
    }

    if ctx.show_progress:
        with item_progress(ctx.console) as progress:
            task = progress.add_task("Creating issues", total=len(items))
            result = run_batch(
                items,
                on_progress=lambda done: progress.advance(task, done),
                **run_kwargs,
            )
    else:
        result = run_batch(items, **run_kwargs)

    _print_result(ctx, result)
    return 2 if result.failed else 0
