"""jcfa comments {add,list,get,update,delete}."""

from ..jira.adf import adf_to_text
from .context import CliUsageError, CommandContext
from .output import print_comments, print_json


def cmd_comments_add(ctx: CommandContext) -> int:
    args = ctx.args
    comment = ctx.comments.add_comment(args.key, args.text)
    if ctx.as_json:
        print_json(comment)
    else:
        ctx.console.print(f"Added comment {comment.get('id', '')} to [bold]{args.key}[/bold]")
    return 0


def cmd_comments_list(ctx: CommandContext) -> int:
    args = ctx.args
    order_by = "-created" if args.newest_first else "created"
    page = ctx.comments.list_comments(args.key, order_by=order_by, limit=args.limit)
    if ctx.as_json:
        print_json(page)
        return 0

    comments = page.get("comments") or []
    print_comments(ctx.console, comments)
    total = page.get("total", len(comments))
    ctx.console.print(f"\n[dim]{len(comments)} of {total} comment(s)[/dim]")
    return 0


def cmd_comments_get(ctx: CommandContext) -> int:
    args = ctx.args
    comment = ctx.comments.get_comment(args.key, args.id)
    if ctx.as_json:
        print_json(comment)
        return 0

    author = (comment.get("author") or {}).get("displayName", "Unknown")
    ctx.console.print(f"[bold]Comment {comment.get('id', args.id)}[/bold] by {author}")
    ctx.console.print(f"  Created: {comment.get('created', '')}")
    if comment.get("updated") and comment.get("updated") != comment.get("created"):
        ctx.console.print(f"  Updated: {comment['updated']}")
    ctx.console.print()
    ctx.console.print(adf_to_text(comment.get("body")), markup=False)
    return 0


def cmd_comments_update(ctx: CommandContext) -> int:
    args = ctx.args
    ctx.comments.update_comment(args.key, args.id, args.text)
    if ctx.as_json:
        print_json({"key": args.key, "id": args.id, "updated": True})
    else:
        ctx.console.print(f"Updated comment {args.id} on [bold]{args.key}[/bold]")
    return 0


def cmd_comments_delete(ctx: CommandContext) -> int:
    args = ctx.args
    if not args.confirm:
        raise CliUsageError(
            f"deleting comment {args.id} cannot be undone; pass --confirm to proceed"
        )
    ctx.comments.delete_comment(args.key, args.id)
    if ctx.as_json:
        print_json({"key": args.key, "id": args.id, "deleted": True})
    else:
        ctx.console.print(f"Deleted comment {args.id} from [bold]{args.key}[/bold]")
    return 0
