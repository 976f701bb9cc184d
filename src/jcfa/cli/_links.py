"""jcfa link {create,types,list,delete}."""

from rich.table import Table

from .context import CliUsageError, CommandContext
from .output import print_issue_links, print_json


def cmd_link_create(ctx: CommandContext) -> int:
    args = ctx.args
    if args.epic:
        ctx.links.link_to_epic(args.inward, args.outward)
        description = f"{args.inward} to epic {args.outward}"
    else:
        ctx.links.create_issue_link(args.inward, args.outward, args.type)
        description = f"{args.inward} -> {args.outward} ({args.type})"

    if ctx.as_json:
        print_json(
            {
                "inward": args.inward,
                "outward": args.outward,
                "type": "epic" if args.epic else args.type,
            }
        )
    else:
        ctx.console.print(f"Linked {description}")
    return 0


def cmd_link_types(ctx: CommandContext) -> int:
    link_types = ctx.links.get_link_types()
    if ctx.as_json:
        print_json(link_types)
        return 0

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Inward")
    table.add_column("Outward")
    for link_type in link_types:
        table.add_row(
            str(link_type.get("id", "")),
            link_type.get("name", ""),
            link_type.get("inward", ""),
            link_type.get("outward", ""),
        )
    ctx.console.print(table)
    return 0


def cmd_link_list(ctx: CommandContext) -> int:
    links = ctx.links.get_issue_links(ctx.args.key)
    if ctx.as_json:
        print_json(links)
    else:
        print_issue_links(ctx.console, links)
    return 0


def cmd_link_delete(ctx: CommandContext) -> int:
    args = ctx.args
    if not args.confirm:
        raise CliUsageError(f"deleting link {args.id} cannot be undone; pass --confirm to proceed")
    ctx.links.delete_issue_link(args.id)
    if ctx.as_json:
        print_json({"id": args.id, "deleted": True})
    else:
        ctx.console.print(f"Deleted link {args.id}")
    return 0
