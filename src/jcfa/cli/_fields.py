"""jcfa fields {list,map}."""

from rich.table import Table

from ..config import save_config
from .context import CommandContext
from .output import print_json


def cmd_fields_list(ctx: CommandContext) -> int:
    args = ctx.args
    fields = ctx.fields.list_fields()
    if args.custom:
        fields = [f for f in fields if f.get("custom")]
    if args.filter:
        wanted = args.filter.lower()
        fields = [
            f for f in fields
            if wanted in str(f.get("name", "")).lower() or wanted in str(f.get("id", "")).lower()
        ]

    if ctx.as_json:
        print_json(fields)
        return 0

    aliases = {field_id: alias for alias, field_id in ctx.config.field_mappings.items()}
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Alias")
    for field in sorted(fields, key=lambda f: str(f.get("name", "")).lower()):
        table.add_row(
            str(field.get("id", "")),
            str(field.get("name", "")),
            str((field.get("schema") or {}).get("type", "")),
            aliases.get(field.get("id"), ""),
        )
    ctx.console.print(table)
    ctx.console.print(f"[dim]{len(fields)} field(s)[/dim]")
    return 0


def cmd_fields_map(ctx: CommandContext) -> int:
    args = ctx.args
    updated = ctx.fields.add_field_mapping(args.alias, args.field_id, ctx.config)
    path = save_config(updated, ctx.args.config)

    if ctx.as_json:
        print_json({"alias": args.alias, "field_id": args.field_id, "config": str(path)})
    else:
        ctx.console.print(f"Mapped [bold]{args.alias}[/bold] -> {args.field_id} ({path})")
    return 0
