"""jcfa template {init,list,show}."""

from pathlib import Path

import yaml
from rich.table import Table

from ..templates import LOCAL_TEMPLATES_DIR, init_templates
from .context import CommandContext
from .output import print_json


def cmd_template_init(ctx: CommandContext) -> int:
    target = Path(ctx.args.dir) if ctx.args.dir else LOCAL_TEMPLATES_DIR
    written = init_templates(target)

    if ctx.as_json:
        print_json({"path": str(target), "written": [str(p) for p in written]})
        return 0

    if written:
        ctx.console.print(f"Initialized {len(written)} template(s) in {target}")
        for path in written:
            ctx.console.print(f"  {path.name}")
    else:
        ctx.console.print(f"[dim]All templates already present in {target}[/dim]")
    return 0


def cmd_template_list(ctx: CommandContext) -> int:
    templates = ctx.templates.list_templates()
    if ctx.as_json:
        print_json([t.to_dict() for t in templates])
        return 0

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Source")
    table.add_column("Path")
    for info in templates:
        table.add_row(info.name, info.source, info.path)
    ctx.console.print(table)
    return 0


def cmd_template_show(ctx: CommandContext) -> int:
    template = ctx.templates.load_template(ctx.args.name)
    if ctx.as_json:
        print_json(
            {
                "name": template.name,
                "type": template.type,
                "source": template.source,
                "fields": template.fields,
            }
        )
        return 0

    ctx.console.print(f"[bold]{template.name}[/bold] ({template.source}): {template.type}")
    print(yaml.safe_dump({"fields": template.fields}, default_flow_style=False, sort_keys=False))
    return 0
