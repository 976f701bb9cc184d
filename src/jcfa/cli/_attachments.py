"""jcfa attachment {list,upload,download,delete}."""

from pathlib import Path

from rich.table import Table

from ..jira.attachments import format_file_size
from .context import CliUsageError, CommandContext
from .output import LARGE_TRANSFER_BYTES, print_json, transfer_progress


def cmd_attachment_list(ctx: CommandContext) -> int:
    attachments = ctx.attachments.list_attachments(ctx.args.key)
    if ctx.as_json:
        print_json(attachments)
        return 0

    if not attachments:
        ctx.console.print("[dim]No attachments.[/dim]")
        return 0

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", no_wrap=True)
    table.add_column("Filename", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Author")
    table.add_column("Created")
    for attachment in attachments:
        table.add_row(
            str(attachment.get("id", "")),
            attachment.get("filename", ""),
            format_file_size(int(attachment.get("size") or 0)),
            (attachment.get("author") or {}).get("displayName", ""),
            attachment.get("created", ""),
        )
    ctx.console.print(table)
    return 0


def cmd_attachment_upload(ctx: CommandContext) -> int:
    args = ctx.args
    size = Path(args.file).stat().st_size if Path(args.file).is_file() else 0

    if ctx.show_progress and size > LARGE_TRANSFER_BYTES:
        with transfer_progress(ctx.console) as progress:
            progress.add_task(f"Uploading {Path(args.file).name}", total=None)
            attachment = ctx.attachments.upload_attachment(args.key, args.file)
    else:
        attachment = ctx.attachments.upload_attachment(args.key, args.file)

    if ctx.as_json:
        print_json(attachment)
    else:
        ctx.console.print(
            f"Uploaded {attachment.get('filename', '')} "
            f"({format_file_size(int(attachment.get('size') or size))}) "
            f"to [bold]{args.key}[/bold] as attachment {attachment.get('id', '')}"
        )
    return 0


def cmd_attachment_download(ctx: CommandContext) -> int:
    args = ctx.args
    attachment = ctx.attachments.find_attachment(args.key, args.filename)
    output = args.output or ctx.config.download_path or None
    size = int(attachment.get("size") or 0)

    if ctx.show_progress and size > LARGE_TRANSFER_BYTES:
        with transfer_progress(ctx.console) as progress:
            task = progress.add_task(f"Downloading {args.filename}", total=size)
            path = ctx.attachments.download_attachment(
                attachment, output, on_chunk=lambda n: progress.advance(task, n)
            )
    else:
        path = ctx.attachments.download_attachment(attachment, output)

    if ctx.as_json:
        print_json({"filename": args.filename, "path": str(path), "size": size})
    else:
        ctx.console.print(f"Downloaded {args.filename} to {path}")
    return 0


def cmd_attachment_delete(ctx: CommandContext) -> int:
    args = ctx.args
    if not args.confirm:
        raise CliUsageError(
            f"deleting attachment {args.id} cannot be undone; pass --confirm to proceed"
        )
    ctx.attachments.delete_attachment(args.id)
    if ctx.as_json:
        print_json({"id": args.id, "deleted": True})
    else:
        ctx.console.print(f"Deleted attachment {args.id}")
    return 0
