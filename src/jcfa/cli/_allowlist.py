"""jcfa allowlist {status,commands,check,enable}."""

import os

from rich.markup import escape

from ..allowlist import (
    ENV_COMMAND_ALLOWLIST,
    ENV_READONLY,
    READ_ONLY_COMMANDS,
    WRITE_COMMANDS,
    CommandNotAllowedError,
)
from .context import CommandContext
from .output import print_json

_SHELL_PROFILES = {
    "zsh": ".zshrc",
    "fish": ".config/fish/config.fish",
    "bash": ".bashrc",
}


def shell_profile(environ=None) -> str:
    """Profile file of the user's shell, for the ``enable`` instructions."""
    env = os.environ if environ is None else environ
    shell = env.get("SHELL", "")
    name = next((s for s in ("zsh", "bash", "fish") if s in shell), "bash")
    return os.path.join(env.get("HOME", "~"), _SHELL_PROFILES[name])


def cmd_allowlist_status(ctx: CommandContext) -> int:
    checker = ctx.checker
    if ctx.as_json:
        print_json(
            {
                "enabled": checker.enabled,
                "read_only": checker.read_only,
                "allowed_commands": checker.get_allowed_commands(),
                "env": {
                    ENV_READONLY: os.environ.get(ENV_READONLY, ""),
                    ENV_COMMAND_ALLOWLIST: os.environ.get(ENV_COMMAND_ALLOWLIST, ""),
                },
            }
        )
        return 0

    console = ctx.console
    if not checker.enabled:
        console.print("Status: [green]DISABLED[/green] (all commands allowed)")
        console.print()
        console.print("To enable restrictions, set one of these environment variables:")
        console.print(f"  export {ENV_READONLY}=1              # read-only mode")
        console.print(f"  export {ENV_COMMAND_ALLOWLIST}=...   # custom allowlist")
        return 0

    if checker.read_only:
        console.print("Status: [yellow]ENABLED[/yellow] (read-only mode)")
        console.print(f"Mode:   {ENV_READONLY}=1")
    else:
        value = escape(os.environ.get(ENV_COMMAND_ALLOWLIST, ""))
        console.print("Status: [yellow]ENABLED[/yellow] (custom allowlist)")
        console.print(f"Mode:   {ENV_COMMAND_ALLOWLIST}={value}")

    console.print()
    console.print("Allowed commands:")
    for command in checker.get_allowed_commands():
        console.print(f"  [green]✓[/green] {escape(command)}")
    console.print()
    console.print("[dim]'help' and 'version' are always allowed.[/dim]")
    return 0


def cmd_allowlist_commands(ctx: CommandContext) -> int:
    if ctx.as_json:
        print_json(
            {
                "read_commands": READ_ONLY_COMMANDS,
                "write_commands": WRITE_COMMANDS,
                "total": len(READ_ONLY_COMMANDS) + len(WRITE_COMMANDS),
            }
        )
        return 0

    console = ctx.console
    console.print(f"[bold]Read commands ({len(READ_ONLY_COMMANDS)})[/bold], allowed in read-only mode:")
    for command in sorted(READ_ONLY_COMMANDS):
        console.print(f"  [green]✓[/green] {command}")
    console.print()
    console.print(f"[bold]Write commands ({len(WRITE_COMMANDS)})[/bold], blocked in read-only mode:")
    for command in sorted(WRITE_COMMANDS):
        console.print(f"  [red]✗[/red] {command}")
    return 0


def cmd_allowlist_check(ctx: CommandContext) -> int:
    """Exit 0 when the command may run, 1 when it is blocked."""
    command = ctx.args.name
    checker = ctx.checker
    reason = None
    try:
        checker.check(command)
    except CommandNotAllowedError as e:
        reason = str(e)

    if ctx.as_json:
        result = {"command": command, "allowed": reason is None}
        if reason:
            result["error"] = reason
        print_json(result)
    elif reason is None:
        ctx.console.print(f"[green]✓[/green] Command '{escape(command)}' is ALLOWED")
        if not checker.enabled:
            ctx.console.print("  [dim](allowlist is disabled, all commands allowed)[/dim]")
    else:
        ctx.console.print(f"[red]✗[/red] Command '{escape(command)}' is BLOCKED")
        ctx.console.print(f"  Reason: {escape(reason)}")
    return 0 if reason is None else 1


def cmd_allowlist_enable(ctx: CommandContext) -> int:
    profile = escape(shell_profile())
    if ctx.as_json:
        print_json(
            {
                "read_only": f"export {ENV_READONLY}=1",
                "allowlist": f'export {ENV_COMMAND_ALLOWLIST}="get,search,list,fields"',
                "disable": [f"unset {ENV_READONLY}", f"unset {ENV_COMMAND_ALLOWLIST}"],
                "profile": shell_profile(),
            }
        )
        return 0

    lines = [
        "[bold]Read-only mode[/bold] (recommended for agents): read commands only",
        f"  export {ENV_READONLY}=1",
        f"  echo 'export {ENV_READONLY}=1' >> {profile}",
        "",
        "[bold]Custom allowlist[/bold]: comma-separated command paths",
        f'  export {ENV_COMMAND_ALLOWLIST}="get,search,list,fields"',
        "",
        "[bold]Single command[/bold]",
        f"  {ENV_READONLY}=1 jcfa get ABC-123",
        "",
        "[bold]Disable[/bold]",
        f"  unset {ENV_READONLY}",
        f"  unset {ENV_COMMAND_ALLOWLIST}",
        "",
        "[bold]Verify[/bold]",
        "  jcfa allowlist status",
        "  jcfa allowlist check get",
    ]
    for line in lines:
        ctx.console.print(line, soft_wrap=True)
    return 0
