"""Command allowlist for agent-driven use.

Two environment variables restrict which commands may run:

- ``JIRA_READONLY``: any non-empty value permits read commands only.
- ``JIRA_COMMAND_ALLOWLIST``: comma-separated command paths (``get``,
  ``batch create``, ``comments list`` ...), matched case-insensitively.

``JIRA_READONLY`` takes precedence. With neither set every command runs.
"""

import logging
import os

logger = logging.getLogger("jcfa.allowlist")

__all__ = [
    "ENV_COMMAND_ALLOWLIST",
    "ENV_READONLY",
    "READ_ONLY_COMMANDS",
    "WRITE_COMMANDS",
    "Checker",
    "CommandNotAllowedError",
    "all_commands",
]

ENV_COMMAND_ALLOWLIST = "JIRA_COMMAND_ALLOWLIST"
ENV_READONLY = "JIRA_READONLY"

READ_ONLY_COMMANDS = [
    "get",
    "search",
    "list",
    "fields",
    "fields list",
    "version",
    "help",
    "attachment list",
    "comments list",
    "comments get",
    "link list",
    "link types",
    "template list",
    "template show",
    "allowlist status",
    "allowlist commands",
    "allowlist check",
    "allowlist enable",
]

WRITE_COMMANDS = [
    "create",
    "update",
    "transition",
    "comment",
    "comments add",
    "comments update",
    "comments delete",
    "batch",
    "batch create",
    "link",
    "link create",
    "link delete",
    "attachment upload",
    "attachment download",
    "attachment delete",
    "configure",
    "fields map",
    "template",
    "template init",
]

_ALWAYS_ALLOWED = {"help", "version", "--help", "-h"}


class CommandNotAllowedError(Exception):
    """Raised when a command is blocked by the allowlist or read-only mode."""

    pass


class Checker:
    """Decides whether a command path may run under the current environment."""

    def __init__(self, environ=None):
        env = os.environ if environ is None else environ
        self.read_only = False
        self.enabled = False
        self.allowed_commands: set[str] = set()

        if env.get(ENV_READONLY):
            self.read_only = True
            self.enabled = True
            self.allowed_commands = set(READ_ONLY_COMMANDS)
            return

        allowlist = env.get(ENV_COMMAND_ALLOWLIST, "")
        if not allowlist.strip():
            return

        self.enabled = True
        for cmd in allowlist.split(","):
            cmd = cmd.strip().lower()
            if cmd:
                self.allowed_commands.add(cmd)

    def is_allowed(self, command: str) -> bool:
        if not self.enabled:
            return True

        command = command.strip().lower()
        if command in _ALWAYS_ALLOWED:
            return True

        return command in self.allowed_commands

    def check(self, command: str) -> None:
        """Raise CommandNotAllowedError if ``command`` may not run."""
        if self.is_allowed(command):
            return

        logger.warning(
            "command_blocked",
            extra={"command": command, "read_only": self.read_only},
        )
        if self.read_only:
            raise CommandNotAllowedError(
                f"command '{command}' is blocked: {ENV_READONLY} mode enabled "
                "(only read operations allowed)"
            )
        raise CommandNotAllowedError(
            f"command '{command}' is not in the allowlist (set via {ENV_COMMAND_ALLOWLIST})"
        )

    def get_allowed_commands(self) -> list[str] | None:
        if not self.enabled:
            return None
        return sorted(self.allowed_commands)


def all_commands() -> list[str]:
    return READ_ONLY_COMMANDS + WRITE_COMMANDS
