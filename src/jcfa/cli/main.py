"""jcfa command-line entry point.

Parses arguments, applies the command allowlist, dispatches to a handler
and maps exceptions to exit codes:

    0    success
    1    authentication or general error
    2    validation error (bad input, template, field validation, batch
         aborted, batch finished with failed items)
    3    Jira API error
    4    configuration error
    130  interrupted (Ctrl-C)
"""

import argparse
import logging
import sys
from typing import Callable, Optional, Sequence

from ..__version__ import __version__
from ..allowlist import Checker, CommandNotAllowedError
from ..batch import BatchAbortedError, BatchInputError
from ..config import ConfigError
from ..jira import (
    AttachmentError,
    CommentError,
    FieldError,
    FieldValidationError,
    JiraAuthError,
    JiraClient,
    JiraError,
    LinkError,
    SearchError,
)
from ..logging_config import configure_logging
from ..templates import TemplateError
from . import (
    _allowlist,
    _attachments,
    _batch,
    _comments,
    _configure,
    _fields,
    _issues,
    _links,
    _templates,
)
from .context import CliUsageError, CommandContext
from .output import make_console, print_error

logger = logging.getLogger("jcfa.cli")

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_VALIDATION = 2
EXIT_API = 3
EXIT_CONFIG = 4
EXIT_INTERRUPTED = 130

_VALIDATION_ERRORS = (
    CliUsageError,
    TemplateError,
    FieldValidationError,
    FieldError,
    BatchAbortedError,
    BatchInputError,
    ValueError,
)

# Service errors wrap a rejection from Jira (missing issue, no permission)
_API_ERRORS = (JiraError, CommentError, LinkError, AttachmentError, SearchError)

_HANDLED_ERRORS = (ConfigError, CommandNotAllowedError, OSError) + _API_ERRORS + _VALIDATION_ERRORS


def exit_code_for(error: BaseException) -> int:
    if isinstance(error, ConfigError):
        return EXIT_CONFIG
    if isinstance(error, (JiraAuthError, CommandNotAllowedError)):
        return EXIT_ERROR
    if isinstance(error, _VALIDATION_ERRORS):
        return EXIT_VALIDATION
    if isinstance(error, _API_ERRORS):
        return EXIT_API
    return EXIT_ERROR


# Also accepted after the command name (jcfa get PROJ-1 --json)
_OUTPUT_FLAGS = argparse.ArgumentParser(add_help=False)
_OUTPUT_FLAGS.add_argument(
    "--json", action="store_true", default=argparse.SUPPRESS, help="Machine-readable JSON output"
)


def _command(sub, name: str, help: str) -> argparse.ArgumentParser:
    return sub.add_parser(name, parents=[_OUTPUT_FLAGS], help=help)


def _handler(func: Callable[[CommandContext], int], parser: argparse.ArgumentParser) -> None:
    parser.set_defaults(handler=func)


def _add_issue_commands(sub) -> None:
    p = _command(sub, "get", "Show an issue")
    p.add_argument("key", help="Issue key (e.g., PROJ-123)")
    p.add_argument("--links", action="store_true", help="Show issue links")
    p.add_argument("--subtasks", action="store_true", help="Show subtasks")
    p.add_argument("--comments", action="store_true", help="Show comments")
    p.add_argument("--full", action="store_true", help="Show everything")
    _handler(_issues.cmd_get, p)

    p = _command(sub, "create", "Create an issue from a template")
    p.add_argument("-t", "--template", required=True, help="Template name (e.g., story)")
    p.add_argument("-d", "--data", required=True, help="JSON data file, or - for stdin")
    p.add_argument("--parent", help="Parent issue key (for sub-tasks)")
    p.add_argument("--dry-run", action="store_true", help="Validate and print, create nothing")
    _handler(_issues.cmd_create, p)

    p = _command(sub, "update", "Update issue fields")
    p.add_argument("key", help="Issue key")
    p.add_argument(
        "-f", "--field", action="append", default=[], metavar="NAME=VALUE",
        help="Field to set (ID, alias or name); repeatable. JSON values keep their type",
    )
    _handler(_issues.cmd_update, p)

    p = _command(sub, "transition", "Move an issue to another status")
    p.add_argument("key", help="Issue key")
    p.add_argument("status", help="Target status name")
    _handler(_issues.cmd_transition, p)

    p = _command(sub, "comment", "Add a comment to an issue")
    p.add_argument("key", help="Issue key")
    p.add_argument("text", help="Comment text")
    _handler(_issues.cmd_comment, p)

    p = _command(sub, "search", "Search issues with JQL")
    p.add_argument("jql", help="JQL query")
    p.add_argument("--limit", type=int, default=50, help="Maximum results (default: 50)")
    p.add_argument("--fields", help="Comma-separated fields to return")
    _handler(_issues.cmd_search, p)

    p = _command(sub, "list", "List issues (assigned to you by default)")
    p.add_argument("--project", default="", help="Project key (default: config default_project)")
    p.add_argument("--assignee", default="", help="Assignee (default: me)")
    p.add_argument("--status", default="", help="Status name")
    p.add_argument("--limit", type=int, default=50, help="Maximum results (default: 50)")
    _handler(_issues.cmd_list, p)


def _add_group_commands(sub) -> None:
    group = _command(sub, "batch", "Create many issues at once")
    batch_sub = group.add_subparsers(dest="subcommand", metavar="<command>", required=True)
    p = batch_sub.add_parser(
        "create",
        parents=[_OUTPUT_FLAGS],
        help="Create issues from a JSON array of {template, data, id}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Items with issue type Epic are created first. Other items may reference them
with "@<id>" and are linked to their epic afterwards:

  [
    {"template": "epic", "id": "e1", "data": {"Project": "PROJ", "Summary": "Auth"}},
    {"template": "story", "data": {"Project": "PROJ", "Summary": "Login", "epic": "@e1"}}
  ]
""",
    )
    p.add_argument("file", help="Batch JSON file, or - for stdin")
    p.add_argument("--dry-run", action="store_true", help="Render and validate only")
    p.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    _handler(_batch.cmd_batch_create, p)

    group = _command(sub, "comments", "Manage comments")
    comments_sub = group.add_subparsers(dest="subcommand", metavar="<command>", required=True)
    p = _command(comments_sub, "add", "Add a comment")
    p.add_argument("key")
    p.add_argument("text")
    _handler(_comments.cmd_comments_add, p)
    p = _command(comments_sub, "list", "List comments")
    p.add_argument("key")
    p.add_argument("--limit", type=int, default=None, help="Maximum comments")
    p.add_argument("--newest-first", action="store_true", help="Newest comments first")
    _handler(_comments.cmd_comments_list, p)
    p = _command(comments_sub, "get", "Show one comment")
    p.add_argument("key")
    p.add_argument("id", help="Comment ID")
    _handler(_comments.cmd_comments_get, p)
    p = _command(comments_sub, "update", "Replace a comment's text")
    p.add_argument("key")
    p.add_argument("id", help="Comment ID")
    p.add_argument("text")
    _handler(_comments.cmd_comments_update, p)
    p = _command(comments_sub, "delete", "Delete a comment")
    p.add_argument("key")
    p.add_argument("id", help="Comment ID")
    p.add_argument("--confirm", action="store_true", help="Confirm deletion")
    _handler(_comments.cmd_comments_delete, p)

    group = _command(sub, "link", "Manage issue links")
    link_sub = group.add_subparsers(dest="subcommand", metavar="<command>", required=True)
    p = _command(link_sub, "create", "Link two issues")
    p.add_argument("inward", help="Inward issue key")
    p.add_argument("outward", help="Outward issue key (the epic with --epic)")
    p.add_argument("-t", "--type", default="Relates", help="Link type name (default: Relates)")
    p.add_argument("--epic", action="store_true", help="Link INWARD to epic OUTWARD")
    _handler(_links.cmd_link_create, p)
    p = _command(link_sub, "types", "List link types")
    _handler(_links.cmd_link_types, p)
    p = _command(link_sub, "list", "List an issue's links")
    p.add_argument("key")
    _handler(_links.cmd_link_list, p)
    p = _command(link_sub, "delete", "Delete a link")
    p.add_argument("id", help="Link ID")
    p.add_argument("--confirm", action="store_true", help="Confirm deletion")
    _handler(_links.cmd_link_delete, p)

    group = _command(sub, "attachment", "Manage attachments")
    att_sub = group.add_subparsers(dest="subcommand", metavar="<command>", required=True)
    p = _command(att_sub, "list", "List attachments")
    p.add_argument("key")
    _handler(_attachments.cmd_attachment_list, p)
    p = _command(att_sub, "upload", "Upload a file")
    p.add_argument("key")
    p.add_argument("file")
    p.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    _handler(_attachments.cmd_attachment_upload, p)
    p = _command(att_sub, "download", "Download an attachment by filename")
    p.add_argument("key")
    p.add_argument("filename")
    p.add_argument("-o", "--output", help="Output file or directory")
    p.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    _handler(_attachments.cmd_attachment_download, p)
    p = _command(att_sub, "delete", "Delete an attachment")
    p.add_argument("id", help="Attachment ID")
    p.add_argument("--confirm", action="store_true", help="Confirm deletion")
    _handler(_attachments.cmd_attachment_delete, p)

    group = _command(sub, "fields", "Inspect fields and manage aliases")
    fields_sub = group.add_subparsers(dest="subcommand", metavar="<command>", required=True)
    p = _command(fields_sub, "list", "List fields")
    p.add_argument("--custom", action="store_true", help="Only custom fields")
    p.add_argument("--filter", help="Substring match on name or ID")
    _handler(_fields.cmd_fields_list, p)
    p = _command(fields_sub, "map", "Map an alias to a field ID")
    p.add_argument("alias", help="Alias (e.g., story_points)")
    p.add_argument("field_id", help="Field ID (e.g., customfield_10016)")
    _handler(_fields.cmd_fields_map, p)

    group = _command(sub, "template", "Manage issue templates")
    tmpl_sub = group.add_subparsers(dest="subcommand", metavar="<command>", required=True)
    p = _command(tmpl_sub, "init", "Copy built-in templates into a directory")
    p.add_argument("--dir", help="Target directory (default: ./.jcfa/templates)")
    _handler(_templates.cmd_template_init, p)
    p = _command(tmpl_sub, "list", "List available templates")
    _handler(_templates.cmd_template_list, p)
    p = _command(tmpl_sub, "show", "Show a template")
    p.add_argument("name")
    _handler(_templates.cmd_template_show, p)

    group = _command(sub, "allowlist", "Inspect command allowlist restrictions")
    allow_sub = group.add_subparsers(dest="subcommand", metavar="<command>", required=True)
    p = _command(allow_sub, "status", "Show the active mode and allowed commands")
    _handler(_allowlist.cmd_allowlist_status, p)
    p = _command(allow_sub, "commands", "List read and write commands")
    _handler(_allowlist.cmd_allowlist_commands, p)
    p = _command(allow_sub, "check", "Check whether a command may run (exit 1 if blocked)")
    p.add_argument("name", metavar="command", help="Command path, e.g. get or \"comments list\"")
    _handler(_allowlist.cmd_allowlist_check, p)
    p = _command(allow_sub, "enable", "Show how to enable restrictions")
    _handler(_allowlist.cmd_allowlist_enable, p)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jcfa",
        description="Jira Cloud command-line client for humans and agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  jcfa configure
  jcfa get PROJ-123 --comments
  jcfa create -t story -d story.json
  jcfa batch create issues.json
  jcfa search "project = PROJ AND status = 'In Progress'" --json

Environment:
  JIRA_DOMAIN, JIRA_EMAIL, JIRA_API_TOKEN   override the config file
  JIRA_READONLY=1                           allow read commands only
  JIRA_COMMAND_ALLOWLIST=get,search         allow only these commands
                                            (see: jcfa allowlist status)
""",
    )
    parser.add_argument("--config", help="Config file (default: ~/.jcfa/config.yaml)")
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    parser.add_argument("--templates-dir", help="Template directory searched first")

    sub = parser.add_subparsers(dest="command", metavar="<command>", required=True)

    p = _command(sub, "configure", "Set up credentials")
    p.add_argument("--domain", help="Jira domain (e.g., company.atlassian.net)")
    p.add_argument("--email", help="Account email")
    p.add_argument("--token", help="API token")
    p.add_argument("--project", default=None, help="Default project key")
    p.add_argument("--no-verify", action="store_true", help="Skip the credential check")
    _handler(_configure.cmd_configure, p)

    p = _command(sub, "version", "Show version")
    _handler(_configure.cmd_version, p)

    _add_issue_commands(sub)
    _add_group_commands(sub)
    return parser


def command_path(args: argparse.Namespace) -> str:
    """``get``, ``batch create``, ``comments list``: the name the allowlist uses."""
    subcommand = getattr(args, "subcommand", None)
    return f"{args.command} {subcommand}" if subcommand else args.command


def run(
    argv: Optional[Sequence[str]] = None,
    checker: Optional[Checker] = None,
    client: Optional[JiraClient] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else None)
    command = command_path(args)
    logger.debug("command_start", extra={"command": command, "version": __version__})

    checker = checker or Checker()
    ctx = CommandContext(args, make_console(), client=client, checker=checker)
    try:
        checker.check(command)
        return args.handler(ctx)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    except _HANDLED_ERRORS as e:
        logger.debug("command_failed", extra={"command": command, "error_type": type(e).__name__})
        print_error(str(e))
        return exit_code_for(e)
    finally:
        ctx.close()


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
