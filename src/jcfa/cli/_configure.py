"""jcfa configure and jcfa version."""

import getpass

from pydantic import SecretStr

from ..__version__ import __version__
from ..config import ConfigError, JcfaConfig, normalize_domain, save_config
from ..credentials import BACKEND_KEYRING, delete_api_token, select_backend, store_api_token
from ..jira import JiraClient
from .context import CommandContext
from .output import print_json


def _prompt(label: str, current: str = "", secret: bool = False) -> str:
    suffix = f" [{current}]" if current and not secret else ""
    if secret:
        value = getpass.getpass(f"{label}{' [keep existing]' if current else ''}: ")
    else:
        value = input(f"{label}{suffix}: ")
    return value.strip() or current


def cmd_configure(ctx: CommandContext) -> int:
    """Collect credentials (flags first, prompts for the rest), verify, save."""
    args = ctx.args
    current = ctx.config

    domain = args.domain or _prompt("Jira domain (e.g. company.atlassian.net)", current.domain)
    email = args.email or _prompt("Email", current.email)
    token = args.token or _prompt("API token", current.get_api_token(), secret=True)
    project = args.project if args.project is not None else current.default_project

    if not domain or not email or not token:
        raise ConfigError("domain, email and api token are all required")

    config: JcfaConfig = current.model_copy(
        update={
            "domain": normalize_domain(domain),
            "email": email,
            "api_token": SecretStr(token),
            "default_project": project,
        }
    )

    user = None
    if not args.no_verify:
        with JiraClient.from_config(config) as client:
            user = client.validate_credentials() or {}

    storage = "file"
    if select_backend() == BACKEND_KEYRING and store_api_token(config.email, token):
        storage = "keyring"
        if current.email and current.email != config.email:
            delete_api_token(current.email)
        # The file keeps everything but the token
        path = save_config(config.model_copy(update={"api_token": SecretStr("")}), args.config)
    else:
        path = save_config(config, args.config)

    if ctx.as_json:
        print_json(
            {
                "config": str(path),
                "domain": config.domain,
                "email": config.email,
                "verified": user is not None,
                "token_storage": storage,
                "user": (user or {}).get("displayName"),
            }
        )
    else:
        if user is not None:
            ctx.console.print(f"Authenticated as [bold]{user.get('displayName', email)}[/bold]")
        ctx.console.print(f"Configuration saved to {path}")
        if storage == "keyring":
            ctx.console.print("API token stored in the system keyring")
        else:
            ctx.console.print(f"[dim]API token stored in {path} (mode 0600)[/dim]")
    return 0


def cmd_version(ctx: CommandContext) -> int:
    if ctx.as_json:
        print_json({"version": __version__})
    else:
        print(f"jcfa {__version__}")
    return 0
