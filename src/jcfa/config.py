"""Configuration management with pydantic-settings for jcfa.

Loads from (in order of precedence):
1. Environment variables with the ``JIRA_`` prefix (JIRA_DOMAIN, JIRA_EMAIL,
   JIRA_API_TOKEN, ...)
2. The YAML config file (default ``~/.jcfa/config.yaml``)
3. Default values

The API token is the exception: when neither source holds one it is read
from the OS keyring (see ``jcfa.credentials``).

The config object is frozen; helpers that change settings return a copy.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .credentials import get_stored_api_token

logger = logging.getLogger("jcfa.config")

__all__ = [
    "CONFIG_DIR_NAME",
    "CONFIG_FILE_NAME",
    "DEFAULT_EPIC_LINK_ALIASES",
    "ConfigError",
    "JcfaConfig",
    "get_config",
    "get_config_dir",
    "get_config_path",
    "load_config",
    "normalize_domain",
    "reset_config",
    "save_config",
]

CONFIG_DIR_NAME = ".jcfa"
CONFIG_FILE_NAME = "config.yaml"
CONFIG_FILE_MODE = 0o600
CONFIG_DIR_MODE = 0o700

# Field names checked, in order, for an epic reference on batch items
DEFAULT_EPIC_LINK_ALIASES = ["epic", "epicKey", "EpicKey", "epic_link", "customfield_10014"]


def normalize_domain(domain: str) -> str:
    """Accept domains with or without scheme and trailing slash."""
    domain = domain.strip()
    for prefix in ("https://", "http://"):
        if domain.lower().startswith(prefix):
            domain = domain[len(prefix):]
    return domain.rstrip("/")


class ConfigError(Exception):
    """Raised when configuration is missing, unreadable or invalid."""

    pass


class JcfaConfig(BaseSettings):
    """Configuration for the Jira CLI.

    Attributes:
        domain: Jira Cloud host (e.g., company.atlassian.net)
        email: Jira account email for Basic Auth
        api_token: Jira API token (SecretStr so it never shows up in reprs)
        default_project: Optional default project key for ``list``
        field_mappings: Alias -> field ID mappings (e.g., story_points -> customfield_10016)
        max_attachment_size: Upload size limit in MB
        download_path: Default directory for attachment downloads
        templates_dir: Extra template directory searched after the project-local one
        epic_link_aliases: Field names checked for an epic key when linking batch items
        bulk_chunk_size: Issues per /issue/bulk request (Jira caps this at 50)
        bulk_concurrency: Maximum bulk-create chunks in flight at once
        request_timeout: HTTP read timeout in seconds
        max_retries: Retries for 429/5xx/transport failures
    """

    model_config = SettingsConfigDict(
        env_prefix="JIRA_",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    domain: str = Field(default="", description="Jira Cloud host, e.g. company.atlassian.net")

    email: str = Field(default="", description="Jira account email for Basic Auth")

    api_token: SecretStr = Field(
        default=SecretStr(""),
        description="Jira API token for authentication (stored securely)",
    )

    default_project: str = Field(default="", description="Default project key")

    field_mappings: dict[str, str] = Field(
        default_factory=dict,
        description="Field alias to field ID mappings",
    )

    max_attachment_size: int = Field(
        default=10, ge=1, le=1024, description="Maximum attachment upload size in MB"
    )

    download_path: str = Field(default="", description="Default attachment download directory")

    templates_dir: str = Field(default="", description="Custom templates directory")

    epic_link_aliases: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EPIC_LINK_ALIASES),
        description="Field names checked for an epic key when linking batch items",
    )

    bulk_chunk_size: int = Field(
        default=50, ge=1, le=50, description="Issues per bulk-create request (API limit 50)"
    )

    bulk_concurrency: int = Field(
        default=4, ge=1, le=16, description="Concurrent bulk-create chunk requests"
    )

    request_timeout: float = Field(
        default=30.0, gt=0, le=300, description="HTTP read timeout in seconds"
    )

    max_retries: int = Field(default=3, ge=0, le=10, description="Retries for 429/5xx responses")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment wins over values read from the YAML file (passed as init kwargs)
        return (env_settings, init_settings, file_secret_settings)

    @field_validator("domain", mode="before")
    @classmethod
    def clean_domain(cls, v):
        if isinstance(v, str):
            return normalize_domain(v)
        return v

    @field_validator("epic_link_aliases", mode="before")
    @classmethod
    def parse_aliases(cls, v):
        """Parse comma-separated string into list."""
        if isinstance(v, str):
            if v.startswith("["):
                return v
            return [a.strip() for a in v.split(",") if a.strip()]
        return v

    @field_validator("field_mappings", mode="before")
    @classmethod
    def none_mappings(cls, v):
        """An empty ``field_mappings:`` key in YAML parses as None."""
        return {} if v is None else v

    @property
    def base_url(self) -> str:
        """Full Jira REST API v3 base URL."""
        return f"https://{self.domain}/rest/api/3"

    def get_api_token(self) -> str:
        """Token from the environment or config file, else the OS keyring."""
        token = self.api_token.get_secret_value()
        if token:
            return token
        return get_stored_api_token(self.email)

    def require_credentials(self) -> None:
        """Raise ConfigError naming the first missing credential."""
        if not self.domain:
            raise ConfigError("config: domain is required. Run 'jcfa configure' to set up")
        if not self.email:
            raise ConfigError("config: email is required. Run 'jcfa configure' to set up")
        if not self.get_api_token():
            raise ConfigError(
                "config: api_token is required (or set JIRA_API_TOKEN). "
                "Run 'jcfa configure' to set up"
            )

    def with_field_mapping(self, alias: str, field_id: str) -> "JcfaConfig":
        mappings = dict(self.field_mappings)
        mappings[alias] = field_id
        return self.model_copy(update={"field_mappings": mappings})


def get_config_dir() -> Path:
    return Path.home() / CONFIG_DIR_NAME


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILE_NAME


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        logger.debug("config_file_missing", extra={"path": str(path)})
        return {}
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return raw


def load_config(path: str | os.PathLike | None = None) -> JcfaConfig:
    """Load configuration from the YAML file and environment.

    A missing file is not an error: the result then comes from environment
    variables and defaults only. Credentials are checked separately with
    ``JcfaConfig.require_credentials()`` so that commands such as
    ``template list`` work without a configured account.

    Raises:
        ConfigError: If the file is unreadable, malformed or has invalid values.
    """
    config_path = Path(path) if path else get_config_path()
    data = _read_config_file(config_path)
    try:
        return JcfaConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid config in {config_path}: {e}") from e


def save_config(config: JcfaConfig, path: str | os.PathLike | None = None) -> Path:
    """Write configuration to YAML with owner-only permissions.

    Returns:
        Path the configuration was written to.

    Raises:
        ConfigError: If domain or email is missing, or the file cannot be written.
    """
    if not config.domain:
        raise ConfigError("cannot save invalid config: domain is required")
    if not config.email:
        raise ConfigError("cannot save invalid config: email is required")

    config_path = Path(path) if path else get_config_path()

    data = config.model_dump(exclude_defaults=True, exclude={"api_token"})
    # Only a token held by the config itself; keyring tokens stay in the keyring
    token = config.api_token.get_secret_value()
    if token:
        data["api_token"] = token

    try:
        config_path.parent.mkdir(mode=CONFIG_DIR_MODE, parents=True, exist_ok=True)
        config_path.write_text(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=True),
            encoding="utf-8",
        )
        os.chmod(config_path, CONFIG_FILE_MODE)
    except OSError as e:
        raise ConfigError(f"failed to write config file {config_path}: {e}") from e

    logger.info("config_saved", extra={"path": str(config_path)})
    return config_path


@lru_cache(maxsize=1)
def get_config() -> JcfaConfig:
    """Get global configuration singleton.

    First call loads from the default file + environment, subsequent calls
    return the cached instance.
    """
    return load_config()


def reset_config() -> None:
    """Reset configuration singleton for testing."""
    get_config.cache_clear()
