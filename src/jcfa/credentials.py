"""API token storage in the OS keyring.

``jcfa configure`` keeps the token in the platform secret store (macOS
Keychain, Windows Credential Manager, Secret Service on Linux) through the
``keyring`` library, keyed by the account email. The YAML config file is the
fallback when no usable keyring exists.

``JIRA_KEYRING_BACKEND`` selects where new tokens go:

- ``auto`` (default): the keyring, unless ``CI`` is set or no usable
  backend is installed
- ``keyring``: always the keyring
- ``file``: always the config file (mode 0600)
"""

import logging
import os

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger("jcfa.credentials")

__all__ = [
    "BACKEND_AUTO",
    "BACKEND_FILE",
    "BACKEND_KEYRING",
    "ENV_KEYRING_BACKEND",
    "SERVICE_NAME",
    "delete_api_token",
    "get_stored_api_token",
    "is_keyring_available",
    "select_backend",
    "store_api_token",
]

SERVICE_NAME = "jcfa"
ENV_KEYRING_BACKEND = "JIRA_KEYRING_BACKEND"

BACKEND_AUTO = "auto"
BACKEND_KEYRING = "keyring"
BACKEND_FILE = "file"

# Accepted spellings for JIRA_KEYRING_BACKEND
_BACKEND_NAMES = {
    "": BACKEND_AUTO,
    "auto": BACKEND_AUTO,
    "keyring": BACKEND_KEYRING,
    "keychain": BACKEND_KEYRING,
    "file": BACKEND_FILE,
}


def is_keyring_available() -> bool:
    """True when the active keyring backend can actually store secrets."""
    backend = type(keyring.get_keyring())
    label = f"{backend.__module__}.{backend.__name__}".lower()
    return "fail" not in label and "null" not in label


def select_backend(environ=None) -> str:
    """Resolve ``JIRA_KEYRING_BACKEND`` to ``keyring`` or ``file``."""
    env = os.environ if environ is None else environ
    raw = env.get(ENV_KEYRING_BACKEND, "").strip().lower()
    backend = _BACKEND_NAMES.get(raw)
    if backend is None:
        logger.warning("unknown_keyring_backend", extra={"value": raw})
        backend = BACKEND_AUTO

    if backend != BACKEND_AUTO:
        return backend
    if env.get("CI"):
        return BACKEND_FILE
    return BACKEND_KEYRING if is_keyring_available() else BACKEND_FILE


def store_api_token(account: str, token: str) -> bool:
    """Save ``token`` for ``account``; False when the keyring refused it."""
    try:
        keyring.set_password(SERVICE_NAME, account, token)
    except KeyringError as e:
        logger.warning(
            "keyring_store_failed",
            extra={"account": account, "error": str(e), "error_type": type(e).__name__},
        )
        return False
    logger.debug("keyring_token_stored", extra={"account": account})
    return True


def get_stored_api_token(account: str) -> str:
    """Token saved for ``account``, or ``""`` when there is none."""
    if not account:
        return ""
    try:
        token = keyring.get_password(SERVICE_NAME, account)
    except KeyringError as e:
        logger.debug(
            "keyring_lookup_failed",
            extra={"account": account, "error_type": type(e).__name__},
        )
        return ""
    return token or ""


def delete_api_token(account: str) -> bool:
    """Remove the token saved for ``account``; False if none was removed."""
    try:
        keyring.delete_password(SERVICE_NAME, account)
    except PasswordDeleteError:
        return False
    except KeyringError as e:
        logger.warning(
            "keyring_delete_failed",
            extra={"account": account, "error": str(e), "error_type": type(e).__name__},
        )
        return False
    logger.debug("keyring_token_deleted", extra={"account": account})
    return True
