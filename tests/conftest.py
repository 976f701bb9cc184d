"""Shared pytest fixtures for jcfa tests.

Fixture organization:
    - HTTP fixtures: JiraClient instances backed by httpx.MockTransport, so
      no test touches the network
    - Config fixtures: isolated config files, environment and keyring
    - Sample data fixtures: ADF documents and createmeta responses
"""

import json
import logging
from collections.abc import Callable, Generator
from pathlib import Path

import httpx
import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from jcfa.config import reset_config
from jcfa.jira.client import JiraClient

BASE_URL = "https://test.atlassian.net/rest/api/3"


# =============================================================================
# HTTP Fixtures
# =============================================================================


class RecordingHandler:
    """MockTransport handler that records requests and replays routed responses.

    Routes map ``"METHOD /path"`` (path relative to the API base) to either an
    httpx.Response, a list of responses consumed in order, or a callable
    taking the request.
    """

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, response) -> None:
        self.routes[f"{method} {path}"] = response

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and _relative_path(r) == path
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.method} {_relative_path(request)}"
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"errorMessages": [f"no route for {key}"]})
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if callable(route):
            return route(request)
        # Fresh response per request; the last listed one repeats
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)


def _relative_path(request: httpx.Request) -> str:
    path = request.url.path
    prefix = "/rest/api/3"
    return path[len(prefix):] if path.startswith(prefix) else path


def request_json(request: httpx.Request):
    return json.loads(request.content.decode()) if request.content else None


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def make_client(handler) -> Generator[Callable[..., JiraClient], None, None]:
    """Factory for JiraClient on a MockTransport; retries never sleep."""
    clients: list[JiraClient] = []

    def factory(**kwargs) -> JiraClient:
        kwargs.setdefault("max_retries", 3)
        client = JiraClient(
            base_url=BASE_URL,
            email="test@example.com",
            api_token="test-token",
            backoff_base=0,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def client(make_client) -> JiraClient:
    return make_client()


# =============================================================================
# Config Fixtures
# =============================================================================


class MemoryKeyring(KeyringBackend):
    """In-process keyring backend keyed by (service, username)."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.passwords: dict[tuple[str, str], str] = {}

    def get_password(self, service, username):
        return self.passwords.get((service, username))

    def set_password(self, service, username, password):
        self.passwords[(service, username)] = password

    def delete_password(self, service, username):
        if self.passwords.pop((service, username), None) is None:
            raise PasswordDeleteError(username)


@pytest.fixture(autouse=True)
def memory_keyring() -> Generator[MemoryKeyring, None, None]:
    """Swap the OS keyring for an in-memory one so tests never touch it."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path) -> Generator[None, None, None]:
    """Keep tests away from real credentials, allowlists and ~/.jcfa."""
    for name in (
        "JIRA_DOMAIN",
        "JIRA_EMAIL",
        "JIRA_API_TOKEN",
        "JIRA_DEFAULT_PROJECT",
        "JIRA_FIELD_MAPPINGS",
        "JIRA_READONLY",
        "JIRA_COMMAND_ALLOWLIST",
        "JIRA_KEYRING_BACKEND",
        "JCFA_LOG_LEVEL",
        "JCFA_LOG_FORMAT",
        "CI",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    reset_config()
    yield
    reset_config()

    # configure_logging() detaches the jcfa logger; undo it so caplog keeps working
    logger = logging.getLogger("jcfa")
    for log_handler in list(logger.handlers):
        logger.removeHandler(log_handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def config_file(tmp_path) -> Path:
    """A valid config file with credentials and one field mapping."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "domain: test.atlassian.net\n"
        "email: test@example.com\n"
        "api_token: test-token\n"
        "default_project: PROJ\n"
        "field_mappings:\n"
        "  story_points: customfield_10016\n",
        encoding="utf-8",
    )
    return path


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def createmeta_response() -> dict:
    """createmeta for PROJ / Story with summary required and a priority list."""
    return {
        "projects": [
            {
                "key": "PROJ",
                "issuetypes": [
                    {
                        "name": "Story",
                        "fields": {
                            "summary": {
                                "name": "Summary",
                                "required": True,
                                "schema": {"type": "string"},
                            },
                            "reporter": {
                                "name": "Reporter",
                                "required": True,
                                "schema": {"type": "user"},
                            },
                            "priority": {
                                "name": "Priority",
                                "required": False,
                                "schema": {"type": "priority"},
                                "allowedValues": [
                                    {"id": "1", "name": "High"},
                                    {"id": "2", "name": "Medium"},
                                ],
                            },
                            "customfield_10016": {
                                "name": "Story Points",
                                "required": False,
                                "schema": {"type": "number"},
                            },
                            "labels": {
                                "name": "Labels",
                                "required": False,
                                "schema": {"type": "array"},
                            },
                        },
                    }
                ],
            }
        ]
    }
