"""Jira Cloud REST API client.

Provides an httpx-based client for Jira Cloud API v3 with Basic Auth.
Retries rate-limited (429) and server-error (5xx) responses, plus transport
failures, with exponential backoff and jitter; ``Retry-After`` is honored.

Reference: https://developer.atlassian.com/cloud/jira/platform/rest/v3/intro/
"""

import base64
import logging
import time
from collections.abc import Callable
from typing import Any, BinaryIO

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

logger = logging.getLogger("jcfa.jira.client")

__all__ = [
    "JiraAPIError",
    "JiraAuthError",
    "JiraClient",
    "JiraError",
    "JiraNotFoundError",
    "JiraPermissionError",
    "JiraTransportError",
    "format_error_response",
]

MAX_BACKOFF_SECONDS = 30.0


class JiraError(Exception):
    """Base class for Jira request failures.

    Attributes:
        status_code: HTTP status, None for transport failures
        error_messages: ``errorMessages`` from the Jira error body
        errors: ``errors`` (field -> message) from the Jira error body
        body: Decoded response body, when there was one
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_messages: list[str] | None = None,
        errors: dict[str, str] | None = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_messages = error_messages or []
        self.errors = errors or {}
        self.body = body


class JiraAuthError(JiraError):
    """Credentials were rejected (HTTP 401)."""


class JiraAPIError(JiraError):
    """Jira answered with an error status."""


class JiraPermissionError(JiraAPIError):
    """Authenticated, but not allowed to perform the operation (HTTP 403)."""


class JiraNotFoundError(JiraAPIError):
    """The addressed resource does not exist (HTTP 404)."""


class JiraTransportError(JiraError):
    """The request never produced an HTTP response (timeout, DNS, refused)."""


class _RetryableResponse(Exception):
    """Internal signal that a response status should be retried."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def format_error_response(body: Any) -> str:
    """Format a Jira error body for display.

    Joins ``errorMessages`` and ``field: message`` pairs from ``errors`` with
    "; ". Returns "unknown error" when neither is present.
    """
    if not isinstance(body, dict):
        return "unknown error"

    messages: list[str] = []
    error_messages = body.get("errorMessages") or []
    if error_messages:
        messages.append("; ".join(str(m) for m in error_messages))

    errors = body.get("errors") or {}
    if isinstance(errors, dict):
        for field, msg in errors.items():
            messages.append(f"{field}: {msg}")

    if not messages:
        return "unknown error"
    return "; ".join(messages)


def _should_retry_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _is_retryable(exception: BaseException) -> bool:
    if isinstance(exception, _RetryableResponse):
        return True
    return isinstance(exception, httpx.TransportError)


def _retry_after_seconds(exception: BaseException | None) -> float | None:
    if not isinstance(exception, _RetryableResponse):
        return None
    header = exception.response.headers.get("retry-after")
    if not header:
        return None
    try:
        return max(0.0, float(header))
    except ValueError:
        return None


def _safe_json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


class JiraClient:
    """Jira Cloud REST API client using httpx with Basic Auth.

    Uses a long-lived httpx.Client with connection pooling. All paths are
    relative to ``base_url`` (``https://<domain>/rest/api/3``); absolute URLs,
    such as attachment content links, are passed through unchanged.

    Example:
        >>> with JiraClient("https://company.atlassian.net/rest/api/3", "me@x.com", "token") as client:
        ...     me = client.validate_credentials()
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize Jira client with authentication.

        Args:
            base_url: REST API base URL (e.g., https://company.atlassian.net/rest/api/3)
            email: Jira account email for Basic Auth
            api_token: Jira API token for authentication
            timeout: Read/write timeout in seconds
            max_retries: Retries after the first attempt for 429/5xx/transport errors
            backoff_base: Multiplier for exponential backoff (0 disables sleeping)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.backoff_base = backoff_base

        credentials = f"{email}:{api_token}"
        encoded = base64.b64encode(credentials.encode()).decode()
        self.auth_header = f"Basic {encoded}"

        timeout_config = httpx.Timeout(
            connect=5.0,
            read=timeout,
            write=timeout,
            pool=5.0,
        )

        limits = httpx.Limits(
            max_keepalive_connections=10,
            max_connections=20,
            keepalive_expiry=10.0,
        )

        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout_config,
            limits=limits,
            transport=transport,
            headers={
                "Authorization": self.auth_header,
                "Accept": "application/json",
            },
        )

        self._backoff = wait_exponential(
            multiplier=backoff_base, max=MAX_BACKOFF_SECONDS
        ) + wait_random(0, 0.3 * backoff_base)

    @classmethod
    def from_config(cls, config, transport: httpx.BaseTransport | None = None) -> "JiraClient":
        """Build a client from a JcfaConfig (credentials must be present)."""
        config.require_credentials()
        return cls(
            base_url=config.base_url,
            email=config.email,
            api_token=config.get_api_token(),
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Core request path
    # ------------------------------------------------------------------

    def _wait(self, retry_state: RetryCallState) -> float:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = _retry_after_seconds(exception)
        if retry_after is not None:
            return min(retry_after, MAX_BACKOFF_SECONDS)
        return self._backoff(retry_state)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "jira_request_retry",
            extra={
                "attempt": retry_state.attempt_number,
                "reason": str(exception),
                "wait_seconds": round(retry_state.upcoming_sleep, 2),
            },
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        files: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request with retry and return the final response.

        Non-retryable error statuses are raised as JiraError subclasses; a
        retryable status that is still failing after the last attempt is
        raised the same way.

        Raises:
            JiraAuthError, JiraPermissionError, JiraNotFoundError, JiraAPIError:
                On HTTP error statuses.
            JiraTransportError: When no response could be obtained.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait,
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )

        start = time.perf_counter()
        try:
            for attempt in retrying:
                with attempt:
                    response = self.client.request(
                        method,
                        path,
                        params=params,
                        json=json,
                        files=files,
                        headers=headers,
                    )
                    if _should_retry_status(response.status_code):
                        raise _RetryableResponse(response)
        except _RetryableResponse as e:
            response = e.response
        except httpx.TimeoutException as e:
            logger.error("jira_request_timeout", extra={"method": method, "path": path})
            raise JiraTransportError(f"request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            logger.error(
                "jira_request_error",
                extra={"method": method, "path": path, "error": str(e)},
            )
            raise JiraTransportError(f"request failed: {method} {path}: {e}") from e

        logger.debug(
            "jira_request",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 1),
            },
        )
        self._raise_for_status(response)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return

        status = response.status_code
        body = _safe_json(response)
        if isinstance(body, dict):
            message = format_error_response(body)
            error_messages = body.get("errorMessages") or []
            errors = body.get("errors") if isinstance(body.get("errors"), dict) else {}
        else:
            message = response.text.strip()[:200] or "unknown error"
            error_messages, errors = [], {}

        kwargs = {
            "status_code": status,
            "error_messages": error_messages,
            "errors": errors,
            "body": body,
        }
        if status == 401:
            raise JiraAuthError(f"authentication failed (HTTP 401): {message}", **kwargs)
        if status == 403:
            raise JiraPermissionError(f"API error (HTTP 403): {message}", **kwargs)
        if status == 404:
            raise JiraNotFoundError(f"API error (HTTP 404): {message}", **kwargs)
        raise JiraAPIError(f"API error (HTTP {status}): {message}", **kwargs)

    # ------------------------------------------------------------------
    # JSON helpers
    # ------------------------------------------------------------------

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return _safe_json(self.request("GET", path, params=params))

    def post(self, path: str, json: Any = None, params: dict[str, Any] | None = None) -> Any:
        return _safe_json(self.request("POST", path, json=json, params=params))

    def put(self, path: str, json: Any = None, params: dict[str, Any] | None = None) -> Any:
        return _safe_json(self.request("PUT", path, json=json, params=params))

    def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return _safe_json(self.request("DELETE", path, params=params))

    def upload(self, path: str, filename: str, content: bytes, mime_type: str) -> Any:
        """POST a multipart file upload (used for attachments)."""
        # Jira rejects uploads without the XSRF opt-out header
        response = self.request(
            "POST",
            path,
            files={"file": (filename, content, mime_type)},
            headers={"X-Atlassian-Token": "no-check"},
        )
        return _safe_json(response)

    def download(
        self,
        url: str,
        fh: BinaryIO,
        on_chunk: Callable[[int], None] | None = None,
    ) -> int:
        """Stream ``url`` into ``fh``; returns the number of bytes written.

        Raises:
            JiraError subclasses: On error statuses or transport failures.
        """
        written = 0
        try:
            with self.client.stream("GET", url, follow_redirects=True) as response:
                if not response.is_success:
                    response.read()
                    self._raise_for_status(response)
                for chunk in response.iter_bytes():
                    fh.write(chunk)
                    written += len(chunk)
                    if on_chunk:
                        on_chunk(len(chunk))
        except httpx.HTTPError as e:
            raise JiraTransportError(f"download failed: {e}") from e
        return written

    def validate_credentials(self) -> dict[str, Any]:
        """Return the authenticated user (``/myself``)."""
        return self.get("/myself")

    def close(self) -> None:
        if getattr(self, "client", None) is not None:
            self.client.close()

    def __enter__(self) -> "JiraClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
