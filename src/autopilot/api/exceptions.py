#!/usr/bin/env python3
"""Errors raised while naming Autopilot devices.

    AutopilotError
    ├── ConfigurationError       AUTOPILOT_* settings or report target unusable
    ├── InputValidationError     directive file rejected before any Graph call
    ├── WriteError               report, snapshot or JSON export not written
    ├── AuthenticationError
    │   ├── TokenFetchError      identity platform gave no token
    │   ├── TokenExpiredError    Graph answered 401
    │   └── InvalidCredentialsError
    ├── APIError                 Graph answered with an error status
    │   ├── RateLimitError       429
    │   ├── NotFoundError        404
    │   ├── ValidationError      400 / 422
    │   └── ServerError          5xx
    ├── NetworkError
    │   ├── ConnectionError
    │   └── TimeoutError
    └── SyncError
        ├── FetchError           directory snapshot incomplete, run aborted
        ├── UpdateError          one updateDeviceProperties call rejected
        └── CircuitOpenError     Graph calls suspended after repeated failures

Every error keeps a human-readable ``message``; that text is what lands in
the report's Error column, so Graph's own explanation is folded into it.
"""
import json
from datetime import datetime
from typing import Any, Optional


def graph_error_detail(body: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Return (code, message) from a Graph ``{"error": {...}}`` body."""
    if not body:
        return None, None
    try:
        payload = json.loads(body)
    except ValueError:
        return None, None
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        return None, None
    return error.get("code"), error.get("message")


class AutopilotError(Exception):
    """Base class; ``details`` holds structured context for log lines."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({context})"


class ConfigurationError(AutopilotError):
    def __init__(self, message: str, missing_keys: Optional[list[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.missing_keys = missing_keys or []


class InputValidationError(AutopilotError):
    """The directive file cannot be used; ``errors`` lists per-row problems."""

    def __init__(self, message: str, errors: Optional[list] = None, source: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
        self.source = source


class WriteError(AutopilotError):
    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if path:
            details["path"] = path
        super().__init__(message, details=details, **kwargs)
        self.path = path


# ----------------------------------------
# Authentication
# ----------------------------------------

class AuthenticationError(AutopilotError):
    pass


class TokenFetchError(AuthenticationError):
    def __init__(self, message: str, status_code: Optional[int] = None, attempts: int = 1, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.attempts = attempts


class TokenExpiredError(AuthenticationError):
    """Graph rejected the bearer token; the client refreshes and retries."""

    def __init__(self, message: str = "Access token expired or invalid", **kwargs):
        super().__init__(message, **kwargs)


class InvalidCredentialsError(AuthenticationError):
    """The app registration's client id or secret was refused."""

    def __init__(self, message: str = "Invalid client credentials", **kwargs):
        super().__init__(message, **kwargs)


# ----------------------------------------
# Graph API responses
# ----------------------------------------

class APIError(AutopilotError):
    """Graph answered with an error status.

    When the body is a Graph error object its ``error.message`` is appended
    to ``message`` and its ``error.code`` is kept as ``graph_code``.
    """

    default_status = 0

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        method: str = "GET",
        response_body: Optional[str] = None,
        **kwargs,
    ):
        self.status_code = status_code or self.default_status
        self.endpoint = endpoint
        self.method = method
        self.response_body = response_body
        self.graph_code, self.graph_message = graph_error_detail(response_body)
        if self.graph_message:
            message = f"{message}: {self.graph_message}"
        super().__init__(message, **kwargs)


class RateLimitError(APIError):
    default_status = 429
    DEFAULT_RETRY_AFTER = 60

    def __init__(self, message: str = "Graph throttled the request", retry_after: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after or self.DEFAULT_RETRY_AFTER


class NotFoundError(APIError):
    default_status = 404

    def __init__(self, message: str = "Resource not found", **kwargs):
        super().__init__(message, **kwargs)


class ValidationError(APIError):
    """Graph refused the request body (400/422), or a local precheck did."""

    default_status = 400

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class ServerError(APIError):
    default_status = 500

    def __init__(self, message: str = "Graph server error", **kwargs):
        super().__init__(message, **kwargs)


# ----------------------------------------
# Transport
# ----------------------------------------

class NetworkError(AutopilotError):
    pass


class ConnectionError(NetworkError):
    def __init__(self, message: str = "Failed to connect", host: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.host = host


class TimeoutError(NetworkError):
    def __init__(self, message: str = "Request timed out", timeout_seconds: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout_seconds = timeout_seconds


# ----------------------------------------
# Naming run
# ----------------------------------------

class SyncError(AutopilotError):
    pass


class FetchError(SyncError):
    def __init__(self, message: str = "Failed to fetch Autopilot devices", **kwargs):
        super().__init__(message, **kwargs)


class UpdateError(SyncError):
    def __init__(self, message: str, device_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.device_id = device_id


class CircuitOpenError(SyncError):
    def __init__(
        self,
        message: str = "Graph calls suspended",
        reset_at: Optional[datetime] = None,
        failure_count: int = 0,
        **kwargs,
    ):
        details = kwargs.pop("details", None) or {}
        details["failure_count"] = failure_count
        if reset_at:
            details["reset_at"] = reset_at.isoformat()
        super().__init__(message, details=details, **kwargs)
        self.reset_at = reset_at
        self.failure_count = failure_count
