"""Microsoft Graph API modules.

This package provides the HTTP client and the Autopilot-specific read and
write classes used by the naming workflow.

Classes:
    GraphClient: HTTP client with nextLink pagination, retry, and circuit breaker
    TokenManager: OAuth2 client-credentials token management with caching
    AutopilotDeviceSyncer: Device identity retrieval (read operations)
    DeviceManager: Device identity updates (write operations)

Exceptions:
    AutopilotError: Base exception for all errors
    ConfigurationError: Missing or invalid configuration
    InputValidationError: Directive file cannot be loaded
    WriteError: Report or export cannot be written
    AuthenticationError: Authentication failures
    APIError: API request failures
    NetworkError: Network connectivity issues
    FetchError: Device snapshot could not be retrieved
    UpdateError: A single device update failed

Resilience:
    CircuitBreaker: Prevent cascading failures
    SequentialRateLimiter: Fixed spacing between update calls
"""
from .auth import CachedToken, TokenManager
from .client import AUTOPILOT_PAGINATION, GraphClient, PaginationConfig
from .device_identities import AutopilotDeviceSyncer
from .device_manager import DeviceManager
from .exceptions import (
    APIError,
    AuthenticationError,
    AutopilotError,
    CircuitOpenError,
    ConfigurationError,
    ConnectionError,
    FetchError,
    InputValidationError,
    InvalidCredentialsError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    SyncError,
    TimeoutError,
    TokenExpiredError,
    TokenFetchError,
    UpdateError,
    ValidationError,
    WriteError,
)
from .resilience import CircuitBreaker, CircuitState, SequentialRateLimiter

__all__ = [
    # Auth
    "TokenManager",
    "CachedToken",
    # Client
    "GraphClient",
    "PaginationConfig",
    "AUTOPILOT_PAGINATION",
    # Exceptions - Base
    "AutopilotError",
    "ConfigurationError",
    "InputValidationError",
    "WriteError",
    # Exceptions - Auth
    "AuthenticationError",
    "TokenFetchError",
    "TokenExpiredError",
    "InvalidCredentialsError",
    # Exceptions - API
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "ServerError",
    # Exceptions - Network
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    # Exceptions - Sync
    "SyncError",
    "FetchError",
    "UpdateError",
    "CircuitOpenError",
    # Resilience
    "CircuitBreaker",
    "CircuitState",
    "SequentialRateLimiter",
    # Autopilot
    "AutopilotDeviceSyncer",
    "DeviceManager",
]
