#!/usr/bin/env python3
"""Exception Hierarchy for the MyGeotab and MyAdmin JSON-RPC APIs.

This module provides a structured exception hierarchy for handling errors
across the onboarding toolkit: configuration, authentication, API, network
and synchronization failures.

Design Principles:
    - All exceptions inherit from FleetOnboardError base class
    - Exceptions preserve context (original error, timestamps, details)
    - Exceptions are categorized by recoverability
    - Per-record failures are captured as outcomes, not raised past the engine

Exception Hierarchy:
    FleetOnboardError (base)
    ├── ConfigurationError (unrecoverable - fix config)
    ├── AuthenticationError (may be recoverable - re-authenticate)
    │   ├── InvalidCredentialsError
    │   └── SessionExpiredError
    ├── APIError (may be recoverable - retry)
    │   ├── RateLimitError
    │   ├── NotFoundError
    │   ├── ValidationError
    │   ├── DuplicateEntityError
    │   └── ServerError
    ├── NetworkError (recoverable - retry)
    │   ├── ConnectionError
    │   └── TimeoutError
    └── SyncError (operation failed)
        ├── CollectionError
        ├── RecordMutationError
        ├── PartialApplyError
        └── CircuitOpenError
"""
from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class FleetOnboardError(Exception):
    """Base exception for all onboarding errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "SESSION_EXPIRED")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether this error might be recoverable with retry
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Configuration Errors (Unrecoverable)
# ============================================

class ConfigurationError(FleetOnboardError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


# ============================================
# Authentication Errors
# ============================================

class AuthenticationError(FleetOnboardError):
    """Base class for authentication-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class InvalidCredentialsError(AuthenticationError):
    """Raised when the username/password pair is rejected."""

    def __init__(
        self,
        message: str = "Invalid username or password",
        username: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if username:
            details["username"] = username
        super().__init__(
            message,
            code="INVALID_CREDENTIALS",
            details=details,
            recoverable=False,
            **kwargs,
        )


class SessionExpiredError(AuthenticationError):
    """Raised when the cached session id is no longer accepted."""

    def __init__(self, message: str = "API session has expired", **kwargs):
        super().__init__(message, code="SESSION_EXPIRED", **kwargs)


# ============================================
# API Errors
# ============================================

class APIError(FleetOnboardError):
    """Base class for API response errors.

    Attributes:
        status_code: HTTP status code (200 for JSON-RPC level errors)
        method: JSON-RPC method that was called
        error_name: Server-side exception name from the JSON-RPC error payload
        response_body: Raw response body (may be truncated)
    """

    def __init__(
        self,
        message: str,
        status_code: int = 200,
        method: Optional[str] = None,
        error_name: Optional[str] = None,
        response_body: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        if method:
            details["method"] = method
        if error_name:
            details["error_name"] = error_name
        if response_body:
            details["response_body"] = response_body[:500] if len(response_body) > 500 else response_body

        kwargs.setdefault("recoverable", status_code in (429, 500, 502, 503, 504))
        kwargs.setdefault("code", f"API_ERROR_{status_code}")

        super().__init__(
            message,
            details=details,
            **kwargs,
        )
        self.status_code = status_code
        self.method = method
        self.error_name = error_name
        self.response_body = response_body


class RateLimitError(APIError):
    """Raised when the API rejects a call with OverLimitException or HTTP 429.

    Attributes:
        retry_after: Seconds to wait before retrying
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 429)
        details = kwargs.pop("details", {})
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(
            message,
            code="RATE_LIMIT_EXCEEDED",
            details=details,
            **kwargs,
        )
        self.retry_after = retry_after or 60


class NotFoundError(APIError):
    """Raised when a requested entity does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} '{resource_id}' not found"

        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message,
            code="NOT_FOUND",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ValidationError(APIError):
    """Raised when the server rejects an argument or entity."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field

        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


class DuplicateEntityError(APIError):
    """Raised when an Add call collides with an existing entity."""

    def __init__(self, message: str = "Entity already exists", **kwargs):
        super().__init__(
            message,
            code="DUPLICATE_ENTITY",
            recoverable=False,
            **kwargs,
        )


class ServerError(APIError):
    """Raised when the server returns a 5xx error or is unavailable."""

    def __init__(
        self,
        message: str = "Server error",
        **kwargs,
    ):
        kwargs.setdefault("status_code", 500)
        super().__init__(
            message,
            code="SERVER_ERROR",
            recoverable=True,
            **kwargs,
        )


# ============================================
# Network Errors (Usually Recoverable)
# ============================================

class NetworkError(FleetOnboardError):
    """Base class for network-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ConnectionError(NetworkError):
    """Raised when connection to server fails."""

    def __init__(
        self,
        message: str = "Failed to connect to server",
        host: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if host:
            details["host"] = host
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details=details,
            **kwargs,
        )


class TimeoutError(NetworkError):
    """Raised when request times out."""

    def __init__(
        self,
        message: str = "Request timed out",
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(
            message,
            code="TIMEOUT_ERROR",
            details=details,
            **kwargs,
        )


# ============================================
# Sync Errors
# ============================================

class SyncError(FleetOnboardError):
    """Base class for synchronization errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)


class CollectionError(SyncError):
    """Raised when a paginated listing fails part way.

    Fatal to a reconciliation run: a partial index must never be used
    to decide whether a device is created.

    Attributes:
        source: Name of the listing that failed
        records_before_failure: Records collected before the failure
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        records_before_failure: int = 0,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if source:
            details["source"] = source
        details["records_before_failure"] = records_before_failure
        super().__init__(
            message,
            code="COLLECTION_FAILED",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.source = source
        self.records_before_failure = records_before_failure


class RecordMutationError(SyncError):
    """Raised when an Add or Set call fails for a single device."""

    def __init__(
        self,
        message: str,
        serial_number: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if serial_number:
            details["serial_number"] = serial_number
        if operation:
            details["operation"] = operation
        super().__init__(
            message,
            code="RECORD_MUTATION_FAILED",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.serial_number = serial_number
        self.operation = operation


class PartialApplyError(RecordMutationError):
    """Raised when a device was created but its settings could not be written."""

    def __init__(
        self,
        message: str,
        serial_number: Optional[str] = None,
        device_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if device_id:
            details["device_id"] = device_id
        super().__init__(
            message,
            serial_number=serial_number,
            operation="update",
            details=details,
            **kwargs,
        )
        self.code = "PARTIAL_APPLY_FAILED"
        self.device_id = device_id


class CircuitOpenError(SyncError):
    """Raised when circuit breaker is open and requests are being rejected.

    Attributes:
        reset_at: When the circuit breaker will attempt to close
    """

    def __init__(
        self,
        message: str = "Circuit breaker is open, requests rejected",
        reset_at: Optional[datetime] = None,
        failure_count: int = 0,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if reset_at:
            details["reset_at"] = reset_at.isoformat()
        details["failure_count"] = failure_count

        super().__init__(
            message,
            code="CIRCUIT_OPEN",
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.reset_at = reset_at
        self.failure_count = failure_count


__all__ = [
    # Base
    "FleetOnboardError",
    # Configuration
    "ConfigurationError",
    # Authentication
    "AuthenticationError",
    "InvalidCredentialsError",
    "SessionExpiredError",
    # API
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "DuplicateEntityError",
    "ServerError",
    # Network
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    # Sync
    "SyncError",
    "CollectionError",
    "RecordMutationError",
    "PartialApplyError",
    "CircuitOpenError",
]
