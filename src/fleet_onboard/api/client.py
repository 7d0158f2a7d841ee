#!/usr/bin/env python3
"""Async JSON-RPC Client for the MyGeotab API.

This module provides the transport shared by the MyGeotab and MyAdmin
clients, and the MyGeotab client itself. Both APIs speak JSON-RPC over a
single POST endpoint: the body names a ``method`` and carries ``params``,
and the response holds either a ``result`` or an ``error`` object.

Features:
    - Async context manager owning one aiohttp session per client
    - Typed error mapping from HTTP status and JSON-RPC error names
    - Automatic re-authentication when the session expires
    - Exponential backoff on rate limits, server and network errors for
      read-only calls (mutations and registry pages are sent once)
    - Circuit breaker so an outage fails fast

Example:
    async with MyGeotabClient(SessionManager(database="acme")) as client:
        devices = await client.get("Device")
"""
import asyncio
import logging
from typing import Any, Optional

import aiohttp

from .auth import SessionManager, mygeotab_endpoint
from .exceptions import (
    APIError,
    ConnectionError,
    DuplicateEntityError,
    FleetOnboardError,
    InvalidCredentialsError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    SessionExpiredError,
    TimeoutError,
    ValidationError,
)
from .resilience import CircuitBreaker

logger = logging.getLogger(__name__)


# ============================================
# JSON-RPC Error Mapping
# ============================================

_VALIDATION_ERRORS = {
    "ArgumentException",
    "ArgumentNullException",
    "ArgumentOutOfRangeException",
    "MissingMemberException",
    "JsonSerializerException",
    "InvalidCastException",
}


def _error_name(error: dict[str, Any]) -> str:
    """Most specific exception name in a JSON-RPC error object."""
    inner = error.get("errors") or []
    if inner and isinstance(inner[0], dict) and inner[0].get("name"):
        return inner[0]["name"]
    data = error.get("data") or {}
    if isinstance(data, dict) and data.get("type"):
        return data["type"]
    return error.get("name") or "JSONRPCError"


def _error_message(error: dict[str, Any]) -> str:
    inner = error.get("errors") or []
    if inner and isinstance(inner[0], dict) and inner[0].get("message"):
        return inner[0]["message"]
    return error.get("message") or "Unknown JSON-RPC error"


def create_rpc_error(
    error: dict[str, Any],
    method: str,
    authenticating: bool = False,
) -> FleetOnboardError:
    """Create the typed exception for a JSON-RPC ``error`` object."""
    name = _error_name(error)
    message = _error_message(error)
    lowered = f"{name} {message}".lower()

    if name == "InvalidUserException" or "incorrect login" in lowered:
        if authenticating:
            return InvalidCredentialsError(message, details={"method": method})
        return SessionExpiredError(message, details={"method": method})

    if "sessionexpired" in lowered.replace(" ", "") or "session expired" in lowered:
        return SessionExpiredError(message, details={"method": method})

    if name == "OverLimitException":
        return RateLimitError(message, method=method, error_name=name)

    if name == "DbUnavailableException":
        return ServerError(message, status_code=503, method=method, error_name=name)

    if name == "DuplicateException":
        return DuplicateEntityError(message, method=method, error_name=name)

    if name in _VALIDATION_ERRORS:
        return ValidationError(message, method=method, error_name=name)

    if name == "ObjectNotFoundException":
        return NotFoundError("Entity", message, method=method, error_name=name)

    return APIError(message, method=method, error_name=name)


def raise_for_rpc_error(payload: Any, method: str, authenticating: bool = False) -> Any:
    """Return ``result`` from a JSON-RPC response, or raise its error.

    Raises:
        APIError: (or a subclass) when the response carries an ``error``
        InvalidCredentialsError: when an Authenticate call is rejected
        SessionExpiredError: when a regular call is rejected for its session
    """
    if not isinstance(payload, dict):
        raise APIError(
            f"Malformed JSON-RPC response for {method}",
            method=method,
            response_body=str(payload),
        )
    error = payload.get("error")
    if error:
        raise create_rpc_error(error, method, authenticating=authenticating)
    return payload.get("result")


def create_http_error(status: int, method: str, response_body: str) -> APIError:
    """Create the APIError subclass for a non-2xx HTTP response."""
    if status == 404:
        return NotFoundError("Endpoint", method=method, status_code=404, response_body=response_body)
    if status == 429:
        return RateLimitError(
            f"Rate limit exceeded for {method}",
            method=method,
            response_body=response_body,
        )
    if status in (400, 422):
        return ValidationError(
            f"Request for {method} rejected",
            status_code=status,
            method=method,
            response_body=response_body,
        )
    if status >= 500:
        return ServerError(
            f"Server error ({status}) for {method}",
            status_code=status,
            method=method,
            response_body=response_body,
        )
    return APIError(
        f"{method} failed",
        status_code=status,
        method=method,
        response_body=response_body,
    )


# ============================================
# Transport
# ============================================

class JsonRpcClient:
    """Base JSON-RPC client with retry, re-authentication and circuit breaker.

    Subclasses implement ``_prepare`` to turn a method and its params into
    the endpoint URL and request body for the current session.

    Attributes:
        session_manager: Supplies and refreshes the authenticated session
        max_retries: Attempts per call for recoverable failures
    """

    SERVICE = "JSON-RPC"

    def __init__(
        self,
        session_manager,
        max_retries: int = 3,
        timeout: float = 60.0,
        enable_circuit_breaker: bool = True,
        circuit_failure_threshold: int = 5,
        circuit_timeout: float = 60.0,
    ):
        self.session_manager = session_manager
        self.max_retries = max_retries
        self.timeout = timeout

        # Session is created in __aenter__, closed in __aexit__
        self._session: Optional[aiohttp.ClientSession] = None

        self._circuit_breaker: Optional[CircuitBreaker] = None
        if enable_circuit_breaker:
            self._circuit_breaker = CircuitBreaker(
                failure_threshold=circuit_failure_threshold,
                timeout=circuit_timeout,
                name=self.SERVICE.lower(),
            )

    # ----------------------------------------
    # Context Manager Protocol
    # ----------------------------------------

    async def __aenter__(self):
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=10, limit_per_host=10),
            timeout=aiohttp.ClientTimeout(total=self.timeout, connect=10),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    @property
    def circuit_status(self) -> Optional[dict[str, Any]]:
        if self._circuit_breaker:
            return self._circuit_breaker.get_status()
        return None

    # ----------------------------------------
    # Low-Level Request Methods
    # ----------------------------------------

    async def _prepare(self, method: str, params: dict[str, Any], credentials) -> tuple[str, dict[str, Any]]:
        raise NotImplementedError

    async def _post(self, url: str, method: str, body: dict[str, Any]) -> Any:
        """Make a single JSON-RPC request (no retry logic).

        Raises:
            APIError: If the HTTP status is not 2xx or the response has an error
            RuntimeError: If called outside of async context manager
            ConnectionError: If connection to server fails
            TimeoutError: If request times out
        """
        if not self._session:
            raise RuntimeError(
                f"{self.__class__.__name__} must be used as async context manager: "
                f"async with {self.__class__.__name__}(...) as client:"
            )

        try:
            async with self._session.post(url, json=body) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    raise create_http_error(response.status, method, error_text)
                payload = await response.json(content_type=None)

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(f"Failed to connect to {url}", host=url, cause=e)

        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"{method} request timed out",
                timeout_seconds=self.timeout,
                cause=e,
            )

        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error during {method}: {e}", cause=e)

        return raise_for_rpc_error(payload, method)

    async def _call_with_retry(self, method: str, params: dict[str, Any], retry: bool = True) -> Any:
        """Make a JSON-RPC call with automatic retry and circuit breaker.

        Resilience logic:
            - Circuit breaker: fail fast if the API is down
            - Session expired: re-authenticate once, retry immediately
            - Rate limited: wait retry_after, retry
            - Server/network errors: exponential backoff retry
            - Validation/duplicate/not-found: fail immediately

        With ``retry=False`` only the re-authentication applies: a rejected
        session means the request was never executed. Rate limit, server and
        network errors are raised after the first attempt, since the server
        may already have applied the call.

        Raises:
            CircuitOpenError: If circuit breaker is open
            APIError: If the call fails after all retries
        """
        if self._circuit_breaker:
            await self._circuit_breaker.before_call()

        last_error: Optional[Exception] = None
        backoff_delay = 1.0
        reauthenticated = False

        for attempt in range(1, self.max_retries + 1):
            credentials = await self.session_manager.get_credentials()
            url, body = await self._prepare(method, params, credentials)
            try:
                result = await self._post(url, method, body)

                if self._circuit_breaker:
                    await self._circuit_breaker.record_success()
                return result

            except SessionExpiredError as e:
                last_error = e
                if reauthenticated:
                    raise
                logger.warning(f"{self.SERVICE} session expired during {method}, re-authenticating")
                await self.session_manager.refresh(stale=credentials)
                reauthenticated = True
                continue

            except RateLimitError as e:
                last_error = e
                if retry and attempt < self.max_retries:
                    logger.warning(
                        f"Rate limited on {method}, waiting {e.retry_after}s "
                        f"(attempt {attempt}/{self.max_retries})"
                    )
                    await asyncio.sleep(e.retry_after)
                    continue
                break

            except (ServerError, NetworkError) as e:
                last_error = e
                if retry and attempt < self.max_retries:
                    logger.warning(
                        f"{method} failed: {e}. Retrying in {backoff_delay}s "
                        f"(attempt {attempt}/{self.max_retries})"
                    )
                    await asyncio.sleep(backoff_delay)
                    backoff_delay = min(backoff_delay * 2, 60.0)
                    continue
                break

            except APIError:
                # Argument, duplicate and lookup errors belong to the record, not the API
                raise

        if self._circuit_breaker and last_error:
            await self._circuit_breaker.record_failure(last_error)

        if last_error:
            raise last_error

        raise APIError(f"{method} failed after all retries", status_code=0, method=method)


# ============================================
# MyGeotab
# ============================================

class MyGeotabClient(JsonRpcClient):
    """Client for one MyGeotab database.

    Usage:
        async with MyGeotabClient(SessionManager(database="acme")) as client:
            device_id = await client.add("Device", {"serialNumber": "G9AB00000001"})
    """

    SERVICE = "MyGeotab"

    # Not idempotent: a call that timed out may already have been applied
    MUTATING_METHODS = frozenset({"Add", "Set", "Remove", "CreateDatabase"})

    def __init__(self, session_manager: SessionManager, **kwargs):
        super().__init__(session_manager, **kwargs)

    @property
    def database(self) -> str:
        return self.session_manager.database

    async def _prepare(self, method, params, credentials):
        body = {
            "method": method,
            "params": {**params, "credentials": credentials.to_params()},
        }
        return mygeotab_endpoint(credentials.server), body

    async def call(self, method: str, retry: Optional[bool] = None, **params) -> Any:
        """Call any MyGeotab API method with the current session.

        Args:
            method: API method name
            retry: Retry rate limit, server and network errors; defaults to
                True for reads and False for MUTATING_METHODS
            **params: Method parameters
        """
        if retry is None:
            retry = method not in self.MUTATING_METHODS
        return await self._call_with_retry(method, params, retry=retry)

    async def get(
        self,
        type_name: str,
        search: Optional[dict[str, Any]] = None,
        results_limit: Optional[int] = None,
        retry: bool = True,
    ) -> list[dict[str, Any]]:
        """Get entities of a type, optionally filtered by a search object."""
        params: dict[str, Any] = {"typeName": type_name}
        if search:
            params["search"] = search
        if results_limit is not None:
            params["resultsLimit"] = results_limit
        return await self.call("Get", retry=retry, **params) or []

    async def add(self, type_name: str, entity: dict[str, Any]) -> str:
        """Add an entity; returns the id assigned by the server."""
        return await self.call("Add", typeName=type_name, entity=entity)

    async def set(self, type_name: str, entity: dict[str, Any]) -> None:
        """Overwrite an existing entity (the entity must carry its id)."""
        await self.call("Set", typeName=type_name, entity=entity)

    async def database_exists(self, database: str) -> bool:
        return bool(await self.call("DatabaseExists", database=database))

    async def create_database(
        self,
        database: str,
        user_name: str,
        password: str,
        company_details: dict[str, Any],
    ) -> str:
        """Create a database; returns ``server/database`` of the new database."""
        return await self.call(
            "CreateDatabase",
            database=database,
            userName=user_name,
            password=password,
            companyDetails=company_details,
        )

    async def get_time_zones(self) -> list[dict[str, Any]]:
        return await self.call("GetTimeZones") or []
