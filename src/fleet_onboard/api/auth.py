#!/usr/bin/env python3
"""Session Management for the MyGeotab and MyAdmin APIs.

Both platforms authenticate with a username/password pair through their
``Authenticate`` JSON-RPC method and hand back a session that subsequent
calls must carry. This module caches those sessions and re-authenticates
when a call reports the session has expired.

Features:
    - Lazy authentication on first use, cached in memory only
    - Concurrency-safe refresh using asyncio.Lock (one Authenticate call
      even when many device records hit an expired session at once)
    - Follows MyGeotab server redirection (``path`` in the auth result)
    - Session IDs are never logged; a short SHA-256 id is used instead

Example:
    >>> manager = SessionManager(database="acme_fleet")
    >>> credentials = await manager.get_credentials()
"""
import asyncio
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp
from dotenv import load_dotenv

from .exceptions import (
    ConfigurationError,
    ConnectionError,
    FleetOnboardError,
    InvalidCredentialsError,
    NetworkError,
    TimeoutError,
)

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_MYGEOTAB_SERVER = "my.geotab.com"
DEFAULT_MYADMIN_URL = "https://myadminapi.geotab.com/v2/MyAdminApi.ashx"


def session_fingerprint(session_id: str) -> str:
    """Safe identifier for logging (SHA-256 hash, first 8 chars)."""
    return hashlib.sha256(session_id.encode()).hexdigest()[:8]


def mygeotab_endpoint(server: str) -> str:
    """JSON-RPC endpoint for a MyGeotab server name."""
    server = server.strip().rstrip("/")
    if server.startswith("http://") or server.startswith("https://"):
        return f"{server}/apiv1"
    return f"https://{server}/apiv1"


@dataclass
class MyGeotabCredentials:
    """Authenticated MyGeotab session.

    Attributes:
        database: Database (tenant) the session is bound to
        user_name: Authenticated user
        session_id: Opaque session token
        server: Server that owns the database (after redirection)
    """
    database: str
    user_name: str
    session_id: str
    server: str = DEFAULT_MYGEOTAB_SERVER

    def to_params(self) -> dict[str, str]:
        """Credentials object as the API expects it inside ``params``."""
        return {
            "database": self.database,
            "userName": self.user_name,
            "sessionId": self.session_id,
        }

    @property
    def session_key(self) -> str:
        return session_fingerprint(self.session_id)


@dataclass
class MyAdminCredentials:
    """Authenticated MyAdmin session (``apiKey`` is the MyAdmin user id)."""
    api_key: str
    session_id: str
    user_name: str

    def to_params(self) -> dict[str, str]:
        return {"apiKey": self.api_key, "sessionId": self.session_id}

    @property
    def session_key(self) -> str:
        return session_fingerprint(self.session_id)


class _BaseSessionManager:
    """Shared caching and locking for session managers."""

    SERVICE = "API"

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout
        self._credentials: Optional[Any] = None
        self._lock = asyncio.Lock()

    async def get_credentials(self):
        """Return the cached session, authenticating when there is none."""
        if self._credentials is not None:
            return self._credentials

        async with self._lock:
            if self._credentials is None:
                self._credentials = await self._authenticate()
            return self._credentials

    async def refresh(self, stale: Optional[Any] = None):
        """Re-authenticate, unless another caller already replaced ``stale``."""
        async with self._lock:
            if stale is None or self._credentials is stale or self._credentials is None:
                logger.info(f"Re-authenticating {self.SERVICE} session")
                self._credentials = await self._authenticate()
            return self._credentials

    def invalidate(self) -> None:
        self._credentials = None

    @property
    def session_info(self) -> Optional[dict[str, str]]:
        """Debug info about the cached session (never the session id itself)."""
        if self._credentials is None:
            return None
        return {
            "user_name": self._credentials.user_name,
            "session_key": self._credentials.session_key,
        }

    async def _authenticate(self):
        raise NotImplementedError

    async def _post_authenticate(self, url: str, body: dict[str, Any]) -> Any:
        """POST an Authenticate call and return its ``result``."""
        from .client import raise_for_rpc_error

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as session:
                async with session.post(url, json=body) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        raise FleetOnboardError(
                            f"{self.SERVICE} authentication returned HTTP {response.status}",
                            code="AUTHENTICATION_HTTP_ERROR",
                            details={"status_code": response.status, "response": error_text[:200]},
                        )
                    payload = await response.json(content_type=None)

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to {self.SERVICE} authentication endpoint",
                host=url,
                cause=e,
            )
        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"{self.SERVICE} authentication timed out",
                timeout_seconds=self.timeout,
                cause=e,
            )
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error during {self.SERVICE} authentication: {e}", cause=e)

        return raise_for_rpc_error(payload, "Authenticate", authenticating=True)


class SessionManager(_BaseSessionManager):
    """MyGeotab session manager for one database.

    Attributes:
        server: Server name the session is requested from
        database: Database (tenant) name
        user_name: MyGeotab user
    """

    SERVICE = "MyGeotab"

    def __init__(
        self,
        database: Optional[str] = None,
        user_name: Optional[str] = None,
        password: Optional[str] = None,
        server: Optional[str] = None,
        timeout: float = 60.0,
    ):
        super().__init__(timeout=timeout)
        self.server = server or os.getenv("MYGEOTAB_SERVER", DEFAULT_MYGEOTAB_SERVER)
        self.database = database if database is not None else os.getenv("MYGEOTAB_DATABASE", "")
        self.user_name = user_name or os.getenv("MYGEOTAB_USERNAME")
        self.password = password or os.getenv("MYGEOTAB_PASSWORD")

        missing = []
        if not self.user_name:
            missing.append("MYGEOTAB_USERNAME")
        if not self.password:
            missing.append("MYGEOTAB_PASSWORD")
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing_keys=missing,
            )

    def for_database(self, database: str, server: Optional[str] = None) -> "SessionManager":
        """New manager with the same login bound to another database."""
        return SessionManager(
            database=database,
            user_name=self.user_name,
            password=self.password,
            server=server or self.server,
            timeout=self.timeout,
        )

    async def _authenticate(self) -> MyGeotabCredentials:
        body = {
            "method": "Authenticate",
            "params": {
                "database": self.database,
                "userName": self.user_name,
                "password": self.password,
            },
        }
        logger.info(
            f"Authenticating MyGeotab API (user='{self.user_name}', "
            f"database='{self.database}', server='{self.server}')"
        )
        try:
            result = await self._post_authenticate(mygeotab_endpoint(self.server), body)
        except InvalidCredentialsError as e:
            e.details["username"] = self.user_name
            raise

        credentials = result.get("credentials") or {}
        path = result.get("path") or "ThisServer"
        server = self.server if path == "ThisServer" else path

        session = MyGeotabCredentials(
            database=credentials.get("database", self.database),
            user_name=credentials.get("userName", self.user_name),
            session_id=credentials["sessionId"],
            server=server,
        )
        logger.info(f"MyGeotab session established (key={session.session_key}, server='{server}')")
        return session


class AdminSessionManager(_BaseSessionManager):
    """MyAdmin session manager.

    The MyAdmin login falls back to the MyGeotab login when no dedicated
    MyAdmin credentials are configured.
    """

    SERVICE = "MyAdmin"

    def __init__(
        self,
        user_name: Optional[str] = None,
        password: Optional[str] = None,
        url: Optional[str] = None,
        timeout: float = 60.0,
    ):
        super().__init__(timeout=timeout)
        self.url = url or os.getenv("MYADMIN_URL", DEFAULT_MYADMIN_URL)
        self.user_name = user_name or os.getenv("MYADMIN_USERNAME") or os.getenv("MYGEOTAB_USERNAME")
        self.password = password or os.getenv("MYADMIN_PASSWORD") or os.getenv("MYGEOTAB_PASSWORD")

        missing = []
        if not self.user_name:
            missing.append("MYADMIN_USERNAME")
        if not self.password:
            missing.append("MYADMIN_PASSWORD")
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing_keys=missing,
            )

    async def _authenticate(self) -> MyAdminCredentials:
        body = {
            "id": -1,
            "method": "Authenticate",
            "params": {"username": self.user_name, "password": self.password},
        }
        logger.info(f"Authenticating MyAdmin API (user='{self.user_name}')")
        result = await self._post_authenticate(self.url, body)

        session = MyAdminCredentials(
            api_key=str(result["userId"]),
            session_id=str(result["sessionId"]),
            user_name=self.user_name,
        )
        logger.info(f"MyAdmin session established (key={session.session_key})")
        return session
