"""MyGeotab and MyAdmin API modules.

This package provides the JSON-RPC transport used by the onboarding
engine to talk to a tenant database (MyGeotab) and to the reseller-wide
device registry (MyAdmin).

Classes:
    MyGeotabClient: Tenant database client (Get/Add/Set, database provisioning)
    MyAdminClient: Reseller registry client (GetCurrentDeviceDatabases)
    SessionManager: MyGeotab session caching and re-authentication
    AdminSessionManager: MyAdmin session caching and re-authentication
    PagedCollector: Cursor pagination for capped listings

Resilience:
    CircuitBreaker: Prevent cascading failures
    process_concurrent: Bounded concurrent dispatch
"""
from .admin_client import MyAdminClient
from .auth import (
    AdminSessionManager,
    MyAdminCredentials,
    MyGeotabCredentials,
    SessionManager,
)
from .client import JsonRpcClient, MyGeotabClient, raise_for_rpc_error
from .exceptions import (
    APIError,
    AuthenticationError,
    CircuitOpenError,
    CollectionError,
    ConfigurationError,
    ConnectionError,
    DuplicateEntityError,
    FleetOnboardError,
    InvalidCredentialsError,
    NetworkError,
    NotFoundError,
    PartialApplyError,
    RateLimitError,
    RecordMutationError,
    ServerError,
    SessionExpiredError,
    SyncError,
    TimeoutError,
    ValidationError,
)
from .pagination import DEVICE_DATABASES_PAGINATION, PagedCollector, PaginationConfig
from .resilience import CircuitBreaker, CircuitState, process_concurrent

__all__ = [
    # Clients
    "JsonRpcClient",
    "MyGeotabClient",
    "MyAdminClient",
    "raise_for_rpc_error",
    # Sessions
    "SessionManager",
    "AdminSessionManager",
    "MyGeotabCredentials",
    "MyAdminCredentials",
    # Pagination
    "PagedCollector",
    "PaginationConfig",
    "DEVICE_DATABASES_PAGINATION",
    # Resilience
    "CircuitBreaker",
    "CircuitState",
    "process_concurrent",
    # Exceptions
    "FleetOnboardError",
    "ConfigurationError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "SessionExpiredError",
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "DuplicateEntityError",
    "ServerError",
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    "SyncError",
    "CollectionError",
    "RecordMutationError",
    "PartialApplyError",
    "CircuitOpenError",
]
