#!/usr/bin/env python3
"""MyAdmin API client.

MyAdmin is the reseller-facing API. The onboarding engine uses it for one
thing: the global device registry, i.e. which database every device
serial number under a reseller account is currently assigned to.

Example:
    async with MyAdminClient(AdminSessionManager()) as admin:
        records = await admin.collect_current_device_databases("ACME01")
"""
import logging
from typing import Any, Optional

from .auth import AdminSessionManager
from .client import JsonRpcClient
from .pagination import DEVICE_DATABASES_PAGINATION, PagedCollector, PaginationConfig

logger = logging.getLogger(__name__)


class MyAdminClient(JsonRpcClient):
    """Client for the MyAdmin JSON-RPC endpoint.

    Every call except Authenticate carries ``apiKey`` and ``sessionId``
    from the admin session.
    """

    SERVICE = "MyAdmin"

    def __init__(self, session_manager: AdminSessionManager, **kwargs):
        super().__init__(session_manager, **kwargs)

    async def _prepare(self, method, params, credentials):
        body = {
            "id": -1,
            "method": method,
            "params": {**credentials.to_params(), **params},
        }
        return self.session_manager.url, body

    async def invoke(self, method: str, retry: bool = True, **params) -> Any:
        """Invoke any MyAdmin API method with the current session.

        Args:
            method: MyAdmin method name
            retry: Retry rate limit, server and network errors
            **params: Method parameters
        """
        return await self._call_with_retry(method, params, retry=retry)

    async def get_current_device_databases(
        self,
        for_account: str,
        next_id: int = 0,
    ) -> list[dict[str, Any]]:
        """One page of device-to-database assignments for a reseller account.

        Args:
            for_account: Reseller ERP account id
            next_id: Id of the last record of the previous page (0 for the first)

        Returns:
            Up to 1000 records with ``id``, ``serialNumber`` and ``databaseName``
        """
        return await self.invoke(
            "GetCurrentDeviceDatabases",
            forAccount=for_account,
            nextId=next_id,
            retry=False,
        ) or []

    async def collect_current_device_databases(
        self,
        for_account: str,
        config: Optional[PaginationConfig] = None,
    ) -> list[dict[str, Any]]:
        """Every device-to-database assignment for a reseller account.

        Raises:
            CollectionError: If any page fails; no partial list is returned
        """
        collector = PagedCollector(
            lambda cursor: self.get_current_device_databases(for_account, next_id=cursor),
            cursor_of=lambda record: record["id"],
            config=config or DEVICE_DATABASES_PAGINATION,
            source="GetCurrentDeviceDatabases",
        )
        records = await collector.collect()
        logger.info(
            f"Loaded {len(records):,} device database assignments for account "
            f"'{for_account}' in {collector.calls} calls"
        )
        return records
