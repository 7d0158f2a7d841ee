"""MyGeotab and MyAdmin API adapters.

These adapters implement the reconciliation ports on top of the JSON-RPC
clients:

    MyGeotabDeviceAPI       ITenantDeviceAPI over MyGeotabClient
    MyAdminRegistryAPI      IOwnershipRegistryAPI over MyAdminClient
    MyGeotabProvisioningAPI ITenantProvisioningAPI over MyGeotabClient
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from ...api.exceptions import CollectionError
from ..domain.entities import (
    ADMIN_SECURITY_GROUP_ID,
    ROOT_GROUP_ID,
    DesiredDevice,
    OwnershipRecord,
    TenantDevice,
    TenantProvisionRequest,
)
from ..domain.ports import IOwnershipRegistryAPI, ITenantDeviceAPI, ITenantProvisioningAPI
from .settings_mapper import DeviceSettingsMapper

if TYPE_CHECKING:
    from ...api.admin_client import MyAdminClient
    from ...api.client import MyGeotabClient
    from ...api.pagination import PaginationConfig

logger = logging.getLogger(__name__)

# Administrator accounts never expire on their own
USER_ACTIVE_FROM = "1986-01-01T00:00:00.000Z"
USER_ACTIVE_TO = "2050-01-01T00:00:00.000Z"


class MyGeotabDeviceAPI(ITenantDeviceAPI):
    """Tenant device inventory and mutations for one MyGeotab database."""

    TYPE_NAME = "Device"

    def __init__(
        self,
        client: "MyGeotabClient",
        mapper: Optional[DeviceSettingsMapper] = None,
    ):
        """Initialize the API adapter.

        Args:
            client: MyGeotabClient bound to the target database
            mapper: Settings mapper (defaults to DeviceSettingsMapper)
        """
        self.client = client
        self.mapper = mapper or DeviceSettingsMapper()

    @property
    def tenant_name(self) -> str:
        return self.client.database

    async def fetch_all(self) -> list[TenantDevice]:
        try:
            raw_devices = await self.client.get(self.TYPE_NAME, retry=False)
        except Exception as e:
            raise CollectionError(
                f"Failed to list devices in '{self.tenant_name}': {e}",
                source="Get Device",
                cause=e,
            )
        return [self.mapper.to_tenant_device(raw) for raw in raw_devices]

    async def add_device(
        self,
        desired: DesiredDevice,
        groups: list[dict[str, Any]],
    ) -> TenantDevice:
        """Add the device, then read it back so the update has the stored entity."""
        entity = self.mapper.new_entity(desired, groups)
        device_id = await self.client.add(self.TYPE_NAME, entity)

        stored = await self.client.get(self.TYPE_NAME, search={"id": device_id})
        if stored:
            return self.mapper.to_tenant_device(stored[0])

        logger.warning(f"Device {device_id} was added but could not be read back")
        return self.mapper.to_tenant_device({**entity, "id": device_id})

    async def update_device(self, device: TenantDevice, desired: DesiredDevice) -> None:
        entity = self.mapper.apply(device, desired)
        await self.client.set(self.TYPE_NAME, entity)


class MyAdminRegistryAPI(IOwnershipRegistryAPI):
    """Device-to-database registry for one reseller account."""

    def __init__(
        self,
        client: "MyAdminClient",
        account_id: str,
        pagination_config: "PaginationConfig | None" = None,
    ):
        self.client = client
        self.account_id = account_id
        self.pagination_config = pagination_config

    async def fetch_all(self) -> list[OwnershipRecord]:
        records = await self.client.collect_current_device_databases(
            self.account_id,
            config=self.pagination_config,
        )
        return [
            OwnershipRecord(
                serial_number=record.get("serialNumber") or "",
                database_name=record.get("databaseName") or "",
                record_id=record.get("id"),
            )
            for record in records
        ]


class MyGeotabProvisioningAPI(ITenantProvisioningAPI):
    """Database creation and administrator setup.

    The client must be authenticated without a database; the new
    database's administrator is added through a second client bound to
    the new database with the same login.
    """

    def __init__(self, client: "MyGeotabClient"):
        self.client = client

    async def database_exists(self, database_name: str) -> bool:
        return await self.client.database_exists(database_name)

    async def get_time_zone_ids(self) -> list[str]:
        time_zones = await self.client.get_time_zones()
        return [tz["id"] for tz in time_zones if tz.get("id")]

    async def create_database(self, request: TenantProvisionRequest) -> str:
        session = self.client.session_manager
        return await self.client.create_database(
            request.database_name,
            user_name=session.user_name,
            password=session.password,
            company_details=request.company_details(),
        )

    async def add_admin_user(
        self,
        server: str,
        database: str,
        request: TenantProvisionRequest,
    ) -> str:
        from ...api.client import MyGeotabClient

        session = self.client.session_manager.for_database(database, server=server)
        user = {
            "name": request.admin_email,
            "firstName": request.admin_first_name,
            "lastName": request.admin_last_name,
            "password": request.admin_password,
            "changePassword": True,
            "userAuthenticationType": "BasicAuthentication",
            "activeFrom": USER_ACTIVE_FROM,
            "activeTo": USER_ACTIVE_TO,
            "companyGroups": [{"id": ROOT_GROUP_ID}],
            "securityGroups": [{"id": ADMIN_SECURITY_GROUP_ID}],
        }
        async with MyGeotabClient(session) as client:
            logger.info(f"Adding user '{request.admin_email}' to database '{database}'...")
            return await client.add("User", user)
