"""Port interfaces for reconciliation.

Ports define the contracts between the domain/use cases and the infrastructure.
These are abstract base classes that adapters must implement.

Following the Hexagonal Architecture (Ports and Adapters) pattern:
- Ports are interfaces defined in the domain layer
- Adapters implement these ports in the adapters layer
- Use cases depend only on ports, not concrete implementations
"""

from abc import ABC, abstractmethod
from typing import Any

from .entities import (
    DesiredDevice,
    OwnershipRecord,
    TenantDevice,
    TenantProvisionRequest,
)
from .reporter import OutcomeReporter
from .validation import ValidationResult


class ITenantDeviceAPI(ABC):
    """Port for the target tenant's device inventory and mutations.

    Neither mutation is idempotent on the remote side: adding a serial
    that already exists is an error.
    """

    @property
    @abstractmethod
    def tenant_name(self) -> str:
        """Name of the tenant database this port writes to."""
        ...

    @abstractmethod
    async def fetch_all(self) -> list[TenantDevice]:
        """Fetch every device currently in the tenant.

        Raises:
            CollectionError: If the listing fails
        """
        ...

    @abstractmethod
    async def add_device(
        self,
        desired: DesiredDevice,
        groups: list[dict[str, Any]],
    ) -> TenantDevice:
        """Create a device defaulted for its hardware family.

        Args:
            desired: Device to create (name already defaulted)
            groups: Organization groups to place the device in

        Returns:
            The created device as stored by the platform
        """
        ...

    @abstractmethod
    async def update_device(self, device: TenantDevice, desired: DesiredDevice) -> None:
        """Write the desired name and settings onto an existing device."""
        ...


class IOwnershipRegistryAPI(ABC):
    """Port for the cross-tenant device registry."""

    @abstractmethod
    async def fetch_all(self) -> list[OwnershipRecord]:
        """Fetch every (serial, owning tenant) pair for the account.

        Raises:
            CollectionError: If any page fails
        """
        ...


class ISettingsMapper(ABC):
    """Port for writing desired settings onto a device entity.

    Which fields a device accepts depends on its hardware model.
    """

    @abstractmethod
    def apply(self, device: TenantDevice, desired: DesiredDevice) -> dict[str, Any]:
        """Return the entity to send in the update call."""
        ...

    @abstractmethod
    def supported_fields(self, device_type: str) -> frozenset[str]:
        """Names of DeviceSettings fields the device type accepts."""
        ...


class IDeviceListParser(ABC):
    """Port for reading the desired device list."""

    @abstractmethod
    def parse(self, content: bytes, filename: str | None = None) -> list[DesiredDevice]:
        """Parse a CSV or Excel device list.

        Raises:
            ValueError: If the file cannot be read or lacks a serial column
        """
        ...

    @abstractmethod
    def validate(self, devices: list[DesiredDevice]) -> ValidationResult:
        ...


class IReportGenerator(ABC):
    """Port for end-of-run reports."""

    @abstractmethod
    def generate(self, reporter: OutcomeReporter, **context: Any) -> dict[str, Any]:
        """Report as a JSON-serializable dict."""
        ...

    @abstractmethod
    def generate_excel(self, reporter: OutcomeReporter, **context: Any) -> bytes:
        """Report as an Excel workbook."""
        ...


class ITenantProvisioningAPI(ABC):
    """Port for creating a tenant database and its administrator."""

    @abstractmethod
    async def database_exists(self, database_name: str) -> bool:
        ...

    @abstractmethod
    async def get_time_zone_ids(self) -> list[str]:
        ...

    @abstractmethod
    async def create_database(self, request: TenantProvisionRequest) -> str:
        """Create the database.

        Returns:
            ``server/database`` path of the new database
        """
        ...

    @abstractmethod
    async def add_admin_user(
        self,
        server: str,
        database: str,
        request: TenantProvisionRequest,
    ) -> str:
        """Add the customer administrator to the new database; returns the user id."""
        ...
