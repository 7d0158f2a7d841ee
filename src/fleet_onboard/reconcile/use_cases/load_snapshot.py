"""Load Snapshot use case.

Builds both indices from complete listings before reconciliation starts.
A failed listing is fatal: a partial index could make the engine create a
device that already exists, or miss a conflict.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..domain.indices import GlobalOwnershipIndex, TenantInventoryIndex
from ..domain.ports import IOwnershipRegistryAPI, ITenantDeviceAPI

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """Both indices, taken once per run."""

    tenant_index: TenantInventoryIndex
    global_index: GlobalOwnershipIndex
    taken_at: datetime = field(default_factory=datetime.now)

    @property
    def inconsistent_serials(self) -> dict[str, tuple[str, ...]]:
        return self.global_index.inconsistent_serials()


class LoadSnapshotUseCase:
    """Fetch the tenant inventory and the ownership registry."""

    def __init__(
        self,
        device_api: ITenantDeviceAPI,
        registry_api: IOwnershipRegistryAPI,
    ):
        self.device_api = device_api
        self.registry_api = registry_api

    async def execute(self) -> Snapshot:
        """Build the snapshot.

        Raises:
            CollectionError: If either listing fails
        """
        logger.info("Retrieving device and device database lists...")

        devices = await self.device_api.fetch_all()
        tenant_index = TenantInventoryIndex.build(devices)
        logger.info(f"Tenant inventory: {len(tenant_index)} devices")

        records = await self.registry_api.fetch_all()
        global_index = GlobalOwnershipIndex.build(records)
        logger.info(
            f"Ownership registry: {len(records):,} records, "
            f"{len(global_index):,} distinct serials"
        )

        inconsistent = global_index.inconsistent_serials()
        if inconsistent:
            logger.warning(
                f"{len(inconsistent)} serial(s) are assigned to more than one database "
                f"in the registry. Sample: {list(inconsistent)[:5]}"
            )

        return Snapshot(tenant_index=tenant_index, global_index=global_index)
