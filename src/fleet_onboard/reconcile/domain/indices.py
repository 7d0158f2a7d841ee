"""Read-only lookup structures built from the remote snapshots.

Both indices are built once, before any mutation, from complete listings.
They are never updated during a run.
"""

from typing import Iterable, Iterator

from .entities import OwnershipRecord, TenantDevice, normalize_serial


class TenantInventoryIndex:
    """Devices already in the target tenant, keyed by normalized serial."""

    def __init__(self, devices: dict[str, TenantDevice] | None = None):
        self._devices: dict[str, TenantDevice] = dict(devices or {})

    @classmethod
    def build(cls, devices: Iterable[TenantDevice]) -> "TenantInventoryIndex":
        index: dict[str, TenantDevice] = {}
        for device in devices:
            key = normalize_serial(device.serial_number)
            if key:
                # First occurrence wins; a tenant should never hold a serial twice
                index.setdefault(key, device)
        return cls(index)

    def __contains__(self, serial: str) -> bool:
        return normalize_serial(serial) in self._devices

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[str]:
        return iter(self._devices)

    def get(self, serial: str) -> TenantDevice | None:
        return self._devices.get(normalize_serial(serial))


class GlobalOwnershipIndex:
    """Every tenant that owns each serial, in first-observed order.

    More than one owner for a serial is a registry inconsistency. All
    owners are kept so the conflict can be reported in full.
    """

    def __init__(self, owners: dict[str, tuple[str, ...]] | None = None):
        self._owners: dict[str, tuple[str, ...]] = dict(owners or {})

    @classmethod
    def build(cls, records: Iterable[OwnershipRecord]) -> "GlobalOwnershipIndex":
        owners: dict[str, list[str]] = {}
        for record in records:
            key = record.normalized_serial
            name = (record.database_name or "").strip()
            if not key or not name:
                continue
            names = owners.setdefault(key, [])
            if name not in names:
                names.append(name)
        return cls({key: tuple(names) for key, names in owners.items()})

    def __contains__(self, serial: str) -> bool:
        return normalize_serial(serial) in self._owners

    def __len__(self) -> int:
        return len(self._owners)

    def owners(self, serial: str) -> tuple[str, ...]:
        return self._owners.get(normalize_serial(serial), ())

    def conflicting_owners(self, serial: str, tenant_name: str) -> tuple[str, ...]:
        """Owners other than ``tenant_name`` (compared case-insensitively)."""
        tenant = (tenant_name or "").strip().lower()
        return tuple(
            owner for owner in self.owners(serial)
            if owner.lower() != tenant
        )

    def inconsistent_serials(self) -> dict[str, tuple[str, ...]]:
        return {
            serial: names
            for serial, names in self._owners.items()
            if len(names) > 1
        }
