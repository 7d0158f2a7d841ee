"""Domain layer - Pure domain entities and port interfaces.

This layer contains:
- Entities: Desired devices, remote snapshots, outcomes
- Indices: Read-only lookups built from the snapshots
- Reporter: Append-only outcome sink
- Validation: Rules returning result types
- Ports: Abstract interfaces defining contracts for adapters

No infrastructure dependencies allowed in this layer.
"""

from .entities import (
    ADMIN_SECURITY_GROUP_ID,
    ROOT_GROUP_ID,
    DesiredDevice,
    DeviceSettings,
    OwnershipRecord,
    ReconciliationOutcome,
    TenantDevice,
    TenantProvisionRequest,
    Verdict,
    normalize_serial,
)
from .indices import GlobalOwnershipIndex, TenantInventoryIndex
from .ports import (
    IDeviceListParser,
    IOwnershipRegistryAPI,
    IReportGenerator,
    ISettingsMapper,
    ITenantDeviceAPI,
    ITenantProvisioningAPI,
)
from .reporter import OutcomeReporter
from .validation import (
    ValidationIssue,
    ValidationResult,
    validate_desired_devices,
    validate_provision_request,
)

__all__ = [
    # Entities
    "DesiredDevice",
    "DeviceSettings",
    "OwnershipRecord",
    "ReconciliationOutcome",
    "TenantDevice",
    "TenantProvisionRequest",
    "Verdict",
    "normalize_serial",
    "ROOT_GROUP_ID",
    "ADMIN_SECURITY_GROUP_ID",
    # Indices
    "GlobalOwnershipIndex",
    "TenantInventoryIndex",
    # Reporting
    "OutcomeReporter",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    "validate_desired_devices",
    "validate_provision_request",
    # Ports
    "IDeviceListParser",
    "IOwnershipRegistryAPI",
    "IReportGenerator",
    "ISettingsMapper",
    "ITenantDeviceAPI",
    "ITenantProvisioningAPI",
]
