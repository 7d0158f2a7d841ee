"""Reconcile module - Clean Architecture implementation of device onboarding.

Reconciles a desired device list against a tenant's inventory and the
cross-tenant ownership registry, creating, updating or skipping each
device and reporting one outcome per record.

Architecture:
    domain/     - Pure domain entities, indices, validation and port interfaces
    use_cases/  - Business logic orchestration (engine, snapshot, onboarding, provisioning)
    adapters/   - Infrastructure implementations (MyGeotab/MyAdmin, CSV/Excel, reports)
"""

from .domain.entities import (
    DesiredDevice,
    DeviceSettings,
    OwnershipRecord,
    ReconciliationOutcome,
    TenantDevice,
    Verdict,
    normalize_serial,
)
from .domain.indices import GlobalOwnershipIndex, TenantInventoryIndex
from .domain.reporter import OutcomeReporter
from .use_cases.reconcile_devices import ReconciliationEngine

__all__ = [
    "DesiredDevice",
    "DeviceSettings",
    "GlobalOwnershipIndex",
    "OutcomeReporter",
    "OwnershipRecord",
    "ReconciliationEngine",
    "ReconciliationOutcome",
    "TenantDevice",
    "TenantInventoryIndex",
    "Verdict",
    "normalize_serial",
]
