"""Use cases layer - Business logic orchestration.

Use cases orchestrate domain logic and coordinate between ports.
They depend only on port interfaces, not concrete implementations.
"""

from .load_snapshot import LoadSnapshotUseCase, Snapshot
from .onboard_devices import OnboardDevicesUseCase, OnboardResult
from .provision_tenant import ProvisionResult, ProvisionTenantUseCase
from .reconcile_devices import Action, ReconciliationEngine

__all__ = [
    "Action",
    "LoadSnapshotUseCase",
    "OnboardDevicesUseCase",
    "OnboardResult",
    "ProvisionResult",
    "ProvisionTenantUseCase",
    "ReconciliationEngine",
    "Snapshot",
]
