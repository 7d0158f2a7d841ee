"""Onboard Devices use case.

End-to-end run for one tenant:

STEP 1: Parse the desired device list (CSV or Excel)
STEP 2: Validate it; any error stops the run before anything is fetched
STEP 3: Load the snapshot (tenant inventory + ownership registry)
STEP 4: Reconcile every record, or only classify it on a dry run

A CollectionError in step 3 is fatal and reported on the result; no
mutation has happened at that point.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ...api.exceptions import CollectionError
from ..domain.entities import DesiredDevice, ReconciliationOutcome, Verdict
from ..domain.ports import IDeviceListParser, IOwnershipRegistryAPI, ITenantDeviceAPI
from ..domain.reporter import OutcomeReporter
from ..domain.validation import ValidationResult
from .load_snapshot import LoadSnapshotUseCase
from .reconcile_devices import Action, ReconciliationEngine

logger = logging.getLogger(__name__)


@dataclass
class OnboardResult:
    """Result of an onboarding run."""

    success: bool
    tenant_name: str
    outcomes: list[ReconciliationOutcome] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    plan: list[tuple[DesiredDevice, Action]] = field(default_factory=list)
    dry_run: bool = False
    error: Optional[str] = None

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def counts(self) -> dict[str, int]:
        counts = {verdict.value: 0 for verdict in Verdict}
        for outcome in self.outcomes:
            counts[outcome.verdict.value] += 1
        return counts

    @property
    def failed(self) -> int:
        return self.counts[Verdict.FAILED.value]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "tenant_name": self.tenant_name,
            "dry_run": self.dry_run,
            "error": self.error,
            "counts": self.counts,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "plan": [
                {"serial_number": d.serial_number, "name": d.name, "action": a.value}
                for d, a in self.plan
            ],
            "validation_errors": (
                [str(e) for e in self.validation.errors] if self.validation else []
            ),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


class OnboardDevicesUseCase:
    """Parse, validate, snapshot and reconcile a desired device list."""

    def __init__(
        self,
        parser: IDeviceListParser,
        device_api: ITenantDeviceAPI,
        registry_api: IOwnershipRegistryAPI,
        max_concurrent: int = 1,
        reporter: Optional[OutcomeReporter] = None,
    ):
        self.parser = parser
        self.device_api = device_api
        self.snapshot_loader = LoadSnapshotUseCase(device_api, registry_api)
        self.engine = ReconciliationEngine(device_api, max_concurrent=max_concurrent)
        self.reporter = reporter if reporter is not None else OutcomeReporter()

    def cancel(self) -> None:
        self.engine.cancel()

    async def execute(
        self,
        content: bytes,
        filename: Optional[str] = None,
        dry_run: bool = False,
    ) -> OnboardResult:
        """Parse a device list file and onboard it.

        Raises:
            ValueError: If the file cannot be parsed
        """
        devices = self.parser.parse(content, filename)
        logger.info(f"Loaded {len(devices)} device(s) from '{filename or 'input'}'")
        return await self.run(devices, dry_run=dry_run)

    async def run(self, devices: list[DesiredDevice], dry_run: bool = False) -> OnboardResult:
        """Onboard an already parsed device list."""
        result = OnboardResult(
            success=False,
            tenant_name=self.engine.tenant_name,
            dry_run=dry_run,
            started_at=datetime.now(),
        )

        result.validation = self.parser.validate(devices)
        for warning in result.validation.warnings:
            logger.warning(warning)
        if not result.validation.is_valid:
            logger.error(
                f"Device list has {len(result.validation.errors)} validation error(s); "
                f"nothing was changed"
            )
            result.error = "Device list failed validation"
            result.completed_at = datetime.now()
            return result

        try:
            snapshot = await self.snapshot_loader.execute()
        except CollectionError as e:
            logger.error(f"Snapshot failed, aborting run: {e}")
            result.error = str(e)
            result.completed_at = datetime.now()
            return result

        if self.engine.cancelled:
            logger.warning("Run cancelled while loading the snapshot; no device was changed")
            result.error = "Run cancelled before any device was processed"
            result.completed_at = datetime.now()
            return result

        if dry_run:
            result.plan = self.engine.plan(devices, snapshot.tenant_index, snapshot.global_index)
            result.success = True
        else:
            result.outcomes = await self.engine.reconcile(
                devices,
                snapshot.tenant_index,
                snapshot.global_index,
                reporter=self.reporter,
            )
            result.success = result.failed == 0

        result.completed_at = datetime.now()
        logger.info(
            f"Onboarding {'plan' if dry_run else 'run'} for '{result.tenant_name}' finished "
            f"in {result.duration_seconds:.1f}s: {result.counts}"
        )
        return result
