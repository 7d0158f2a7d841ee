"""Reconcile Devices use case.

Given the desired device list and two snapshots taken before any mutation
(the target tenant's inventory and the cross-tenant ownership registry),
decide per record whether to update, create or skip, perform the remote
call, and record exactly one outcome.

Classification:
    in tenant                          -> UPDATE  -> UPDATED | FAILED
    not in tenant, owned elsewhere     -> SKIP    -> SKIPPED_CONFLICT
    not in tenant, not owned           -> CREATE  -> ADDED_THEN_UPDATED | FAILED

Key Design Decisions:
- Snapshots are read-only for the whole run. A device created by another
  process mid-run is not seen; there is no pre-create re-check.
- One record's failure never reaches another record and never aborts the
  run. Nothing is retried here, and the transport sends every mutation once.
- Sequential by default. With max_concurrent > 1, mutations for different
  records run in a bounded pool; outcomes still come back in input order.
"""

import logging
from enum import Enum
from typing import Optional

from ...api.exceptions import PartialApplyError, RecordMutationError
from ...api.resilience import process_concurrent
from ..domain.entities import (
    ROOT_GROUP_ID,
    DesiredDevice,
    ReconciliationOutcome,
    Verdict,
)
from ..domain.indices import GlobalOwnershipIndex, TenantInventoryIndex
from ..domain.ports import ITenantDeviceAPI
from ..domain.reporter import OutcomeReporter

logger = logging.getLogger(__name__)

CANCELLED_REASON = "Run cancelled before processing"


class Action(str, Enum):
    """What the engine will do with a record."""

    UPDATE = "update"
    CREATE = "create"
    SKIP_CONFLICT = "skip_conflict"
    INVALID = "invalid"


def format_conflict_reason(
    tenant_name: str,
    conflicting: tuple[str, ...],
    all_owners: tuple[str, ...],
) -> str:
    """Reason text for a device owned by other tenants.

    Lists every conflicting tenant, quoted, in first-observed order. When
    the registry holds more than one owner the text says so.
    """
    quoted = ", ".join(f"'{name}'" for name in conflicting)
    reason = (
        f"Device does not exist in '{tenant_name}' database, "
        f"but already exists in database(s) {quoted}."
    )
    if len(all_owners) > 1:
        reason += (
            f" Registry inconsistency: serial is assigned to "
            f"{len(all_owners)} databases."
        )
    return reason


class ReconciliationEngine:
    """Classify and apply one desired device list against a tenant.

    Attributes:
        device_api: Tenant inventory port used for add/update calls
        tenant_name: Target tenant; registry entries naming it are not conflicts
        max_concurrent: 1 = sequential; higher values enable a bounded pool
        configure_new_devices: Apply settings right after creating a device
    """

    def __init__(
        self,
        device_api: ITenantDeviceAPI,
        tenant_name: Optional[str] = None,
        max_concurrent: int = 1,
        configure_new_devices: bool = True,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.device_api = device_api
        self.tenant_name = tenant_name if tenant_name is not None else device_api.tenant_name
        self.max_concurrent = max_concurrent
        self.configure_new_devices = configure_new_devices
        self._cancelled = False

    # ----------------------------------------
    # Cancellation
    # ----------------------------------------

    def cancel(self) -> None:
        """Stop dispatching new records. In-flight calls finish on their own."""
        if not self._cancelled:
            logger.warning("Reconciliation cancelled; no further records will be dispatched")
        self._cancelled = True

    def reset(self) -> None:
        """Clear a previous cancel so the engine can run again."""
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    # ----------------------------------------
    # Classification
    # ----------------------------------------

    def classify(
        self,
        record: DesiredDevice,
        tenant_index: TenantInventoryIndex,
        global_index: GlobalOwnershipIndex,
    ) -> Action:
        """Decide what to do with a record, without any remote call."""
        serial = record.normalized_serial
        if not serial:
            return Action.INVALID
        if serial in tenant_index:
            return Action.UPDATE
        if global_index.conflicting_owners(serial, self.tenant_name):
            return Action.SKIP_CONFLICT
        return Action.CREATE

    def plan(
        self,
        desired: list[DesiredDevice],
        tenant_index: TenantInventoryIndex,
        global_index: GlobalOwnershipIndex,
    ) -> list[tuple[DesiredDevice, Action]]:
        """Classification of every record, in input order (dry run)."""
        return [
            (record.with_default_name(), self.classify(record, tenant_index, global_index))
            for record in desired
        ]

    # ----------------------------------------
    # Execution
    # ----------------------------------------

    async def reconcile(
        self,
        desired: list[DesiredDevice],
        tenant_index: TenantInventoryIndex,
        global_index: GlobalOwnershipIndex,
        reporter: Optional[OutcomeReporter] = None,
    ) -> list[ReconciliationOutcome]:
        """Reconcile every record and return one outcome per record, in input order.

        Args:
            desired: Desired device list
            tenant_index: Target tenant snapshot
            global_index: Ownership registry snapshot
            reporter: Sink that receives each outcome as it is produced

        Returns:
            Outcomes, ``len(outcomes) == len(desired)``
        """
        reporter = reporter if reporter is not None else OutcomeReporter()

        logger.info(
            f"Processing {len(desired)} device(s) against '{self.tenant_name}' "
            f"(tenant: {len(tenant_index)} devices, registry: {len(global_index)} serials, "
            f"max_concurrent={self.max_concurrent})"
        )

        if self.max_concurrent == 1:
            outcomes = []
            for position, record in enumerate(desired):
                outcome = await self._dispatch(position, record, tenant_index, global_index)
                reporter.record(outcome)
                outcomes.append(outcome)
        else:
            async def worker(item: tuple[int, DesiredDevice]) -> ReconciliationOutcome:
                position, record = item
                outcome = await self._dispatch(position, record, tenant_index, global_index)
                await reporter.record_async(outcome)
                return outcome

            outcomes = await process_concurrent(
                list(enumerate(desired)),
                worker,
                max_concurrent=self.max_concurrent,
            )

        counts = {}
        for outcome in outcomes:
            counts[outcome.verdict.value] = counts.get(outcome.verdict.value, 0) + 1
        logger.info(f"Reconciliation complete for '{self.tenant_name}': {counts}")
        return outcomes

    async def _dispatch(
        self,
        position: int,
        record: DesiredDevice,
        tenant_index: TenantInventoryIndex,
        global_index: GlobalOwnershipIndex,
    ) -> ReconciliationOutcome:
        if self._cancelled:
            return self._outcome(position, record, Verdict.FAILED, CANCELLED_REASON)
        return await self._reconcile_one(position, record, tenant_index, global_index)

    async def _reconcile_one(
        self,
        position: int,
        record: DesiredDevice,
        tenant_index: TenantInventoryIndex,
        global_index: GlobalOwnershipIndex,
    ) -> ReconciliationOutcome:
        record = record.with_default_name()
        action = self.classify(record, tenant_index, global_index)
        serial = record.normalized_serial

        if action == Action.INVALID:
            return self._outcome(position, record, Verdict.FAILED, "Serial number is required")

        if action == Action.UPDATE:
            existing = tenant_index.get(serial)
            try:
                await self.device_api.update_device(existing, record)
            except Exception as e:
                error = RecordMutationError(
                    f"Error updating device: {e}",
                    serial_number=record.serial_number,
                    operation="update",
                    cause=e,
                )
                logger.warning(f"{record.serial_number}: NOT UPDATED: {error}")
                return self._failed(position, record, error)
            logger.info(f"{record.serial_number} ({record.name}): UPDATED")
            return self._outcome(position, record, Verdict.UPDATED)

        if action == Action.SKIP_CONFLICT:
            reason = format_conflict_reason(
                self.tenant_name,
                global_index.conflicting_owners(serial, self.tenant_name),
                global_index.owners(serial),
            )
            logger.warning(f"{record.serial_number}: NOT ADDED: {reason}")
            return self._outcome(position, record, Verdict.SKIPPED_CONFLICT, reason)

        try:
            created = await self.device_api.add_device(record, [{"id": ROOT_GROUP_ID}])
        except Exception as e:
            error = RecordMutationError(
                f"Device did not previously exist in '{self.tenant_name}' database, "
                f"but an error was encountered while adding it: {e}",
                serial_number=record.serial_number,
                operation="create",
                cause=e,
            )
            logger.warning(f"{record.serial_number}: NOT ADDED: {error}")
            return self._failed(position, record, error)
        logger.info(f"{record.serial_number}: ADDED (id {created.id})")

        if not self.configure_new_devices:
            return self._outcome(
                position, record, Verdict.ADDED,
                f"Device did not previously exist in '{self.tenant_name}' database",
            )

        try:
            await self.device_api.update_device(created, record)
        except Exception as e:
            error = PartialApplyError(
                f"Device was created (id {created.id}) but not configured: {e}",
                serial_number=record.serial_number,
                device_id=created.id,
                cause=e,
            )
            logger.error(f"{record.serial_number}: {error}")
            return self._failed(position, record, error, operation="configure")
        logger.info(f"{record.serial_number} ({record.name}): UPDATED")
        return self._outcome(
            position, record, Verdict.ADDED_THEN_UPDATED,
            f"Device did not previously exist in '{self.tenant_name}' database",
        )

    @classmethod
    def _failed(
        cls,
        position: int,
        record: DesiredDevice,
        error: RecordMutationError,
        operation: Optional[str] = None,
    ) -> ReconciliationOutcome:
        return cls._outcome(
            position, record, Verdict.FAILED, error.message,
            operation=operation or error.operation,
        )

    @staticmethod
    def _outcome(
        position: int,
        record: DesiredDevice,
        verdict: Verdict,
        reason: str = "",
        operation: Optional[str] = None,
    ) -> ReconciliationOutcome:
        name = record.display_name
        return ReconciliationOutcome(
            record_id=f"{record.serial_number} ({name})" if name else record.serial_number,
            serial_number=record.serial_number,
            verdict=verdict,
            reason=reason,
            row_number=record.row_number,
            operation=operation,
            position=position,
        )
