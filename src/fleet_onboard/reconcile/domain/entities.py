"""Domain entities for device reconciliation.

These are pure data structures with no infrastructure dependencies.
They represent the desired device list, the two remote snapshots the
engine classifies against, and the per-record outcome.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


def normalize_serial(raw: str | None) -> str:
    """Canonical join key for a serial number.

    Separators are dropped and letters upper-cased, so "g9ab-0001" and
    "G9AB0001" compare equal.
    """
    if raw is None:
        return ""
    return raw.strip().upper().replace("-", "").replace(" ", "")


# ============================================
# Desired State
# ============================================


@dataclass(frozen=True)
class DeviceSettings:
    """Alert and behavior settings for one device.

    Defaults match what a freshly added device would carry: every
    in-vehicle beep is off and thresholds sit at the factory values.
    Speeds are km/h, accelerometer thresholds are milli-g.
    """

    enable_device_beeping: bool = False
    enable_driver_identification_reminder: bool = False
    driver_identification_reminder_immobilize_seconds: int = 30
    enable_beep_on_engine_rpm: bool = False
    engine_rpm_beep_value: int = 3500
    enable_beep_on_idle: bool = False
    idle_minutes_beep_value: int = 3
    enable_beep_on_speeding: bool = False
    speeding_start_beeping_speed: int = 100
    speeding_stop_beeping_speed: int = 90
    enable_beep_briefly_when_approaching_warning_speed: bool = False
    enable_beep_on_dangerous_driving: bool = False
    acceleration_warning_threshold: int = 22
    braking_warning_threshold: int = -34
    cornering_warning_threshold: int = 26
    enable_beep_when_seatbelt_not_used: bool = False
    seatbelt_not_used_warning_speed: int = 10
    enable_beep_when_passenger_seatbelt_not_used: bool = False
    beep_when_reversing: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass(frozen=True)
class DesiredDevice:
    """One row of the desired device list.

    The raw serial is kept for display; matching always goes through
    ``normalized_serial``.
    """

    serial_number: str
    name: str = ""
    settings: DeviceSettings = field(default_factory=DeviceSettings)
    row_number: int | None = None

    @property
    def normalized_serial(self) -> str:
        return normalize_serial(self.serial_number)

    @property
    def display_name(self) -> str:
        """Name to write: the given name, or the raw serial when blank."""
        name = (self.name or "").strip()
        return name or self.serial_number.strip()

    def with_default_name(self) -> "DesiredDevice":
        """Copy whose name is filled in from the serial when blank."""
        if (self.name or "").strip():
            return self
        return replace(self, name=self.serial_number.strip())


# ============================================
# Remote Snapshots
# ============================================


@dataclass
class TenantDevice:
    """A device as it exists in the target tenant.

    ``raw`` is the full entity returned by the platform; updates are
    written back on a copy of it, so unknown fields survive the round trip.
    """

    serial_number: str
    id: str
    device_type: str = "GoDevice"
    name: str | None = None
    groups: list[dict[str, Any]] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.serial_number = normalize_serial(self.serial_number)


@dataclass(frozen=True)
class OwnershipRecord:
    """One (serial number, owning tenant) pair from the global registry."""

    serial_number: str
    database_name: str
    record_id: int | None = None

    @property
    def normalized_serial(self) -> str:
        return normalize_serial(self.serial_number)


# ============================================
# Outcomes
# ============================================


class Verdict(str, Enum):
    """Classification of one reconciled record."""

    ADDED = "ADDED"
    UPDATED = "UPDATED"
    ADDED_THEN_UPDATED = "ADDED_THEN_UPDATED"
    SKIPPED_CONFLICT = "SKIPPED_CONFLICT"
    FAILED = "FAILED"

    @property
    def label(self) -> str:
        """Operator-facing label used in reports."""
        return _VERDICT_LABELS[self]

    @property
    def is_success(self) -> bool:
        return self in (Verdict.ADDED, Verdict.UPDATED, Verdict.ADDED_THEN_UPDATED)


_VERDICT_LABELS = {
    Verdict.ADDED: "ADDED",
    Verdict.UPDATED: "UPDATED",
    Verdict.ADDED_THEN_UPDATED: "ADDED",
    Verdict.SKIPPED_CONFLICT: "NOT ADDED",
    Verdict.FAILED: "NOT UPDATED",
}


@dataclass(frozen=True)
class ReconciliationOutcome:
    """The verdict for one input record. Never mutated after creation."""

    record_id: str
    serial_number: str
    verdict: Verdict
    reason: str = ""
    row_number: int | None = None
    operation: str | None = None  # failed step: "create", "update" or "configure"
    position: int = 0  # index in the input list

    @property
    def label(self) -> str:
        if self.verdict == Verdict.FAILED and self.operation == "create":
            return "NOT ADDED"
        return self.verdict.label

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "serial_number": self.serial_number,
            "verdict": self.verdict.value,
            "label": self.label,
            "reason": self.reason,
            "row_number": self.row_number,
            "operation": self.operation,
        }


# ============================================
# Tenant Provisioning
# ============================================

# Every tenant database has this root organization group
ROOT_GROUP_ID = "GroupCompanyId"
ADMIN_SECURITY_GROUP_ID = "GroupEverythingSecurityId"


@dataclass
class TenantProvisionRequest:
    """Everything needed to create a tenant database and its administrator."""

    database_name: str
    company_name: str
    admin_email: str
    admin_first_name: str
    admin_last_name: str
    admin_password: str
    phone_number: str
    reseller_name: str
    reseller_erp_account_id: str
    time_zone_id: str
    fleet_size: int = 1
    sign_up_for_news: bool = False
    comments: str = ""

    def company_details(self) -> dict[str, Any]:
        """``companyDetails`` object for CreateDatabase."""
        return {
            "companyName": self.company_name,
            "firstName": self.admin_first_name,
            "lastName": self.admin_last_name,
            "phoneNumber": self.phone_number,
            "resellerName": self.reseller_name,
            "fleetSize": self.fleet_size,
            "comments": self.comments,
            "signUpForNews": self.sign_up_for_news,
            "timeZoneId": self.time_zone_id,
        }
