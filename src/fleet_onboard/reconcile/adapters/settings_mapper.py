"""Settings mapper adapter for writing DeviceSettings onto device entities.

This adapter implements ISettingsMapper. Which alert fields a device
accepts depends on its hardware model; the model is read from the
entity's ``deviceType`` and looked up in a capability table. Adding a
model means adding a table entry.

Capabilities:
    every GO model          common beeping, idle and speeding fields
    GO4v3, GO6..GO9         + driver identification (immobilizer)
                            + RPM, dangerous driving, seatbelt, reverse
    GO5                     + RPM, dangerous driving, seatbelt, reverse
    anything else           name only
"""

import copy
import re
from dataclasses import dataclass
from typing import Any, Callable

from ..domain.entities import DesiredDevice, DeviceSettings, TenantDevice, normalize_serial
from ..domain.ports import ISettingsMapper


@dataclass(frozen=True)
class FieldWriter:
    """Writes one entity field from the desired settings.

    Attributes:
        entity_field: Field name on the platform's device entity
        setting: DeviceSettings field it comes from (None for constants)
        value: Derives the entity value from the settings
    """

    entity_field: str
    setting: str | None
    value: Callable[[DeviceSettings], Any]


def _copy(entity_field: str, setting: str) -> FieldWriter:
    return FieldWriter(entity_field, setting, lambda s: getattr(s, setting))


COMMON_GO_FIELDS = (
    # The platform stores the inverse flag
    FieldWriter("disableBuzzer", "enable_device_beeping", lambda s: not s.enable_device_beeping),
    _copy("enableBeepOnIdle", "enable_beep_on_idle"),
    _copy("idleMinutes", "idle_minutes_beep_value"),
    _copy("isSpeedIndicator", "enable_beep_on_speeding"),
    _copy("speedingOn", "speeding_start_beeping_speed"),
    _copy("speedingOff", "speeding_stop_beeping_speed"),
    _copy("enableSpeedWarning", "enable_beep_briefly_when_approaching_warning_speed"),
)

DRIVER_IDENTIFICATION_FIELDS = (
    _copy("immobilizeUnit", "enable_driver_identification_reminder"),
    _copy("immobilizeArming", "driver_identification_reminder_immobilize_seconds"),
)

ADVANCED_ALERT_FIELDS = (
    _copy("enableBeepOnRpm", "enable_beep_on_engine_rpm"),
    _copy("rpmValue", "engine_rpm_beep_value"),
    _copy("enableBeepOnDangerousDriving", "enable_beep_on_dangerous_driving"),
    _copy("accelerationWarningThreshold", "acceleration_warning_threshold"),
    FieldWriter("accelerometerThresholdWarningFactor", None, lambda s: 0),
    _copy("brakingWarningThreshold", "braking_warning_threshold"),
    _copy("corneringWarningThreshold", "cornering_warning_threshold"),
    _copy("isDriverSeatbeltWarningOn", "enable_beep_when_seatbelt_not_used"),
    _copy("seatbeltWarningSpeed", "seatbelt_not_used_warning_speed"),
    _copy("isPassengerSeatbeltWarningOn", "enable_beep_when_passenger_seatbelt_not_used"),
    _copy("isReverseDetectOn", "beep_when_reversing"),
)

FULL_GO_FIELDS = COMMON_GO_FIELDS + DRIVER_IDENTIFICATION_FIELDS + ADVANCED_ALERT_FIELDS

# Keyed by upper-cased deviceType
DEVICE_CAPABILITIES: dict[str, tuple[FieldWriter, ...]] = {
    "GO4V3": FULL_GO_FIELDS,
    "GO5": COMMON_GO_FIELDS + ADVANCED_ALERT_FIELDS,
    "GO6": FULL_GO_FIELDS,
    "GO7": FULL_GO_FIELDS,
    "GO8": FULL_GO_FIELDS,
    "GO9": FULL_GO_FIELDS,
}

# Other GO models (GO2, GO3, GO4...) and the generic GoDevice type
_GO_FAMILY = re.compile(r"^GO(\d|DEVICE$)")

# Serial number prefix -> deviceType for new devices
SERIAL_PREFIX_DEVICE_TYPES = {
    "G5": "GO5",
    "G6": "GO6",
    "G7": "GO7",
    "G8": "GO8",
    "G9": "GO9",
}

STANDARD_WORK_TIME_ID = "WorkTimeStandardHoursId"


def writers_for(device_type: str | None) -> tuple[FieldWriter, ...]:
    key = (device_type or "").strip().upper()
    if key in DEVICE_CAPABILITIES:
        return DEVICE_CAPABILITIES[key]
    if _GO_FAMILY.match(key):
        return COMMON_GO_FIELDS
    return ()


def device_type_for_serial(serial: str) -> str | None:
    return SERIAL_PREFIX_DEVICE_TYPES.get(normalize_serial(serial)[:2])


class DeviceSettingsMapper(ISettingsMapper):
    """Maps desired devices to MyGeotab device entities and back."""

    def supported_fields(self, device_type: str) -> frozenset[str]:
        return frozenset(w.setting for w in writers_for(device_type) if w.setting)

    def apply(self, device: TenantDevice, desired: DesiredDevice) -> dict[str, Any]:
        """Entity for a Set call: the stored entity with name and settings replaced.

        Fields the device model does not support are left untouched.
        """
        entity = copy.deepcopy(device.raw) if device.raw else {}
        entity["id"] = device.id
        entity.setdefault("serialNumber", device.serial_number)
        entity.setdefault("deviceType", device.device_type)
        entity["name"] = desired.display_name

        for writer in writers_for(device.device_type):
            entity[writer.entity_field] = writer.value(desired.settings)
        return entity

    def new_entity(self, desired: DesiredDevice, groups: list[dict[str, Any]]) -> dict[str, Any]:
        """Entity for an Add call, defaulted for the device's hardware family."""
        serial = desired.normalized_serial
        entity: dict[str, Any] = {
            "serialNumber": serial,
            "name": desired.display_name,
            "groups": list(groups),
            "workTime": {"id": STANDARD_WORK_TIME_ID},
        }
        device_type = device_type_for_serial(serial)
        if device_type:
            entity["deviceType"] = device_type
            for writer in writers_for(device_type):
                entity[writer.entity_field] = writer.value(DeviceSettings())
        return entity

    def to_tenant_device(self, raw: dict[str, Any]) -> TenantDevice:
        """Transform a device entity from the API into a TenantDevice."""
        return TenantDevice(
            serial_number=raw.get("serialNumber") or "",
            id=str(raw.get("id")),
            device_type=raw.get("deviceType") or "",
            name=raw.get("name"),
            groups=list(raw.get("groups") or []),
            raw=raw,
        )
