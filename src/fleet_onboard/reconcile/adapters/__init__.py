"""Adapters layer - Infrastructure implementations.

This layer contains concrete implementations of the port interfaces:
- MyGeotab/MyAdmin API adapters (tenant inventory, registry, provisioning)
- Settings mapper (device-type capability table)
- Device list parser (CSV and Excel)
- Report generator (JSON and Excel)
"""

from .device_list_parser import DeviceListParser
from .geotab_api_adapter import MyAdminRegistryAPI, MyGeotabDeviceAPI, MyGeotabProvisioningAPI
from .report_generator import OutcomeReportGenerator
from .settings_mapper import DEVICE_CAPABILITIES, DeviceSettingsMapper

__all__ = [
    "DEVICE_CAPABILITIES",
    "DeviceListParser",
    "DeviceSettingsMapper",
    "MyAdminRegistryAPI",
    "MyGeotabDeviceAPI",
    "MyGeotabProvisioningAPI",
    "OutcomeReportGenerator",
]
