"""Tests for validation rules."""

import pytest

from src.fleet_onboard.reconcile.domain.entities import (
    DesiredDevice,
    DeviceSettings,
    TenantProvisionRequest,
)
from src.fleet_onboard.reconcile.domain.validation import (
    ValidationIssue,
    ValidationResult,
    check_bool,
    check_email,
    check_int,
    check_min_length,
    check_password,
    parse_bool,
    validate_desired_devices,
    validate_provision_request,
)


def make_request(**overrides) -> TenantProvisionRequest:
    values = dict(
        database_name="acme_fleet",
        company_name="Acme",
        admin_email="admin@acme.com",
        admin_first_name="Ada",
        admin_last_name="Lovelace",
        admin_password="Secret#123",
        phone_number="5551234567",
        reseller_name="Reseller",
        reseller_erp_account_id="RES001",
        time_zone_id="America/Toronto",
    )
    values.update(overrides)
    return TenantProvisionRequest(**values)


class TestValidateDesiredDevices:
    """Tests for validate_desired_devices."""

    def test_valid_list(self):
        result = validate_desired_devices(
            [DesiredDevice("G9AB-0001", row_number=2), DesiredDevice("G9AB-0002", row_number=3)]
        )
        assert result.is_valid
        assert result.errors == []

    def test_missing_serial(self):
        result = validate_desired_devices([DesiredDevice("", row_number=2)])
        assert not result.is_valid
        assert str(result.errors[0]) == "Row 2: serial_number: Serial number is required"

    def test_duplicate_after_normalization(self):
        result = validate_desired_devices(
            [DesiredDevice("G9AB-0001", row_number=2), DesiredDevice("g9ab0001", row_number=5)]
        )
        assert not result.is_valid
        assert result.errors[0].row_number == 5
        assert "first seen on row 2" in result.errors[0].message

    def test_settings_ranges(self):
        settings = DeviceSettings(
            driver_identification_reminder_immobilize_seconds=300,
            speeding_start_beeping_speed=80,
            speeding_stop_beeping_speed=90,
            braking_warning_threshold=5,
            idle_minutes_beep_value=-1,
        )
        result = validate_desired_devices([DesiredDevice("G9AB-0001", settings=settings)])
        fields = {e.field for e in result.errors}
        assert fields == {
            "driver_identification_reminder_immobilize_seconds",
            "speeding_stop_beeping_speed",
            "braking_warning_threshold",
            "idle_minutes_beep_value",
        }

    def test_empty_list_warns(self):
        result = validate_desired_devices([])
        assert result.is_valid
        assert result.warnings == ["Device list is empty"]


class TestScalarChecks:
    """Tests for the individual field checks."""

    def test_min_length(self):
        assert check_min_length("abc", 3, "name") is None
        issue = check_min_length("ab", 3, "name")
        assert "minimum length of 3" in issue.message

    @pytest.mark.parametrize("value", ["10", " 7 ", 0, "-3"])
    def test_int_accepts(self, value):
        assert check_int(value, "fleet_size") is None

    @pytest.mark.parametrize("value", ["ten", "1.5", "", None, str(2**31)])
    def test_int_rejects(self, value):
        assert check_int(value, "fleet_size") is not None

    def test_bool(self):
        assert check_bool("TRUE", "flag") is None
        assert check_bool(False, "flag") is None
        assert check_bool("yes", "flag") is not None
        assert parse_bool(" False ") is False

    def test_email(self):
        assert check_email("admin@acme.com") is None
        assert check_email("admin") is not None

    @pytest.mark.parametrize(
        "password, message",
        [
            ("", "Password cannot be empty."),
            ("SECRET#123", "Password must contain at least one lower-case letter."),
            ("secret#123", "Password must contain at least one upper-case letter."),
            ("Se#1", "Password must not be less than 8 or greater than 15 characters in length."),
            ("Secret#abc", "Password must contain at least one numeric value."),
            ("Secret1234", "Password must contain at least one special character."),
        ],
    )
    def test_password_rules(self, password, message):
        assert check_password(password).message == message

    def test_password_ok(self):
        assert check_password("Secret#123") is None


class TestValidateProvisionRequest:
    """Tests for validate_provision_request."""

    def test_valid_request(self):
        result = validate_provision_request(make_request())
        assert result.is_valid
        assert result.warnings == []

    def test_reports_all_violations(self):
        result = validate_provision_request(
            make_request(company_name="A", phone_number="555", admin_password="weak")
        )
        fields = {e.field for e in result.errors}
        assert {"company_name", "phone_number", "admin_password"} <= fields

    def test_non_email_username_is_warning(self):
        result = validate_provision_request(make_request(admin_email="admin"))
        assert result.is_valid
        assert len(result.warnings) == 1


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_merge(self):
        a = ValidationResult.from_issues([], ["w1"])
        b = ValidationResult.from_issues([ValidationIssue("f", "bad")])
        merged = a.merge(b)
        assert not merged.is_valid
        assert merged.warnings == ["w1"]
        assert str(merged.errors[0]) == "f: bad"
