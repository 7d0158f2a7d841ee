"""Validation rules returning result types.

Nothing here prompts or retries. Callers decide what to do with the
collected issues: the CLI prints them and exits, a UI could re-ask.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from .entities import DesiredDevice, TenantProvisionRequest


@dataclass
class ValidationIssue:
    """One violated constraint."""

    field: str
    message: str
    row_number: int | None = None

    def __str__(self) -> str:
        if self.row_number is not None:
            return f"Row {self.row_number}: {self.field}: {self.message}"
        return f"{self.field}: {self.message}"


@dataclass
class ValidationResult:
    """Result of validating a device list or provisioning request."""

    is_valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_issues(
        cls,
        errors: Iterable[ValidationIssue],
        warnings: Iterable[str] = (),
    ) -> "ValidationResult":
        errors = list(errors)
        return cls(is_valid=not errors, errors=errors, warnings=list(warnings))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult.from_issues(
            self.errors + other.errors,
            self.warnings + other.warnings,
        )


# ============================================
# Desired Device List
# ============================================

LARGE_LIST_WARNING_THRESHOLD = 1000


def validate_desired_devices(devices: list[DesiredDevice]) -> ValidationResult:
    """Check a parsed device list before anything is sent to the platform.

    Duplicate serials (after normalization) are errors: the second row
    would be classified against the same snapshot as the first.
    """
    errors: list[ValidationIssue] = []
    warnings: list[str] = []
    seen: dict[str, int | None] = {}

    for device in devices:
        row = device.row_number
        serial = device.normalized_serial

        if not serial:
            errors.append(ValidationIssue("serial_number", "Serial number is required", row))
            continue

        if serial in seen:
            first_row = seen[serial]
            where = f" (first seen on row {first_row})" if first_row is not None else ""
            errors.append(
                ValidationIssue(
                    "serial_number",
                    f"Duplicate serial number: {device.serial_number}{where}",
                    row,
                )
            )
        else:
            seen[serial] = row

        s = device.settings
        if not 0 <= s.driver_identification_reminder_immobilize_seconds <= 255:
            errors.append(
                ValidationIssue(
                    "driver_identification_reminder_immobilize_seconds",
                    "Must be between 0 and 255 seconds",
                    row,
                )
            )
        if s.speeding_stop_beeping_speed > s.speeding_start_beeping_speed:
            errors.append(
                ValidationIssue(
                    "speeding_stop_beeping_speed",
                    "Stop speed must not exceed start speed "
                    f"({s.speeding_stop_beeping_speed} > {s.speeding_start_beeping_speed})",
                    row,
                )
            )
        if s.braking_warning_threshold >= 0:
            errors.append(
                ValidationIssue("braking_warning_threshold", "Must be negative", row)
            )
        for name in (
            "engine_rpm_beep_value",
            "idle_minutes_beep_value",
            "speeding_start_beeping_speed",
            "speeding_stop_beeping_speed",
            "acceleration_warning_threshold",
            "cornering_warning_threshold",
            "seatbelt_not_used_warning_speed",
        ):
            if getattr(s, name) < 0:
                errors.append(ValidationIssue(name, "Must not be negative", row))

    if not devices:
        warnings.append("Device list is empty")
    elif len(devices) > LARGE_LIST_WARNING_THRESHOLD:
        warnings.append(
            f"Large list with {len(devices)} devices. Processing may take a while."
        )

    return ValidationResult.from_issues(errors, warnings)


# ============================================
# Scalar Checks
# ============================================

_BOOL_VALUES = {"true": True, "false": False}

# Loose RFC 5322 shape check: one @, no whitespace, a dot in the domain
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PASSWORD_SYMBOLS = re.compile(r"[!@#$%^&*()_+=\[{\]};:<>|./?,-]")


def check_min_length(value: Any, minimum: int, field_name: str) -> ValidationIssue | None:
    text = "" if value is None else str(value)
    if len(text) < minimum:
        return ValidationIssue(
            field_name,
            f"The value '{text}' does not meet the minimum length of {minimum}",
        )
    return None


def check_int(value: Any, field_name: str) -> ValidationIssue | None:
    """Value must parse as a signed 32-bit integer."""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return ValidationIssue(field_name, f"The value '{value}' is not a valid integer")
    if not -(2**31) <= number < 2**31:
        return ValidationIssue(field_name, f"The value '{value}' is out of range")
    return None


def check_bool(value: Any, field_name: str) -> ValidationIssue | None:
    if isinstance(value, bool):
        return None
    if str(value).strip().lower() not in _BOOL_VALUES:
        return ValidationIssue(
            field_name,
            f"The value '{value}' is not valid. Please enter 'true' or 'false'",
        )
    return None


def check_email(value: Any, field_name: str = "email") -> ValidationIssue | None:
    if not value or not EMAIL_PATTERN.match(str(value).strip()):
        return ValidationIssue(field_name, f"'{value}' is not a valid email address")
    return None


def check_password(password: str | None, field_name: str = "password") -> ValidationIssue | None:
    """Platform password rules, reported one at a time in a fixed order."""
    if not password or not password.strip():
        return ValidationIssue(field_name, "Password cannot be empty.")
    if not re.search(r"[a-z]", password):
        return ValidationIssue(field_name, "Password must contain at least one lower-case letter.")
    if not re.search(r"[A-Z]", password):
        return ValidationIssue(field_name, "Password must contain at least one upper-case letter.")
    if not 8 <= len(password) <= 15:
        return ValidationIssue(
            field_name,
            "Password must not be less than 8 or greater than 15 characters in length.",
        )
    if not re.search(r"[0-9]", password):
        return ValidationIssue(field_name, "Password must contain at least one numeric value.")
    if not PASSWORD_SYMBOLS.search(password):
        return ValidationIssue(field_name, "Password must contain at least one special character.")
    return None


def parse_bool(value: Any) -> bool:
    """Parse a value that ``check_bool`` accepted."""
    if isinstance(value, bool):
        return value
    return _BOOL_VALUES[str(value).strip().lower()]


# ============================================
# Tenant Provisioning Request
# ============================================

# Minimum lengths accepted for each provisioning field
PROVISION_MIN_LENGTHS = {
    "reseller_name": 3,
    "reseller_erp_account_id": 6,
    "company_name": 3,
    "admin_first_name": 1,
    "admin_last_name": 1,
    "phone_number": 10,
    "database_name": 3,
    "time_zone_id": 3,
}


def validate_provision_request(request: TenantProvisionRequest) -> ValidationResult:
    """Check every provisioning field and report all violations at once."""
    errors: list[ValidationIssue] = []
    warnings: list[str] = []

    for field_name, minimum in PROVISION_MIN_LENGTHS.items():
        issue = check_min_length(getattr(request, field_name), minimum, field_name)
        if issue:
            errors.append(issue)

    for issue in (
        check_int(request.fleet_size, "fleet_size"),
        check_bool(request.sign_up_for_news, "sign_up_for_news"),
        check_password(request.admin_password, "admin_password"),
    ):
        if issue:
            errors.append(issue)

    # Usernames need not be email addresses, but usually are
    if check_email(request.admin_email, "admin_email"):
        warnings.append(f"Administrator username '{request.admin_email}' is not an email address")

    return ValidationResult.from_issues(errors, warnings)
