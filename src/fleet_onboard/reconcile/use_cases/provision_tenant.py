"""Provision Tenant use case.

Creates a customer database and its administrator:

STEP 1: Validate the request (all violations reported together)
STEP 2: Check the database name is free
STEP 3: Check the time zone id is one the platform supports
STEP 4: CreateDatabase -> "server/database"
STEP 5: Add the administrator user to the new database

Steps 2-4 stop the run on failure. If step 5 fails, the database
already exists; the result says so.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..domain.entities import TenantProvisionRequest
from ..domain.ports import ITenantProvisioningAPI
from ..domain.validation import ValidationIssue, ValidationResult, validate_provision_request

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of provisioning a tenant."""

    success: bool
    database_name: str
    server: Optional[str] = None
    database: Optional[str] = None
    admin_user_id: Optional[str] = None
    validation: Optional[ValidationResult] = None
    errors: list[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def path(self) -> Optional[str]:
        if self.server and self.database:
            return f"{self.server}/{self.database}"
        return None

    @property
    def database_created(self) -> bool:
        return self.database is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "database_name": self.database_name,
            "path": self.path,
            "admin_user_id": self.admin_user_id,
            "errors": self.errors,
            "validation_errors": (
                [str(e) for e in self.validation.errors] if self.validation else []
            ),
        }


def split_database_path(path: str) -> tuple[str, str]:
    """Split a ``server/database`` path as returned by CreateDatabase."""
    server, _, database = (path or "").strip().partition("/")
    if not server or not database:
        raise ValueError(f"Unexpected database path: '{path}'")
    return server, database


class ProvisionTenantUseCase:
    """Create a tenant database and its administrator user."""

    def __init__(self, provisioning_api: ITenantProvisioningAPI):
        self.api = provisioning_api

    async def execute(self, request: TenantProvisionRequest) -> ProvisionResult:
        result = ProvisionResult(
            success=False,
            database_name=request.database_name,
            started_at=datetime.now(),
        )

        # STEP 1
        result.validation = validate_provision_request(request)
        for warning in result.validation.warnings:
            logger.warning(warning)
        if not result.validation.is_valid:
            result.errors = [str(e) for e in result.validation.errors]
            logger.error(f"Provisioning request invalid: {result.errors}")
            return self._finish(result)

        # STEP 2
        logger.info(f"Checking whether database name '{request.database_name}' is available...")
        if await self.api.database_exists(request.database_name):
            issue = ValidationIssue(
                "database_name",
                f"Database name '{request.database_name}' is already used",
            )
            result.validation = result.validation.merge(ValidationResult.from_issues([issue]))
            result.errors.append(str(issue))
            logger.error(str(issue))
            return self._finish(result)

        # STEP 3
        time_zones = await self.api.get_time_zone_ids()
        if request.time_zone_id not in time_zones:
            issue = ValidationIssue(
                "time_zone_id",
                f"'{request.time_zone_id}' is not a supported time zone id",
            )
            result.validation = result.validation.merge(ValidationResult.from_issues([issue]))
            result.errors.append(str(issue))
            logger.error(str(issue))
            return self._finish(result)

        # STEP 4
        logger.info(f"Creating database '{request.database_name}'...")
        path = await self.api.create_database(request)
        result.server, result.database = split_database_path(path)
        logger.info(f"Database created at '{path}'")

        # STEP 5
        try:
            result.admin_user_id = await self.api.add_admin_user(
                result.server, result.database, request
            )
        except Exception as e:
            message = (
                f"Database '{result.database}' was created but user "
                f"'{request.admin_email}' could not be added: {e}"
            )
            logger.error(message)
            result.errors.append(message)
            return self._finish(result)

        logger.info(f"Added user '{request.admin_email}' to database '{result.database}'")
        result.success = True
        return self._finish(result)

    @staticmethod
    def _finish(result: ProvisionResult) -> ProvisionResult:
        result.completed_at = datetime.now()
        return result
