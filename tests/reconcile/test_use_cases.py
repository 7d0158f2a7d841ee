"""Tests for the onboarding, snapshot and provisioning use cases."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.fleet_onboard.api.exceptions import APIError, CollectionError
from src.fleet_onboard.reconcile.domain.entities import (
    DesiredDevice,
    OwnershipRecord,
    TenantDevice,
    TenantProvisionRequest,
    Verdict,
)
from src.fleet_onboard.reconcile.domain.validation import ValidationIssue, ValidationResult
from src.fleet_onboard.reconcile.use_cases import (
    Action,
    LoadSnapshotUseCase,
    OnboardDevicesUseCase,
    ProvisionTenantUseCase,
)
from src.fleet_onboard.reconcile.use_cases.provision_tenant import split_database_path


@pytest.fixture
def mock_parser():
    parser = MagicMock()
    parser.parse.return_value = [
        DesiredDevice("G9AB-0001", row_number=2),
        DesiredDevice("G9AB-0002", row_number=3),
        DesiredDevice("G9AB-0003", row_number=4),
    ]
    parser.validate.return_value = ValidationResult(is_valid=True)
    return parser


@pytest.fixture
def mock_device_api():
    api = AsyncMock()
    api.tenant_name = "acme"
    api.fetch_all.return_value = [TenantDevice(serial_number="G9AB0001", id="b1", device_type="GO9")]
    api.add_device.return_value = TenantDevice(serial_number="G9AB0002", id="b2", device_type="GO9")
    api.update_device.return_value = None
    return api


@pytest.fixture
def mock_registry_api():
    api = AsyncMock()
    api.fetch_all.return_value = [
        OwnershipRecord("G9AB0001", "acme"),
        OwnershipRecord("G9AB0003", "OtherTenant"),
    ]
    return api


class TestLoadSnapshotUseCase:
    """Tests for LoadSnapshotUseCase."""

    @pytest.mark.asyncio
    async def test_builds_both_indices(self, mock_device_api, mock_registry_api):
        snapshot = await LoadSnapshotUseCase(mock_device_api, mock_registry_api).execute()

        assert "G9AB-0001" in snapshot.tenant_index
        assert snapshot.global_index.owners("G9AB0003") == ("OtherTenant",)
        assert snapshot.inconsistent_serials == {}

    @pytest.mark.asyncio
    async def test_listing_failure_propagates(self, mock_device_api, mock_registry_api):
        mock_registry_api.fetch_all.side_effect = CollectionError("page 2 failed")

        with pytest.raises(CollectionError):
            await LoadSnapshotUseCase(mock_device_api, mock_registry_api).execute()


class TestOnboardDevicesUseCase:
    """Tests for OnboardDevicesUseCase."""

    @pytest.mark.asyncio
    async def test_full_run(self, mock_parser, mock_device_api, mock_registry_api):
        use_case = OnboardDevicesUseCase(mock_parser, mock_device_api, mock_registry_api)

        result = await use_case.execute(b"csv", filename="devices.csv")

        assert result.success is True
        assert result.tenant_name == "acme"
        assert [o.verdict for o in result.outcomes] == [
            Verdict.UPDATED,
            Verdict.ADDED_THEN_UPDATED,
            Verdict.SKIPPED_CONFLICT,
        ]
        assert mock_device_api.add_device.await_count == 1
        assert mock_device_api.update_device.await_count == 2
        assert len(use_case.reporter) == 3
        assert result.to_dict()["counts"]["SKIPPED_CONFLICT"] == 1

    @pytest.mark.asyncio
    async def test_failed_record_marks_run_unsuccessful(
        self, mock_parser, mock_device_api, mock_registry_api
    ):
        mock_device_api.add_device.side_effect = APIError("rejected", method="Add")
        use_case = OnboardDevicesUseCase(mock_parser, mock_device_api, mock_registry_api)

        result = await use_case.execute(b"csv")

        assert result.success is False
        assert result.failed == 1
        assert result.error is None
        assert use_case.reporter.failed_serials() == ["G9AB-0002"]

    @pytest.mark.asyncio
    async def test_dry_run_makes_no_mutations(self, mock_parser, mock_device_api, mock_registry_api):
        use_case = OnboardDevicesUseCase(mock_parser, mock_device_api, mock_registry_api)

        result = await use_case.execute(b"csv", dry_run=True)

        assert result.success is True
        assert [a for _, a in result.plan] == [Action.UPDATE, Action.CREATE, Action.SKIP_CONFLICT]
        assert result.outcomes == []
        mock_device_api.add_device.assert_not_awaited()
        mock_device_api.update_device.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_validation_failure_stops_before_snapshot(
        self, mock_parser, mock_device_api, mock_registry_api
    ):
        mock_parser.validate.return_value = ValidationResult.from_issues(
            [ValidationIssue("serial_number", "Serial number is required", 2)]
        )
        use_case = OnboardDevicesUseCase(mock_parser, mock_device_api, mock_registry_api)

        result = await use_case.execute(b"csv")

        assert result.success is False
        assert result.error == "Device list failed validation"
        mock_device_api.fetch_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_snapshot_failure_is_fatal(self, mock_parser, mock_device_api, mock_registry_api):
        mock_registry_api.fetch_all.side_effect = CollectionError("page 2 failed")
        use_case = OnboardDevicesUseCase(mock_parser, mock_device_api, mock_registry_api)

        result = await use_case.execute(b"csv")

        assert result.success is False
        assert "page 2 failed" in result.error
        mock_device_api.add_device.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_during_snapshot_makes_no_mutations(
        self, mock_parser, mock_device_api, mock_registry_api
    ):
        use_case = OnboardDevicesUseCase(mock_parser, mock_device_api, mock_registry_api)

        async def cancel_while_paging():
            use_case.cancel()
            return []

        mock_registry_api.fetch_all.side_effect = cancel_while_paging

        result = await use_case.run([DesiredDevice("G9AB-0002", row_number=2)])

        assert result.success is False
        assert result.error == "Run cancelled before any device was processed"
        assert result.outcomes == []
        mock_device_api.add_device.assert_not_awaited()
        mock_device_api.update_device.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_parse_error_propagates(self, mock_parser, mock_device_api, mock_registry_api):
        mock_parser.parse.side_effect = ValueError("Invalid file")
        use_case = OnboardDevicesUseCase(mock_parser, mock_device_api, mock_registry_api)

        with pytest.raises(ValueError):
            await use_case.execute(b"invalid content")


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


@pytest.fixture
def mock_provisioning_api():
    api = AsyncMock()
    api.database_exists.return_value = False
    api.get_time_zone_ids.return_value = ["America/Toronto", "Europe/London"]
    api.create_database.return_value = "my5.geotab.com/acme_fleet"
    api.add_admin_user.return_value = "u1"
    return api


class TestProvisionTenantUseCase:
    """Tests for ProvisionTenantUseCase."""

    @pytest.mark.asyncio
    async def test_provision_success(self, mock_provisioning_api):
        result = await ProvisionTenantUseCase(mock_provisioning_api).execute(make_request())

        assert result.success is True
        assert result.path == "my5.geotab.com/acme_fleet"
        assert result.admin_user_id == "u1"
        mock_provisioning_api.add_admin_user.assert_awaited_once()
        assert mock_provisioning_api.add_admin_user.await_args.args[:2] == (
            "my5.geotab.com",
            "acme_fleet",
        )

    @pytest.mark.asyncio
    async def test_invalid_request_makes_no_calls(self, mock_provisioning_api):
        result = await ProvisionTenantUseCase(mock_provisioning_api).execute(
            make_request(admin_password="weak")
        )

        assert result.success is False
        assert any("admin_password" in e for e in result.errors)
        mock_provisioning_api.database_exists.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_existing_database_name(self, mock_provisioning_api):
        mock_provisioning_api.database_exists.return_value = True

        result = await ProvisionTenantUseCase(mock_provisioning_api).execute(make_request())

        assert result.success is False
        assert "already used" in result.errors[0]
        mock_provisioning_api.create_database.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_time_zone(self, mock_provisioning_api):
        result = await ProvisionTenantUseCase(mock_provisioning_api).execute(
            make_request(time_zone_id="Mars/Olympus")
        )

        assert result.success is False
        assert "time_zone_id" in result.errors[0]
        mock_provisioning_api.create_database.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_user_failure_after_database_created(self, mock_provisioning_api):
        mock_provisioning_api.add_admin_user.side_effect = APIError("bad user", method="Add")

        result = await ProvisionTenantUseCase(mock_provisioning_api).execute(make_request())

        assert result.success is False
        assert result.database_created is True
        assert "was created but user" in result.errors[0]

    def test_split_database_path(self):
        assert split_database_path("my5.geotab.com/acme") == ("my5.geotab.com", "acme")
        with pytest.raises(ValueError):
            split_database_path("acme")
