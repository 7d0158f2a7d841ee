"""Tests for the MyGeotab and MyAdmin port adapters."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.fleet_onboard.api.exceptions import CollectionError, ServerError
from src.fleet_onboard.api.pagination import PaginationConfig
from src.fleet_onboard.reconcile.adapters.geotab_api_adapter import (
    MyAdminRegistryAPI,
    MyGeotabDeviceAPI,
    MyGeotabProvisioningAPI,
)
from src.fleet_onboard.reconcile.domain.entities import (
    ADMIN_SECURITY_GROUP_ID,
    ROOT_GROUP_ID,
    DesiredDevice,
    DeviceSettings,
    TenantDevice,
    TenantProvisionRequest,
)


@pytest.fixture
def geotab_client():
    client = AsyncMock()
    client.database = "acme"
    return client


class TestMyGeotabDeviceAPI:
    """Tests for MyGeotabDeviceAPI."""

    @pytest.mark.asyncio
    async def test_fetch_all(self, geotab_client):
        geotab_client.get.return_value = [
            {"id": "b1", "serialNumber": "G9AB-0001", "deviceType": "GO9"},
            {"id": "b2", "serialNumber": "G9AB0002", "deviceType": "GO7"},
        ]

        devices = await MyGeotabDeviceAPI(geotab_client).fetch_all()

        geotab_client.get.assert_awaited_once_with("Device", retry=False)
        assert [d.serial_number for d in devices] == ["G9AB0001", "G9AB0002"]

    @pytest.mark.asyncio
    async def test_fetch_failure_is_collection_error(self, geotab_client):
        geotab_client.get.side_effect = ServerError("down", status_code=503)

        with pytest.raises(CollectionError):
            await MyGeotabDeviceAPI(geotab_client).fetch_all()

    @pytest.mark.asyncio
    async def test_add_device_reads_back_entity(self, geotab_client):
        geotab_client.add.return_value = "b9"
        geotab_client.get.return_value = [
            {"id": "b9", "serialNumber": "G9AB0001", "deviceType": "GO9", "name": "G9AB-0001"}
        ]
        api = MyGeotabDeviceAPI(geotab_client)

        device = await api.add_device(DesiredDevice("G9AB-0001"), [{"id": ROOT_GROUP_ID}])

        type_name, entity = geotab_client.add.await_args.args
        assert type_name == "Device"
        assert entity["serialNumber"] == "G9AB0001"
        assert entity["name"] == "G9AB-0001"
        geotab_client.get.assert_awaited_once_with("Device", search={"id": "b9"})
        assert device.id == "b9"
        assert device.device_type == "GO9"

    @pytest.mark.asyncio
    async def test_add_device_without_read_back(self, geotab_client):
        geotab_client.add.return_value = "b9"
        geotab_client.get.return_value = []

        device = await MyGeotabDeviceAPI(geotab_client).add_device(DesiredDevice("G9AB-0001"), [])

        assert device.id == "b9"
        assert device.serial_number == "G9AB0001"

    @pytest.mark.asyncio
    async def test_update_writes_rpm_threshold(self, geotab_client):
        device = TenantDevice(
            serial_number="G9AB0003",
            id="b3",
            device_type="GO9",
            raw={"id": "b3", "serialNumber": "G9AB0003", "deviceType": "GO9"},
        )
        desired = DesiredDevice("G9AB-0003", settings=DeviceSettings(engine_rpm_beep_value=4000))

        await MyGeotabDeviceAPI(geotab_client).update_device(device, desired)

        geotab_client.set.assert_awaited_once()
        type_name, entity = geotab_client.set.await_args.args
        assert type_name == "Device"
        assert entity["id"] == "b3"
        assert entity["rpmValue"] == 4000


class TestMyAdminRegistryAPI:
    """Tests for MyAdminRegistryAPI."""

    @pytest.mark.asyncio
    async def test_fetch_all_maps_records(self):
        admin = AsyncMock()
        admin.collect_current_device_databases.return_value = [
            {"id": 1, "serialNumber": "G9AB0001", "databaseName": "acme"},
            {"id": 2, "serialNumber": "G9AB0002", "databaseName": None},
        ]
        config = PaginationConfig(page_size=500)

        records = await MyAdminRegistryAPI(admin, "RES001", pagination_config=config).fetch_all()

        admin.collect_current_device_databases.assert_awaited_once_with("RES001", config=config)
        assert records[0].database_name == "acme"
        assert records[0].record_id == 1
        assert records[1].database_name == ""


def make_request() -> TenantProvisionRequest:
    return TenantProvisionRequest(
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


class TestMyGeotabProvisioningAPI:
    """Tests for MyGeotabProvisioningAPI."""

    @pytest.mark.asyncio
    async def test_create_database_uses_session_login(self, geotab_client):
        geotab_client.session_manager = MagicMock(user_name="reseller", password="pw")
        geotab_client.create_database.return_value = "my5.geotab.com/acme_fleet"
        request = make_request()

        path = await MyGeotabProvisioningAPI(geotab_client).create_database(request)

        assert path == "my5.geotab.com/acme_fleet"
        kwargs = geotab_client.create_database.await_args.kwargs
        assert kwargs["user_name"] == "reseller"
        assert kwargs["company_details"]["companyName"] == "Acme"

    @pytest.mark.asyncio
    async def test_get_time_zone_ids(self, geotab_client):
        geotab_client.get_time_zones.return_value = [{"id": "America/Toronto"}, {"name": "x"}]

        ids = await MyGeotabProvisioningAPI(geotab_client).get_time_zone_ids()

        assert ids == ["America/Toronto"]

    @pytest.mark.asyncio
    async def test_add_admin_user_on_new_database(self, geotab_client):
        session = MagicMock()
        geotab_client.session_manager = session
        new_client = AsyncMock()
        new_client.add.return_value = "u1"
        new_client.__aenter__.return_value = new_client

        with patch("src.fleet_onboard.api.client.MyGeotabClient", return_value=new_client):
            user_id = await MyGeotabProvisioningAPI(geotab_client).add_admin_user(
                "my5.geotab.com", "acme_fleet", make_request()
            )

        assert user_id == "u1"
        session.for_database.assert_called_once_with("acme_fleet", server="my5.geotab.com")
        type_name, user = new_client.add.await_args.args
        assert type_name == "User"
        assert user["name"] == "admin@acme.com"
        assert user["companyGroups"] == [{"id": ROOT_GROUP_ID}]
        assert user["securityGroups"] == [{"id": ADMIN_SECURITY_GROUP_ID}]
