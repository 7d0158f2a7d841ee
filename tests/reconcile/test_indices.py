"""Tests for the snapshot indices."""

from src.fleet_onboard.reconcile.domain.entities import OwnershipRecord, TenantDevice
from src.fleet_onboard.reconcile.domain.indices import GlobalOwnershipIndex, TenantInventoryIndex


class TestTenantInventoryIndex:
    """Tests for TenantInventoryIndex."""

    def test_lookup_by_any_serial_spelling(self):
        index = TenantInventoryIndex.build([TenantDevice(serial_number="G9AB0003", id="b1")])

        assert "G9AB-0003" in index
        assert "g9ab0003" in index
        assert index.get("G9AB 0003").id == "b1"
        assert index.get("G9AB0004") is None

    def test_first_occurrence_wins(self):
        index = TenantInventoryIndex.build(
            [
                TenantDevice(serial_number="G9AB0003", id="b1"),
                TenantDevice(serial_number="G9AB-0003", id="b2"),
            ]
        )
        assert len(index) == 1
        assert index.get("G9AB0003").id == "b1"

    def test_empty_serials_are_skipped(self):
        index = TenantInventoryIndex.build([TenantDevice(serial_number="", id="b1")])
        assert len(index) == 0


class TestGlobalOwnershipIndex:
    """Tests for GlobalOwnershipIndex."""

    def test_owners_in_first_observed_order(self):
        index = GlobalOwnershipIndex.build(
            [
                OwnershipRecord("G9AB0001", "zeta"),
                OwnershipRecord("G9AB-0001", "alpha"),
                OwnershipRecord("G9AB0001", "zeta"),
            ]
        )
        assert index.owners("G9AB0001") == ("zeta", "alpha")
        assert index.inconsistent_serials() == {"G9AB0001": ("zeta", "alpha")}

    def test_conflicting_owners_exclude_target_tenant(self):
        index = GlobalOwnershipIndex.build(
            [OwnershipRecord("G9AB0001", "Acme"), OwnershipRecord("G9AB0001", "other")]
        )
        assert index.conflicting_owners("G9AB0001", "acme") == ("other",)

    def test_unknown_serial_has_no_owners(self):
        index = GlobalOwnershipIndex.build([])
        assert index.owners("G9AB0001") == ()
        assert "G9AB0001" not in index

    def test_blank_records_are_ignored(self):
        index = GlobalOwnershipIndex.build(
            [OwnershipRecord("", "acme"), OwnershipRecord("G9AB0001", "  ")]
        )
        assert len(index) == 0
