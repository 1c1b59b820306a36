"""Snapshot builder tests."""

import pytest

from opname.models.opname_items import OpnameSnapshotItem
from opname.models.opname_session import OpnameSession, OpnameSessionAssignment
from opname.models.stock_unit import StockUnit
from opname.services.exceptions import (
    PermissionDeniedError,
    SnapshotSourceError,
    ValidationError,
)
from opname.services.inventory_source import ExpectedUnit, StockUnitSnapshotSource
from opname.services.snapshot_builder import SnapshotBuilder


class FailingSource:
    """Snapshot source whose backing store is down."""

    def list_expected_units(self):
        raise SnapshotSourceError("Inventory store is unavailable")

    def count_expected_units(self):
        raise SnapshotSourceError("Inventory store is unavailable")


class StaticSource:
    """Snapshot source returning a fixed list of units."""

    def __init__(self, units):
        self.units = units

    def list_expected_units(self):
        return list(self.units)

    def count_expected_units(self):
        return len(self.units)


class TestStockUnitSnapshotSource:
    """Tests for the stock_units backed source."""

    def test_only_expected_statuses(self, db, make_units):
        available = make_units(3)
        reserved = make_units(2, stock_status="reserved")
        make_units(4, stock_status="sold")
        make_units(1, stock_status="service")

        source = StockUnitSnapshotSource(db)
        units = source.list_expected_units()

        assert source.count_expected_units() == 5
        assert sorted(u.imei for u in units) == sorted(available + reserved)

    def test_custom_statuses(self, db, make_units):
        make_units(2)
        reserved = make_units(1, stock_status="reserved")

        units = StockUnitSnapshotSource(db, statuses=["reserved"]).list_expected_units()

        assert [u.imei for u in units] == reserved

    def test_product_label_falls_back_to_imei(self, db):
        db.add(StockUnit(imei="356000000000777", product_label=None, stock_status="available"))
        db.commit()

        (unit,) = StockUnitSnapshotSource(db).list_expected_units()
        assert unit.product_label == "356000000000777"


class TestCreateSession:
    """Tests for SnapshotBuilder.create_session."""

    def test_snapshot_matches_expected_units(self, db, admin, make_units):
        imeis = make_units(4)
        make_units(2, stock_status="sold")

        opname_session = SnapshotBuilder(db).create_session(admin, "opening", notes="Shift A")

        items = (
            db.query(OpnameSnapshotItem)
            .filter(OpnameSnapshotItem.session_id == opname_session.id)
            .all()
        )
        assert opname_session.session_status == "draft"
        assert opname_session.session_type == "opening"
        assert opname_session.notes == "Shift A"
        assert opname_session.created_by == admin.user_id
        assert opname_session.total_expected == len(items) == 4
        assert opname_session.total_missing == 4
        assert opname_session.total_scanned == 0
        assert opname_session.total_match == 0
        assert opname_session.total_unregistered == 0
        assert sorted(item.imei for item in items) == sorted(imeis)
        assert all(item.scan_result == "missing" for item in items)
        assert all(item.action_taken is None for item in items)

    def test_snapshot_copies_unit_attributes(self, db, admin, make_units):
        (imei,) = make_units(1, stock_status="reserved")
        unit = db.query(StockUnit).filter(StockUnit.imei == imei).one()

        opname_session = SnapshotBuilder(db).create_session(admin, "closing")

        (item,) = opname_session.snapshot_items
        assert item.unit_id == unit.id
        assert item.product_label == unit.product_label
        assert item.selling_price == unit.selling_price
        assert item.cost_price == unit.cost_price
        assert item.stock_status == "reserved"

    def test_snapshot_is_isolated_from_later_stock_changes(self, db, admin, make_units):
        imeis = make_units(3)
        opname_session = SnapshotBuilder(db).create_session(admin, "opening")

        sold = db.query(StockUnit).filter(StockUnit.imei == imeis[0]).one()
        sold.stock_status = "sold"
        make_units(2)
        db.commit()

        db.refresh(opname_session)
        items = (
            db.query(OpnameSnapshotItem)
            .filter(OpnameSnapshotItem.session_id == opname_session.id)
            .all()
        )
        assert opname_session.total_expected == 3
        assert sorted(item.imei for item in items) == sorted(imeis)
        assert all(item.stock_status == "available" for item in items)

    def test_empty_inventory(self, db, admin):
        opname_session = SnapshotBuilder(db).create_session(admin, "adhoc")
        assert opname_session.total_expected == 0
        assert opname_session.total_missing == 0

    def test_failing_source_leaves_nothing(self, db, admin, make_units):
        make_units(3)

        with pytest.raises(SnapshotSourceError):
            SnapshotBuilder(db, source=FailingSource()).create_session(admin, "opening")

        assert db.query(OpnameSession).count() == 0
        assert db.query(OpnameSnapshotItem).count() == 0

    def test_custom_source(self, db, admin):
        units = [
            ExpectedUnit(
                unit_id=index,
                imei=f"86{index:013d}",
                product_label=f"Pixel 8 - Unit {index}",
                selling_price=None,
                cost_price=None,
                stock_status="available",
            )
            for index in range(1, 4)
        ]

        opname_session = SnapshotBuilder(db, source=StaticSource(units)).create_session(
            admin, "adhoc"
        )

        assert opname_session.total_expected == 3
        assert {item.imei for item in opname_session.snapshot_items} == {u.imei for u in units}

    def test_unknown_session_type(self, db, admin):
        with pytest.raises(ValidationError):
            SnapshotBuilder(db).create_session(admin, "midnight")
        assert db.query(OpnameSession).count() == 0

    def test_with_assignees(self, db, approver, admin_user, make_units):
        make_units(2)

        opname_session = SnapshotBuilder(db).create_session(
            approver, "opening", assignee_ids=[admin_user.id]
        )

        assignments = db.query(OpnameSessionAssignment).all()
        assert [(a.session_id, a.admin_id) for a in assignments] == [
            (opname_session.id, admin_user.id)
        ]
        assert assignments[0].assigned_by == approver.user_id

    def test_assignees_require_approver(self, db, admin, admin_user, make_units):
        make_units(2)

        with pytest.raises(PermissionDeniedError):
            SnapshotBuilder(db).create_session(admin, "opening", assignee_ids=[admin_user.id])

        assert db.query(OpnameSession).count() == 0
        assert db.query(OpnameSnapshotItem).count() == 0

    def test_preview_expected_count(self, db, make_units):
        make_units(3)
        make_units(1, stock_status="reserved")
        make_units(2, stock_status="sold")

        assert SnapshotBuilder(db).preview_expected_count() == 4
