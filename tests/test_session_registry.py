"""Session registry tests: detail views and per-scanner tallies."""

import pytest

from opname.models.opname_items import OpnameScannedItem
from opname.services.scan_ingestor import ScanIngestor
from opname.services.session_registry import ScannerTally, SessionRegistry
from opname.services.snapshot_builder import SnapshotBuilder

UNKNOWN_IMEI = "990000000000001"


@pytest.fixture
def shared_count(db, admin, approver, make_units):
    """Two people scanning the same shelf."""
    imeis = make_units(5)
    opname_session = SnapshotBuilder(db).create_session(admin, "opening")
    ingestor = ScanIngestor(db)
    ingestor.bulk_scan(opname_session.id, imeis[:3] + [UNKNOWN_IMEI], admin)
    ingestor.scan(opname_session.id, imeis[3], approver)
    return opname_session


def test_scanner_breakdown(db, admin, approver, shared_count):
    breakdown = SessionRegistry(db).scanner_breakdown(shared_count.id)

    assert breakdown == [
        ScannerTally(scanned_by=admin.user_id, name="Store Admin", scanned=4, matched=3),
        ScannerTally(scanned_by=approver.user_id, name="Store Owner", scanned=1, matched=1),
    ]


def test_unattributed_scans_grouped(db, shared_count):
    db.add(
        OpnameScannedItem(
            session_id=shared_count.id, imei="990000000000002", scan_result="unregistered"
        )
    )
    db.commit()

    breakdown = SessionRegistry(db).scanner_breakdown(shared_count.id)

    assert breakdown[-1] == ScannerTally(scanned_by=None, name=None, scanned=1, matched=0)


def test_breakdown_of_unscanned_session(db, admin, make_units):
    make_units(2)
    opname_session = SnapshotBuilder(db).create_session(admin, "adhoc")

    assert SessionRegistry(db).scanner_breakdown(opname_session.id) == []


def test_session_detail_includes_breakdown(db, admin, shared_count):
    detail = SessionRegistry(db).get_session_detail(shared_count.id)

    assert len(detail.scanned_items) == 5
    assert [t.scanned_by for t in detail.scanner_breakdown][0] == admin.user_id
