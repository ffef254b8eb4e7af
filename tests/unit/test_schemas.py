from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from helpr.schemas import (
    BidPlace, ChangeEvent, ServiceCreate, ServiceSnapshot, ServiceStatus, normalize_status,
)


def test_normalize_status_mixed_case():
    assert normalize_status("Confirmed") is ServiceStatus.CONFIRMED
    assert normalize_status(" HELPR_OTW ") is ServiceStatus.HELPR_OTW


def test_normalize_status_unknown_and_null():
    assert normalize_status(None) is ServiceStatus.FINDING_PROS
    assert normalize_status("Pending") is ServiceStatus.FINDING_PROS


def test_snapshot_normalizes_status_on_read():
    snap = ServiceSnapshot(
        id="s1", customer_id="c1", status="In_Progress", assigned_provider_id="p1",
        created_at=datetime.now(timezone.utc),
    )
    assert snap.status is ServiceStatus.IN_PROGRESS


def test_snapshot_is_frozen():
    snap = ServiceSnapshot(id="s1", customer_id="c1", created_at=datetime.now(timezone.utc))
    with pytest.raises(ValidationError):
        snap.status = ServiceStatus.COMPLETED


def test_service_create_scheduling_type():
    assert ServiceCreate(scheduling_type="ASAP").scheduling_type == "asap"
    with pytest.raises(ValidationError):
        ServiceCreate(scheduling_type="tomorrow")


def test_bid_place_rejects_non_finite():
    with pytest.raises(ValidationError):
        BidPlace(bid_amount=float("inf"))
    assert BidPlace(bid_amount=-5).bid_amount == -5


def test_change_event_construction():
    evt = ChangeEvent(table="service", operation="UPDATE", new_row={"id": "s1"})
    assert evt.table == "service"
    assert evt.new_row["id"] == "s1"
