from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from helpr.db import crud
from helpr.models import Base, Service, ServiceFillRequest
from helpr.schemas import ServiceCreate, ServiceSnapshot, ServiceStatus, ServiceUpdate
from helpr.services import bidding, jobs
from helpr.services.errors import LifecycleError


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


async def _confirmed_service(db, provider="P1", customer="cust-1"):
    svc = await jobs.create_service(db, customer, ServiceCreate(description="Boxes", price=40.0))
    await bidding.place_bid(db, svc.id, provider, 35)
    return (await bidding.accept_bid(db, svc.id, provider)).value


async def test_create_service_starts_open(db):
    svc = await jobs.create_service(db, "cust-1", ServiceCreate(service_type="Moving", price=80.0))
    assert svc.status is ServiceStatus.FINDING_PROS
    assert svc.assigned_provider_id is None
    assert svc.customer_id == "cust-1"


async def test_scenario_b_persisted(db):
    svc = await _confirmed_service(db)

    r = await jobs.advance_service(db, svc.id, "P1")
    assert r.value.status is ServiceStatus.HELPR_OTW
    r = await jobs.advance_service(db, svc.id, "P1")
    assert r.value.status is ServiceStatus.IN_PROGRESS

    r = await jobs.advance_service(db, svc.id, "P2")
    assert r.error is LifecycleError.NOT_ASSIGNED_PROVIDER

    r = await jobs.advance_service(db, svc.id, "P1")
    assert r.value.status is ServiceStatus.COMPLETED
    r = await jobs.advance_service(db, svc.id, "P1")
    assert r.error is LifecycleError.TERMINAL_STATE

    row = await crud.get_service(db, svc.id)
    assert row.status == "completed"
    assert row.assigned_provider_id == "P1"


async def test_advance_unknown_service(db):
    r = await jobs.advance_service(db, "missing", "P1")
    assert r.error is LifecycleError.SERVICE_NOT_FOUND


async def test_advance_with_mixed_case_status(db):
    svc = await _confirmed_service(db)
    await db.execute(update(Service).where(Service.id == svc.id).values(status="Confirmed"))
    await db.commit()
    r = await jobs.advance_service(db, svc.id, "P1")
    assert r.ok
    assert r.value.status is ServiceStatus.HELPR_OTW


async def test_stale_transition_is_rejected(db):
    svc = await _confirmed_service(db)
    await jobs.advance_service(db, svc.id, "P1")
    # A second device still believes the job is confirmed.
    stored = await crud.transition_status(
        db, svc.id, expected=ServiceStatus.CONFIRMED, target=ServiceStatus.HELPR_OTW,
        assigned_provider_id="P1",
    )
    assert stored is None
    row = await crud.get_service(db, svc.id)
    assert row.status == "helpr_otw"


async def test_scenario_c_cancel_then_rebid(db):
    svc = await jobs.create_service(db, "cust-1", ServiceCreate(description="Piano"))
    await bidding.place_bid(db, svc.id, "P1", 90)
    await bidding.accept_bid(db, svc.id, "P1")

    r = await jobs.cancel_service_assignment(db, svc.id, "P1")
    assert r.ok
    assert r.value.status is ServiceStatus.FINDING_PROS
    assert r.value.assigned_provider_id is None
    assert r.value.agreed_price is None

    again = await bidding.place_bid(db, svc.id, "P1", 45)
    assert again.ok
    assert again.value.bid_amount == 45


async def test_cancel_removes_leftover_bid_of_canceller(db):
    svc = await _confirmed_service(db)
    # A bid row left behind from before acceptance, e.g. by an older client.
    db.add(ServiceFillRequest(service_id=svc.id, provider_id="P1", bid_amount=35))
    await db.commit()

    r = await jobs.cancel_service_assignment(db, svc.id, "P1")
    assert r.ok
    assert await crud.get_bid(db, svc.id, "P1") is None


async def test_cancel_after_on_the_way_is_invalid(db):
    svc = await _confirmed_service(db)
    await jobs.advance_service(db, svc.id, "P1")
    r = await jobs.cancel_service_assignment(db, svc.id, "P1")
    assert r.error is LifecycleError.INVALID_CANCELLATION


async def test_edit_only_while_open(db):
    svc = await jobs.create_service(db, "cust-1", ServiceCreate(description="Old", price=50.0))
    edited = await jobs.edit_service(db, svc.id, "cust-1", ServiceUpdate(description="New"))
    assert edited.description == "New"
    assert edited.price == 50.0

    assert await jobs.edit_service(db, svc.id, "cust-2", ServiceUpdate(description="Hijack")) is None

    await bidding.place_bid(db, svc.id, "P1", 45)
    await bidding.accept_bid(db, svc.id, "P1")
    assert await jobs.edit_service(db, svc.id, "cust-1", ServiceUpdate(price=10.0)) is None
    row = await crud.get_service(db, svc.id)
    assert row.price == 50.0


async def test_delete_service_removes_bids(db):
    svc = await jobs.create_service(db, "cust-1", ServiceCreate(description="Desk"))
    await bidding.place_bid(db, svc.id, "P1", 30)

    assert not await jobs.delete_service(db, svc.id, "someone-else")
    assert await jobs.delete_service(db, svc.id, "cust-1")
    assert await crud.get_service(db, svc.id) is None
    assert await bidding.list_bids(db, svc.id) == []


async def test_delete_not_allowed_once_underway(db):
    svc = await _confirmed_service(db)
    await jobs.advance_service(db, svc.id, "P1")
    assert not await jobs.delete_service(db, svc.id, "cust-1")
    assert await crud.get_service(db, svc.id) is not None


async def test_provider_board_and_bookings(db):
    open_svc = await jobs.create_service(db, "cust-1", ServiceCreate(description="Open"))
    mine = await _confirmed_service(db, provider="P1")
    theirs = await _confirmed_service(db, provider="P2")
    await bidding.place_bid(db, open_svc.id, "P1", 20)
    await bidding.place_bid(db, open_svc.id, "P2", 25)

    board = await jobs.provider_board(db, "P1")
    ids = [item.service.id for item in board]
    assert open_svc.id in ids
    assert mine.id in ids
    assert theirs.id not in ids
    open_item = next(item for item in board if item.service.id == open_svc.id)
    assert open_item.my_bid.bid_amount == 20
    assert open_item.bid_count == 2

    bookings = await jobs.customer_bookings(db, "cust-1")
    assert len(bookings) == 3
    counts = {item.service.id: item.bid_count for item in bookings}
    assert counts[open_svc.id] == 2
    assert counts[mine.id] == 0


def _snap(sid, scheduling="asap", scheduled_at=None, created_offset=0, status="finding_pros"):
    base = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    return ServiceSnapshot(
        id=sid, customer_id="c", status=status,
        assigned_provider_id=None if status == "finding_pros" else "P1",
        scheduling_type=scheduling, scheduled_at=scheduled_at,
        created_at=base + timedelta(minutes=created_offset),
    )


def test_sort_for_display():
    later = datetime(2026, 5, 3, 9, 0, tzinfo=timezone.utc)
    sooner = datetime(2026, 5, 2, 9, 0, tzinfo=timezone.utc)
    services = [
        _snap("sched-late", "scheduled", later),
        _snap("asap-2", created_offset=5),
        _snap("done", status="completed"),
        _snap("sched-soon", "scheduled", sooner),
        _snap("asap-1", created_offset=1),
        _snap("sched-missing", "scheduled", None),
    ]
    ordered = [s.id for s in jobs.sort_for_display(services)]
    assert ordered == ["asap-1", "asap-2", "sched-soon", "sched-late"]


def test_edit_rejects_unknown_scheduling_label():
    with pytest.raises(ValidationError):
        ServiceUpdate(scheduling_type="Tomorrow-ish")
    assert ServiceUpdate(scheduling_type=" Scheduled ").scheduling_type == "scheduled"


async def test_edit_to_scheduled_requires_time(db):
    svc = await jobs.create_service(db, "cust-1", ServiceCreate(description="Sofa"))

    with pytest.raises(ValueError):
        await jobs.edit_service(db, svc.id, "cust-1", ServiceUpdate(scheduling_type="scheduled"))
    row = await crud.get_service(db, svc.id)
    assert row.scheduling_type == "asap"

    when = datetime(2026, 12, 1, 10, 0, tzinfo=timezone.utc)
    edited = await jobs.edit_service(
        db, svc.id, "cust-1", ServiceUpdate(scheduling_type="scheduled", scheduled_at=when),
    )
    assert edited.scheduling_type == "scheduled"
    assert jobs.sort_for_display([edited]) == [edited]

    # The stored time still counts when only the label is sent again.
    again = await jobs.edit_service(db, svc.id, "cust-1", ServiceUpdate(scheduling_type="scheduled"))
    assert again is not None


async def test_bookings_use_display_order_and_hide_completed(db):
    soon = datetime(2026, 12, 2, 9, 0, tzinfo=timezone.utc)
    later = datetime(2026, 12, 5, 9, 0, tzinfo=timezone.utc)
    sched_late = await jobs.create_service(
        db, "cust-1", ServiceCreate(scheduling_type="scheduled", scheduled_at=later),
    )
    asap = await jobs.create_service(db, "cust-1", ServiceCreate(description="Now please"))
    sched_soon = await jobs.create_service(
        db, "cust-1", ServiceCreate(scheduling_type="scheduled", scheduled_at=soon),
    )
    done = await _confirmed_service(db)
    for _ in range(3):
        await jobs.advance_service(db, done.id, "P1")

    bookings = await jobs.customer_bookings(db, "cust-1")
    assert [item.service.id for item in bookings] == [asap.id, sched_soon.id, sched_late.id]

    history = await jobs.customer_history(db, "cust-1")
    assert [s.id for s in history] == [done.id]
