"""CRUD operations for the service and service_fill_request tables.

Status writes are conditional on the status the caller last saw
(``WHERE status = :expected``). A zero row count means another writer got
there first; callers turn that into a domain error, never an exception.
Every committed write publishes a ChangeEvent on the change feed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from helpr.models import Service, ServiceFillRequest
from helpr.schemas import BidSnapshot, ServiceSnapshot, ServiceStatus, normalize_status
from helpr.services.change_feed import bid_event, change_feed, service_event

# Labels older clients wrote for jobs that are still open for bids.
OPEN_STATUS_LABELS = ("finding_pros", "pending", "scheduled")

_CUSTOMER_FIELDS = (
    "service_type", "start_location", "end_location", "price",
    "description", "scheduling_type", "scheduled_at",
)


def _status_is(status: ServiceStatus):
    return func.lower(Service.status) == status.value


def _service_row(service: Service) -> dict[str, Any]:
    return ServiceSnapshot.model_validate(service).model_dump(mode="json")


def _bid_row(bid: ServiceFillRequest) -> dict[str, Any]:
    return BidSnapshot.model_validate(bid).model_dump(mode="json")


async def _reload_service(db: AsyncSession, service_id: str) -> Service | None:
    return await db.get(Service, service_id, populate_existing=True)


# ── Service ───────────────────────────────────────────────

async def create_service(db: AsyncSession, customer_id: str, **fields) -> Service:
    service = Service(customer_id=customer_id, status=ServiceStatus.FINDING_PROS.value, **fields)
    db.add(service)
    await db.commit()
    await db.refresh(service)
    change_feed.publish(service_event("INSERT", _service_row(service)))
    return service


async def get_service(db: AsyncSession, service_id: str) -> Service | None:
    return await _reload_service(db, service_id)


async def list_services_for_customer(db: AsyncSession, customer_id: str) -> list[Service]:
    result = await db.execute(
        select(Service)
        .where(Service.customer_id == customer_id)
        .order_by(Service.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_provider_board(db: AsyncSession, provider_id: str) -> list[Service]:
    """Jobs open for bids plus this provider's own confirmed jobs, oldest first."""
    result = await db.execute(
        select(Service)
        .where(
            func.lower(Service.status).in_(OPEN_STATUS_LABELS)
            | (_status_is(ServiceStatus.CONFIRMED) & (Service.assigned_provider_id == provider_id))
        )
        .order_by(Service.created_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_services_for_provider(db: AsyncSession, provider_id: str) -> list[Service]:
    """Every job assigned to this provider, newest first."""
    result = await db.execute(
        select(Service)
        .where(Service.assigned_provider_id == provider_id)
        .order_by(Service.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def update_service_if_open(db: AsyncSession, service_id: str, **kwargs) -> Service | None:
    """Apply a customer edit while the job is still finding_pros."""
    values = {k: v for k, v in kwargs.items() if k in _CUSTOMER_FIELDS and v is not None}
    if not values:
        service = await _reload_service(db, service_id)
        return service if service and normalize_status(service.status) is ServiceStatus.FINDING_PROS else None
    result = await db.execute(
        update(Service)
        .where(
            Service.id == service_id,
            func.lower(Service.status).in_(OPEN_STATUS_LABELS),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return None
    await db.commit()
    service = await _reload_service(db, service_id)
    change_feed.publish(service_event("UPDATE", _service_row(service)))
    return service


async def transition_status(
    db: AsyncSession,
    service_id: str,
    expected: ServiceStatus,
    target: ServiceStatus,
    assigned_provider_id: str | None,
) -> Service | None:
    """Compare-and-swap a status step. Returns the updated row or None on conflict."""
    result = await db.execute(
        update(Service)
        .where(
            Service.id == service_id,
            _status_is(expected),
            Service.assigned_provider_id == assigned_provider_id,
        )
        .values(status=target.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return None
    await db.commit()
    service = await _reload_service(db, service_id)
    change_feed.publish(service_event("UPDATE", _service_row(service)))
    return service


async def confirm_assignment(
    db: AsyncSession,
    service_id: str,
    provider_id: str,
    agreed_price: float,
    scheduled_at: datetime | None = None,
) -> Service | None:
    """Close bidding: finding_pros -> confirmed and drop every bid, in one transaction.

    First writer wins. A concurrent acceptance that loses the race, or an
    acceptance of a bid withdrawn in the meantime, sees a zero row count and
    nothing is written.
    """
    values: dict[str, Any] = {
        "status": ServiceStatus.CONFIRMED.value,
        "assigned_provider_id": provider_id,
        "agreed_price": agreed_price,
    }
    if scheduled_at is not None:
        values["scheduling_type"] = "scheduled"
        values["scheduled_at"] = scheduled_at
    bid_still_there = exists().where(
        ServiceFillRequest.service_id == service_id,
        ServiceFillRequest.provider_id == provider_id,
    )
    result = await db.execute(
        update(Service)
        .where(
            Service.id == service_id,
            func.lower(Service.status).in_(OPEN_STATUS_LABELS),
            bid_still_there,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return None
    await db.execute(
        delete(ServiceFillRequest)
        .where(ServiceFillRequest.service_id == service_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    service = await _reload_service(db, service_id)
    change_feed.publish(bid_event("DELETE", {"service_id": service_id}))
    change_feed.publish(service_event("UPDATE", _service_row(service)))
    return service


async def reopen_service(db: AsyncSession, service_id: str, provider_id: str) -> Service | None:
    """confirmed -> finding_pros for the assigned provider, dropping their leftover bid."""
    result = await db.execute(
        update(Service)
        .where(
            Service.id == service_id,
            _status_is(ServiceStatus.CONFIRMED),
            Service.assigned_provider_id == provider_id,
        )
        .values(
            status=ServiceStatus.FINDING_PROS.value,
            assigned_provider_id=None,
            agreed_price=None,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return None
    await db.execute(
        delete(ServiceFillRequest)
        .where(
            ServiceFillRequest.service_id == service_id,
            ServiceFillRequest.provider_id == provider_id,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    service = await _reload_service(db, service_id)
    change_feed.publish(bid_event("DELETE", {"service_id": service_id, "provider_id": provider_id}))
    change_feed.publish(service_event("UPDATE", _service_row(service)))
    return service


async def delete_service_if_status(
    db: AsyncSession, service_id: str, customer_id: str, allowed: Iterable[ServiceStatus],
) -> bool:
    """Remove a customer's job (and its bids) if it is still in one of ``allowed``."""
    allowed = tuple(allowed)
    labels = [s.value for s in allowed]
    if ServiceStatus.FINDING_PROS in allowed:
        labels.extend(OPEN_STATUS_LABELS)
    service = await _reload_service(db, service_id)
    if service is None or service.customer_id != customer_id:
        return False
    await db.execute(
        delete(ServiceFillRequest)
        .where(ServiceFillRequest.service_id == service_id)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        delete(Service)
        .where(
            Service.id == service_id,
            Service.customer_id == customer_id,
            func.lower(Service.status).in_(labels),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return False
    await db.commit()
    db.expunge(service)
    change_feed.publish(service_event("DELETE", {"id": service_id, "customer_id": customer_id}))
    return True


# ── ServiceFillRequest (bids) ─────────────────────────────

async def get_bid(db: AsyncSession, service_id: str, provider_id: str) -> ServiceFillRequest | None:
    result = await db.execute(
        select(ServiceFillRequest)
        .where(
            ServiceFillRequest.service_id == service_id,
            ServiceFillRequest.provider_id == provider_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def list_bids_for_service(db: AsyncSession, service_id: str) -> list[ServiceFillRequest]:
    """Bids on a job, cheapest first. Display order only."""
    result = await db.execute(
        select(ServiceFillRequest)
        .where(ServiceFillRequest.service_id == service_id)
        .order_by(ServiceFillRequest.bid_amount, ServiceFillRequest.created_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_bids_for_provider(
    db: AsyncSession, provider_id: str, service_ids: list[str],
) -> list[ServiceFillRequest]:
    if not service_ids:
        return []
    result = await db.execute(
        select(ServiceFillRequest)
        .where(
            ServiceFillRequest.provider_id == provider_id,
            ServiceFillRequest.service_id.in_(service_ids),
        )
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def count_bids_by_service(db: AsyncSession, service_ids: list[str]) -> dict[str, int]:
    if not service_ids:
        return {}
    result = await db.execute(
        select(ServiceFillRequest.service_id, func.count(ServiceFillRequest.id))
        .where(ServiceFillRequest.service_id.in_(service_ids))
        .group_by(ServiceFillRequest.service_id)
    )
    return {service_id: count for service_id, count in result.all()}


async def upsert_bid_if_open(
    db: AsyncSession,
    service_id: str,
    provider_id: str,
    bid_amount: float,
    proposed_at: datetime | None = None,
) -> ServiceFillRequest | None:
    """Insert or replace the provider's bid while the job is open.

    The guard UPDATE on the service row takes the row lock first, so an
    acceptance cannot slip in between the status check and the bid write.
    """
    guard = await db.execute(
        update(Service)
        .where(Service.id == service_id, func.lower(Service.status).in_(OPEN_STATUS_LABELS))
        .values(updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if guard.rowcount != 1:
        await db.rollback()
        return None

    bid = await get_bid(db, service_id, provider_id)
    operation = "UPDATE"
    if bid is None:
        bid = ServiceFillRequest(service_id=service_id, provider_id=provider_id, bid_amount=bid_amount)
        db.add(bid)
        operation = "INSERT"
    bid.bid_amount = bid_amount
    bid.proposed_at = proposed_at
    await db.commit()
    await db.refresh(bid)
    change_feed.publish(bid_event(operation, _bid_row(bid)))
    return bid


async def delete_bid(db: AsyncSession, service_id: str, provider_id: str) -> int:
    result = await db.execute(
        delete(ServiceFillRequest)
        .where(
            ServiceFillRequest.service_id == service_id,
            ServiceFillRequest.provider_id == provider_id,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        change_feed.publish(bid_event("DELETE", {"service_id": service_id, "provider_id": provider_id}))
    return result.rowcount
