"""Job operations that persist lifecycle steps and customer edits.

Each lifecycle write runs the pure engine on the row as loaded, then stores
the result with a conditional update on that same status. If the row moved
in between, the caller gets STATUS_CHANGED and should refresh.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from helpr.db import crud
from helpr.schemas import (
    BidSnapshot, ServiceCreate, ServiceListing, ServiceSnapshot, ServiceStatus, ServiceUpdate,
)
from helpr.services import lifecycle
from helpr.services.errors import LifecycleError, Result

logger = logging.getLogger(__name__)

# Customers may withdraw a request until the Helpr is on the way.
CUSTOMER_DELETABLE = (ServiceStatus.FINDING_PROS, ServiceStatus.CONFIRMED)


async def create_service(db: AsyncSession, customer_id: str, body: ServiceCreate) -> ServiceSnapshot:
    service = await crud.create_service(db, customer_id, **body.model_dump())
    logger.info("Customer %s created service %s (%s)", customer_id, service.id, service.service_type)
    return ServiceSnapshot.model_validate(service)


async def get_service(db: AsyncSession, service_id: str) -> ServiceSnapshot | None:
    service = await crud.get_service(db, service_id)
    return ServiceSnapshot.model_validate(service) if service else None


async def edit_service(
    db: AsyncSession, service_id: str, customer_id: str, body: ServiceUpdate,
) -> ServiceSnapshot | None:
    """Apply a customer edit. Returns None if the job is gone, not theirs, or no longer open.

    Raises ValueError if the edit leaves a scheduled job without a time.
    """
    service = await crud.get_service(db, service_id)
    if service is None or service.customer_id != customer_id:
        return None
    changes = body.model_dump(exclude_unset=True)
    scheduling_type = changes.get("scheduling_type") or (service.scheduling_type or "asap").lower()
    if scheduling_type == "scheduled" and (changes.get("scheduled_at") or service.scheduled_at) is None:
        raise ValueError("scheduled_at is required for scheduled services")
    updated = await crud.update_service_if_open(db, service_id, **changes)
    return ServiceSnapshot.model_validate(updated) if updated else None


async def delete_service(db: AsyncSession, service_id: str, customer_id: str) -> bool:
    deleted = await crud.delete_service_if_status(db, service_id, customer_id, CUSTOMER_DELETABLE)
    if deleted:
        logger.info("Customer %s deleted service %s", customer_id, service_id)
    return deleted


async def advance_service(
    db: AsyncSession, service_id: str, acting_provider_id: str,
) -> Result[ServiceSnapshot, LifecycleError]:
    row = await crud.get_service(db, service_id)
    if row is None:
        return Result.failure(LifecycleError.SERVICE_NOT_FOUND)
    current = ServiceSnapshot.model_validate(row)
    step = lifecycle.advance(current, acting_provider_id)
    if not step.ok:
        return step
    stored = await crud.transition_status(
        db, service_id,
        expected=current.status,
        target=step.value.status,
        assigned_provider_id=current.assigned_provider_id,
    )
    if stored is None:
        logger.warning("Service %s changed before %s could advance it", service_id, acting_provider_id)
        return Result.failure(LifecycleError.STATUS_CHANGED)
    logger.info("Service %s advanced %s -> %s", service_id, current.status.value, step.value.status.value)
    return Result.success(ServiceSnapshot.model_validate(stored))


async def cancel_service_assignment(
    db: AsyncSession, service_id: str, acting_provider_id: str,
) -> Result[ServiceSnapshot, LifecycleError]:
    row = await crud.get_service(db, service_id)
    if row is None:
        return Result.failure(LifecycleError.SERVICE_NOT_FOUND)
    step = lifecycle.cancel_assignment(ServiceSnapshot.model_validate(row), acting_provider_id)
    if not step.ok:
        return step
    stored = await crud.reopen_service(db, service_id, acting_provider_id)
    if stored is None:
        return Result.failure(LifecycleError.STATUS_CHANGED)
    logger.info("Provider %s cancelled service %s; reopened for bids", acting_provider_id, service_id)
    return Result.success(ServiceSnapshot.model_validate(stored))


# ── Listings ──────────────────────────────────────────────

async def customer_bookings(db: AsyncSession, customer_id: str) -> list[ServiceListing]:
    """The customer's active jobs in display order, each with its pending bid count."""
    services = await crud.list_services_for_customer(db, customer_id)
    visible = sort_for_display([ServiceSnapshot.model_validate(s) for s in services])
    counts = await crud.count_bids_by_service(db, [s.id for s in visible])
    return [ServiceListing(service=s, bid_count=counts.get(s.id, 0)) for s in visible]


async def customer_history(db: AsyncSession, customer_id: str) -> list[ServiceSnapshot]:
    """The customer's completed jobs, newest first."""
    services = await crud.list_services_for_customer(db, customer_id)
    snapshots = [ServiceSnapshot.model_validate(s) for s in services]
    return [s for s in snapshots if s.status is ServiceStatus.COMPLETED]


async def provider_board(db: AsyncSession, provider_id: str) -> list[ServiceListing]:
    """Open jobs and the provider's confirmed jobs, each with the provider's own bid."""
    services = await crud.list_provider_board(db, provider_id)
    ids = [s.id for s in services]
    mine = {b.service_id: b for b in await crud.list_bids_for_provider(db, provider_id, ids)}
    counts = await crud.count_bids_by_service(db, ids)
    listings = []
    for s in services:
        bid = mine.get(s.id)
        listings.append(ServiceListing(
            service=ServiceSnapshot.model_validate(s),
            bid_count=counts.get(s.id, 0),
            my_bid=BidSnapshot.model_validate(bid) if bid else None,
        ))
    return listings


async def provider_history(db: AsyncSession, provider_id: str) -> list[ServiceSnapshot]:
    services = await crud.list_services_for_provider(db, provider_id)
    return [ServiceSnapshot.model_validate(s) for s in services]


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def sort_for_display(services: list[ServiceSnapshot]) -> list[ServiceSnapshot]:
    """Order for the bookings screen: asap first, then by scheduled time.

    Completed jobs are dropped, as are scheduled jobs with no time yet.
    ``created_at`` breaks ties.
    """
    visible = [
        s for s in services
        if s.status is not ServiceStatus.COMPLETED
        and (s.scheduling_type != "scheduled" or s.scheduled_at is not None)
    ]

    def key(s: ServiceSnapshot):
        if s.scheduling_type == "scheduled":
            return (1, _as_utc(s.scheduled_at), _as_utc(s.created_at))
        return (0, _as_utc(s.created_at), _as_utc(s.created_at))

    return sorted(visible, key=key)
