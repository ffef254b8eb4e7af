"""Bid matching: providers place and withdraw bids, one acceptance closes bidding.

There is no ranking rule. Acceptance names exactly one (service, provider)
pair; whoever triggers it (a customer picking a Helpr) is outside this module.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from helpr.db import crud
from helpr.schemas import BidSnapshot, ServiceSnapshot
from helpr.services.errors import BidError, Result
from helpr.services.lifecycle import is_open

logger = logging.getLogger(__name__)


def _valid_amount(amount) -> bool:
    if isinstance(amount, bool):
        return False
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0


async def place_bid(
    db: AsyncSession,
    service_id: str,
    provider_id: str,
    amount,
    proposed_at: datetime | None = None,
) -> Result[BidSnapshot, BidError]:
    """Create or replace this provider's bid on an open job."""
    service = await crud.get_service(db, service_id)
    if service is None or not is_open(service.status):
        return Result.failure(BidError.SERVICE_NOT_OPEN)
    if not _valid_amount(amount):
        return Result.failure(BidError.INVALID_AMOUNT)

    bid = await crud.upsert_bid_if_open(db, service_id, provider_id, float(amount), proposed_at)
    if bid is None:
        logger.info("Bid by %s on %s lost to a concurrent status change", provider_id, service_id)
        return Result.failure(BidError.SERVICE_NOT_OPEN)
    return Result.success(BidSnapshot.model_validate(bid))


async def withdraw_bid(db: AsyncSession, service_id: str, provider_id: str) -> Result[None, BidError]:
    """Delete the provider's bid. Withdrawing a bid that is already gone succeeds."""
    removed = await crud.delete_bid(db, service_id, provider_id)
    if not removed:
        logger.debug("No bid by %s on %s to withdraw", provider_id, service_id)
    return Result.success(None)


async def accept_bid(db: AsyncSession, service_id: str, provider_id: str) -> Result[ServiceSnapshot, BidError]:
    """Assign the job to ``provider_id`` at their bid and delete every bid on it."""
    service = await crud.get_service(db, service_id)
    if service is None or not is_open(service.status):
        return Result.failure(BidError.SERVICE_NOT_OPEN)
    bid = await crud.get_bid(db, service_id, provider_id)
    if bid is None:
        return Result.failure(BidError.BID_NOT_FOUND)

    updated = await crud.confirm_assignment(
        db, service_id, provider_id,
        agreed_price=bid.bid_amount,
        scheduled_at=bid.proposed_at,
    )
    if updated is None:
        logger.info("Acceptance of %s on %s lost the race", provider_id, service_id)
        current = await crud.get_service(db, service_id)
        if current is not None and is_open(current.status):
            return Result.failure(BidError.BID_NOT_FOUND)
        return Result.failure(BidError.SERVICE_NOT_OPEN)
    logger.info("Service %s confirmed to provider %s", service_id, provider_id)
    return Result.success(ServiceSnapshot.model_validate(updated))


async def list_bids(db: AsyncSession, service_id: str) -> list[BidSnapshot]:
    return [BidSnapshot.model_validate(b) for b in await crud.list_bids_for_service(db, service_id)]
