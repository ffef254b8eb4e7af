"""Bid API: providers place/withdraw bids, customers list them and accept one."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from helpr.db.engine import get_db
from helpr.dependencies import domain_conflict, require_context, require_role
from helpr.schemas import BidPlace, BidSnapshot, ServiceSnapshot
from helpr.services import bidding, jobs
from helpr.services.auth import ClientContext
from helpr.services.errors import BidError

router = APIRouter(prefix="/api/services/{service_id}/bids", tags=["bids"])


@router.get("", response_model=list[BidSnapshot])
async def list_bids(
    service_id: str,
    ctx: ClientContext = Depends(require_context),
    db: AsyncSession = Depends(get_db),
):
    service = await jobs.get_service(db, service_id)
    if not service:
        raise HTTPException(404, "Service not found")
    bids = await bidding.list_bids(db, service_id)
    if ctx.is_provider:
        return [b for b in bids if b.provider_id == ctx.user_id]
    if service.customer_id != ctx.user_id:
        raise HTTPException(404, "Service not found")
    return bids


@router.put("", response_model=BidSnapshot)
async def place_bid(
    service_id: str,
    body: BidPlace,
    ctx: ClientContext = Depends(require_role("provider")),
    db: AsyncSession = Depends(get_db),
):
    result = await bidding.place_bid(db, service_id, ctx.user_id, body.bid_amount, body.proposed_at)
    if result.error is BidError.INVALID_AMOUNT:
        raise HTTPException(422, detail={"error": result.error.value, "message": result.error.message})
    if not result.ok:
        raise domain_conflict(result.error)
    return result.value


@router.delete("", status_code=204)
async def withdraw_bid(
    service_id: str,
    ctx: ClientContext = Depends(require_role("provider")),
    db: AsyncSession = Depends(get_db),
):
    await bidding.withdraw_bid(db, service_id, ctx.user_id)


@router.post("/{provider_id}/accept", response_model=ServiceSnapshot)
async def accept_bid(
    service_id: str,
    provider_id: str,
    ctx: ClientContext = Depends(require_role("customer")),
    db: AsyncSession = Depends(get_db),
):
    service = await jobs.get_service(db, service_id)
    if not service or service.customer_id != ctx.user_id:
        raise HTTPException(404, "Service not found")
    result = await bidding.accept_bid(db, service_id, provider_id)
    if not result.ok:
        raise domain_conflict(result.error)
    return result.value
