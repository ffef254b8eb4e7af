"""Service API: create, edit, delete, list, and move jobs through their lifecycle."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from helpr.db.engine import get_db
from helpr.dependencies import domain_conflict, require_context, require_role
from helpr.schemas import ServiceCreate, ServiceListing, ServiceSnapshot, ServiceUpdate
from helpr.services import jobs
from helpr.services.auth import ClientContext
from helpr.services.errors import LifecycleError

router = APIRouter(prefix="/api/services", tags=["services"])


@router.post("", response_model=ServiceSnapshot, status_code=201)
async def create_service(
    body: ServiceCreate,
    ctx: ClientContext = Depends(require_role("customer")),
    db: AsyncSession = Depends(get_db),
):
    if body.scheduling_type == "scheduled" and body.scheduled_at is None:
        raise HTTPException(400, "scheduled_at is required for scheduled services")
    return await jobs.create_service(db, ctx.user_id, body)


@router.get("", response_model=list[ServiceListing])
async def list_services(
    scope: str = Query(default="mine"),
    ctx: ClientContext = Depends(require_context),
    db: AsyncSession = Depends(get_db),
):
    """``mine``: the caller's active bookings (customer) or job board (provider).
    ``history``: the customer's completed jobs, or every job assigned to the provider."""
    if scope == "mine":
        if ctx.is_customer:
            return await jobs.customer_bookings(db, ctx.user_id)
        return await jobs.provider_board(db, ctx.user_id)
    if scope == "history":
        if ctx.is_customer:
            past = await jobs.customer_history(db, ctx.user_id)
        else:
            past = await jobs.provider_history(db, ctx.user_id)
        return [ServiceListing(service=s) for s in past]
    raise HTTPException(400, "scope must be 'mine' or 'history'")


@router.get("/{service_id}", response_model=ServiceSnapshot)
async def get_service(
    service_id: str,
    ctx: ClientContext = Depends(require_context),
    db: AsyncSession = Depends(get_db),
):
    service = await jobs.get_service(db, service_id)
    if not service:
        raise HTTPException(404, "Service not found")
    return service


@router.put("/{service_id}", response_model=ServiceSnapshot)
async def edit_service(
    service_id: str,
    body: ServiceUpdate,
    ctx: ClientContext = Depends(require_role("customer")),
    db: AsyncSession = Depends(get_db),
):
    existing = await jobs.get_service(db, service_id)
    if not existing or existing.customer_id != ctx.user_id:
        raise HTTPException(404, "Service not found")
    try:
        updated = await jobs.edit_service(db, service_id, ctx.user_id, body)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if updated is None:
        raise HTTPException(409, "Only services still finding pros can be edited")
    return updated


@router.delete("/{service_id}", status_code=204)
async def delete_service(
    service_id: str,
    ctx: ClientContext = Depends(require_role("customer")),
    db: AsyncSession = Depends(get_db),
):
    existing = await jobs.get_service(db, service_id)
    if not existing or existing.customer_id != ctx.user_id:
        raise HTTPException(404, "Service not found")
    if not await jobs.delete_service(db, service_id, ctx.user_id):
        raise HTTPException(409, "This service can no longer be cancelled")


@router.post("/{service_id}/advance", response_model=ServiceSnapshot)
async def advance_service(
    service_id: str,
    ctx: ClientContext = Depends(require_role("provider")),
    db: AsyncSession = Depends(get_db),
):
    result = await jobs.advance_service(db, service_id, ctx.user_id)
    if result.error is LifecycleError.SERVICE_NOT_FOUND:
        raise HTTPException(404, "Service not found")
    if not result.ok:
        raise domain_conflict(result.error)
    return result.value


@router.post("/{service_id}/cancel", response_model=ServiceSnapshot)
async def cancel_assignment(
    service_id: str,
    ctx: ClientContext = Depends(require_role("provider")),
    db: AsyncSession = Depends(get_db),
):
    result = await jobs.cancel_service_assignment(db, service_id, ctx.user_id)
    if result.error is LifecycleError.SERVICE_NOT_FOUND:
        raise HTTPException(404, "Service not found")
    if not result.ok:
        raise domain_conflict(result.error)
    return result.value
