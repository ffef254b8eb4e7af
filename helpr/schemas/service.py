from __future__ import annotations

import math
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from helpr.schemas.status import ServiceStatus, normalize_status


def _check_scheduling_type(v: str | None) -> str:
    v = (v or "asap").strip().lower()
    if v not in ("asap", "scheduled"):
        raise ValueError("scheduling_type must be 'asap' or 'scheduled'")
    return v


class ServiceCreate(BaseModel):
    service_type: str = "Moving"
    start_location: str = ""
    end_location: str = ""
    price: float | None = None
    description: str = ""
    scheduling_type: str = "asap"  # asap | scheduled
    scheduled_at: datetime | None = None
    payment_method_type: str = ""

    @field_validator("scheduling_type")
    @classmethod
    def _scheduling_type(cls, v: str) -> str:
        return _check_scheduling_type(v)


class ServiceUpdate(BaseModel):
    """Customer edit of the fields the customer owns. Unset fields are left alone."""

    service_type: str | None = None
    start_location: str | None = None
    end_location: str | None = None
    price: float | None = None
    description: str | None = None
    scheduling_type: str | None = None
    scheduled_at: datetime | None = None

    @field_validator("scheduling_type")
    @classmethod
    def _scheduling_type(cls, v: str | None) -> str | None:
        return None if v is None else _check_scheduling_type(v)


class ServiceSnapshot(BaseModel):
    """Immutable copy of a service row, as held by a client or the lifecycle engine."""

    id: str
    customer_id: str
    service_type: str = "Moving"
    status: ServiceStatus = ServiceStatus.FINDING_PROS
    assigned_provider_id: str | None = None
    start_location: str = ""
    end_location: str = ""
    price: float | None = None
    agreed_price: float | None = None
    description: str = ""
    scheduling_type: str = "asap"
    scheduled_at: datetime | None = None
    payment_method_type: str = ""
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return normalize_status(v)

    @field_validator("scheduling_type", mode="before")
    @classmethod
    def _scheduling(cls, v):
        return (v or "asap").strip().lower()


class BidPlace(BaseModel):
    bid_amount: float
    proposed_at: datetime | None = None

    @field_validator("bid_amount")
    @classmethod
    def _finite(cls, v: float) -> float:
        # Positivity is checked by place_bid so it surfaces as INVALID_AMOUNT.
        if math.isnan(v) or math.isinf(v):
            raise ValueError("bid_amount must be a finite number")
        return v


class BidSnapshot(BaseModel):
    id: str
    service_id: str
    provider_id: str
    bid_amount: float
    proposed_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}


class ServiceListing(BaseModel):
    """A service as shown in a booking list, with the number of pending bids."""

    service: ServiceSnapshot
    bid_count: int = 0
    my_bid: BidSnapshot | None = None


class PriceEstimateRequest(BaseModel):
    service_type: str = "Moving"
    description: str = Field(min_length=1)


class PriceEstimate(BaseModel):
    price: float | None = None
    needs_clarification: bool = False
    clarification_prompt: str = ""
    safety_concern: bool = False
    safety_message: str = ""
