"""Pydantic request/response schemas."""

from helpr.schemas.status import ServiceStatus, ASSIGNED_STATUSES, normalize_status
from helpr.schemas.service import (
    ServiceCreate, ServiceUpdate, ServiceSnapshot, ServiceListing,
    BidPlace, BidSnapshot, PriceEstimateRequest, PriceEstimate,
)
from helpr.schemas.ws_messages import ChangeEvent

__all__ = [
    "ServiceStatus", "ASSIGNED_STATUSES", "normalize_status",
    "ServiceCreate", "ServiceUpdate", "ServiceSnapshot", "ServiceListing",
    "BidPlace", "BidSnapshot",
    "PriceEstimateRequest", "PriceEstimate",
    "ChangeEvent",
]
