"""Service status values and boundary normalisation."""

from __future__ import annotations

from enum import Enum


class ServiceStatus(str, Enum):
    FINDING_PROS = "finding_pros"
    CONFIRMED = "confirmed"
    HELPR_OTW = "helpr_otw"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


ASSIGNED_STATUSES = frozenset({
    ServiceStatus.CONFIRMED,
    ServiceStatus.HELPR_OTW,
    ServiceStatus.IN_PROGRESS,
    ServiceStatus.COMPLETED,
})


def normalize_status(value: str | ServiceStatus | None) -> ServiceStatus:
    """Map a raw status string onto ServiceStatus.

    Rows written by older clients carry mixed casing ("Confirmed") and
    legacy open labels ("pending", "scheduled"). Anything unrecognised,
    including null, reads as finding_pros, the least-privileged state.
    """
    if isinstance(value, ServiceStatus):
        return value
    normalized = (value or "").strip().lower()
    try:
        return ServiceStatus(normalized)
    except ValueError:
        return ServiceStatus.FINDING_PROS
