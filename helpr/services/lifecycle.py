"""Status lifecycle engine: which status may follow which, and by whom.

Lifecycle:
    finding_pros -> confirmed -> helpr_otw -> in_progress -> completed

- finding_pros -> confirmed happens only through bid acceptance.
- The assigned provider alone moves the job forward, one step at a time.
- confirmed -> finding_pros is the single backward path (provider cancels).
- completed is terminal.

Pure computation: no I/O. The store layer persists returned snapshots with
a conditional update on the status they were computed from.
"""

from __future__ import annotations

from helpr.schemas import ServiceSnapshot, ServiceStatus, ASSIGNED_STATUSES, normalize_status
from helpr.services.errors import LifecycleError, Result

_FORWARD: dict[ServiceStatus, ServiceStatus | None] = {
    ServiceStatus.FINDING_PROS: None,
    ServiceStatus.CONFIRMED: ServiceStatus.HELPR_OTW,
    ServiceStatus.HELPR_OTW: ServiceStatus.IN_PROGRESS,
    ServiceStatus.IN_PROGRESS: ServiceStatus.COMPLETED,
    ServiceStatus.COMPLETED: None,
}


def next_status(current: str | ServiceStatus | None) -> ServiceStatus | None:
    """Forward successor of ``current``; None for finding_pros, completed and unknowns."""
    return _FORWARD[normalize_status(current)]


def is_open(status: str | ServiceStatus | None) -> bool:
    return normalize_status(status) is ServiceStatus.FINDING_PROS


def satisfies_assignment_invariant(service: ServiceSnapshot) -> bool:
    """A provider is assigned iff the status is past finding_pros."""
    assigned = service.assigned_provider_id is not None
    return assigned == (service.status in ASSIGNED_STATUSES)


def advance(service: ServiceSnapshot, acting_provider_id: str) -> Result[ServiceSnapshot, LifecycleError]:
    if service.assigned_provider_id is None or acting_provider_id != service.assigned_provider_id:
        return Result.failure(LifecycleError.NOT_ASSIGNED_PROVIDER)
    target = next_status(service.status)
    if target is None:
        return Result.failure(LifecycleError.TERMINAL_STATE)
    return Result.success(service.model_copy(update={"status": target}))


def cancel_assignment(service: ServiceSnapshot, acting_provider_id: str) -> Result[ServiceSnapshot, LifecycleError]:
    """Unassign the provider and reopen the job for bids.

    Only legal from confirmed. The caller must also delete the cancelling
    provider's own bid row, which can survive from before acceptance.
    """
    if service.status is not ServiceStatus.CONFIRMED:
        return Result.failure(LifecycleError.INVALID_CANCELLATION)
    if acting_provider_id != service.assigned_provider_id:
        return Result.failure(LifecycleError.NOT_ASSIGNED_PROVIDER)
    return Result.success(service.model_copy(update={
        "status": ServiceStatus.FINDING_PROS,
        "assigned_provider_id": None,
    }))
