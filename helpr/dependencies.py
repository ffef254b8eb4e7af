"""FastAPI dependency providers for the acting user and role enforcement."""

from __future__ import annotations

from enum import Enum

from fastapi import Depends, Header, HTTPException

from helpr.services.auth import ROLES, ClientContext

USER_HEADER = "X-Helpr-User"
ROLE_HEADER = "X-Helpr-Role"


async def require_context(
    user_id: str = Header(default="", alias=USER_HEADER),
    role: str = Header(default="", alias=ROLE_HEADER),
) -> ClientContext:
    """Build the ClientContext from request headers. Sign-in itself happens upstream."""
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    role = role.strip().lower()
    if role not in ROLES:
        raise HTTPException(400, f"{ROLE_HEADER} must be one of: {', '.join(ROLES)}")
    return ClientContext(user_id=user_id, role=role)


def require_role(*allowed_roles: str):
    """Factory: returns a dependency that enforces role membership."""
    async def _check(ctx: ClientContext = Depends(require_context)) -> ClientContext:
        if ctx.role not in allowed_roles:
            raise HTTPException(403, "Insufficient permissions")
        return ctx
    return _check


def domain_conflict(error: Enum) -> HTTPException:
    """409 carrying the error code and its user-facing message."""
    return HTTPException(409, detail={"error": error.value, "message": error.message})
