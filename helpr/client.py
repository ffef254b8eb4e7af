"""Async HTTP client for the Helpr API, as used by the customer and provider apps."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from helpr.dependencies import ROLE_HEADER, USER_HEADER
from helpr.schemas import (
    BidSnapshot, PriceEstimate, ServiceCreate, ServiceListing, ServiceSnapshot, ServiceUpdate,
)
from helpr.services.auth import ClientContext


class HelprAPIError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message

    @property
    def is_conflict(self) -> bool:
        """Expected under concurrent use: refresh and re-render."""
        return self.status_code == 409


def _raise_for_error(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    try:
        detail = resp.json().get("detail")
    except ValueError:
        detail = resp.text
    if isinstance(detail, dict):
        raise HelprAPIError(resp.status_code, detail.get("error", "error"), detail.get("message", ""))
    raise HelprAPIError(resp.status_code, "http_error", str(detail))


class HelprClient:
    def __init__(
        self,
        base_url: str,
        context: ClientContext,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self.context = context
        self._http = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=timeout,
            headers={USER_HEADER: context.user_id, ROLE_HEADER: context.role},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "HelprClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        resp = await self._http.request(method, url, **kwargs)
        _raise_for_error(resp)
        return resp.json() if resp.content else None

    # ── Services ─────────────────────────────────────────

    async def create_service(self, body: ServiceCreate) -> ServiceSnapshot:
        data = await self._request("POST", "/api/services", json=body.model_dump(mode="json"))
        return ServiceSnapshot.model_validate(data)

    async def get_service(self, service_id: str) -> ServiceSnapshot:
        return ServiceSnapshot.model_validate(await self._request("GET", f"/api/services/{service_id}"))

    async def edit_service(self, service_id: str, body: ServiceUpdate) -> ServiceSnapshot:
        data = await self._request(
            "PUT", f"/api/services/{service_id}", json=body.model_dump(mode="json", exclude_unset=True),
        )
        return ServiceSnapshot.model_validate(data)

    async def delete_service(self, service_id: str) -> None:
        await self._request("DELETE", f"/api/services/{service_id}")

    async def list_services(self, scope: str = "mine") -> list[ServiceListing]:
        data = await self._request("GET", "/api/services", params={"scope": scope})
        return [ServiceListing.model_validate(row) for row in data]

    async def advance(self, service_id: str) -> ServiceSnapshot:
        return ServiceSnapshot.model_validate(await self._request("POST", f"/api/services/{service_id}/advance"))

    async def cancel_assignment(self, service_id: str) -> ServiceSnapshot:
        return ServiceSnapshot.model_validate(await self._request("POST", f"/api/services/{service_id}/cancel"))

    # ── Bids ─────────────────────────────────────────────

    async def list_bids(self, service_id: str) -> list[BidSnapshot]:
        data = await self._request("GET", f"/api/services/{service_id}/bids")
        return [BidSnapshot.model_validate(row) for row in data]

    async def place_bid(self, service_id: str, amount: float, proposed_at: datetime | None = None) -> BidSnapshot:
        body = {"bid_amount": amount, "proposed_at": proposed_at.isoformat() if proposed_at else None}
        return BidSnapshot.model_validate(await self._request("PUT", f"/api/services/{service_id}/bids", json=body))

    async def withdraw_bid(self, service_id: str) -> None:
        await self._request("DELETE", f"/api/services/{service_id}/bids")

    async def accept_bid(self, service_id: str, provider_id: str) -> ServiceSnapshot:
        data = await self._request("POST", f"/api/services/{service_id}/bids/{provider_id}/accept")
        return ServiceSnapshot.model_validate(data)

    # ── Estimates ────────────────────────────────────────

    async def estimate_price(self, description: str, service_type: str = "Moving") -> PriceEstimate:
        data = await self._request(
            "POST", "/api/estimates", json={"service_type": service_type, "description": description},
        )
        return PriceEstimate.model_validate(data)
