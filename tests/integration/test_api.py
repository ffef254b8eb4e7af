"""Integration tests for the HTTP API, driven through HelprClient."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from helpr.api.estimates import get_llm
from helpr.client import HelprAPIError, HelprClient
from helpr.db.engine import get_db
from helpr.main import app
from helpr.models import Base
from helpr.schemas import ServiceCreate, ServiceStatus, ServiceUpdate
from helpr.services.auth import ClientContext
from helpr.services.llm_provider import LLMProvider


class FakeLLM(LLMProvider):
    async def chat(self, prompt: str, system: str = "") -> str:
        if "piano" in prompt.lower():
            return '{"needs_clarification": true, "clarification_prompt": "Which floor is the piano on?"}'
        return '{"price": 75}'


@pytest_asyncio.fixture
async def api(tmp_path):
    """Yields a factory that builds a HelprClient for a given user and role."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    test_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with test_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm] = lambda: FakeLLM()

    clients: list[HelprClient] = []

    def make(user_id: str, role: str) -> HelprClient:
        client = HelprClient(
            "http://test", ClientContext(user_id=user_id, role=role), transport=ASGITransport(app=app),
        )
        clients.append(client)
        return client

    yield make

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()
    await test_engine.dispose()


@pytest.mark.asyncio
async def test_full_job_flow(api):
    customer = api("cust-1", "customer")
    p1 = api("P1", "provider")
    p2 = api("P2", "provider")

    svc = await customer.create_service(ServiceCreate(start_location="12 Oak St", description="Couch"))
    assert svc.status is ServiceStatus.FINDING_PROS

    await p1.place_bid(svc.id, 40)
    await p2.place_bid(svc.id, 35)
    bids = await customer.list_bids(svc.id)
    assert [b.provider_id for b in bids] == ["P2", "P1"]

    confirmed = await customer.accept_bid(svc.id, "P1")
    assert confirmed.status is ServiceStatus.CONFIRMED
    assert confirmed.assigned_provider_id == "P1"
    assert confirmed.agreed_price == 40
    assert await customer.list_bids(svc.id) == []

    with pytest.raises(HelprAPIError) as exc:
        await p2.place_bid(svc.id, 30)
    assert exc.value.is_conflict
    assert exc.value.code == "service_not_open"

    seen = []
    for _ in range(3):
        seen.append((await p1.advance(svc.id)).status)
    assert seen == [ServiceStatus.HELPR_OTW, ServiceStatus.IN_PROGRESS, ServiceStatus.COMPLETED]

    with pytest.raises(HelprAPIError) as exc:
        await p1.advance(svc.id)
    assert exc.value.code == "terminal_state"

    history = await p1.list_services(scope="history")
    assert [item.service.id for item in history] == [svc.id]

    assert await customer.list_services() == []
    past = await customer.list_services(scope="history")
    assert [item.service.status for item in past] == [ServiceStatus.COMPLETED]


@pytest.mark.asyncio
async def test_wrong_provider_cannot_advance(api):
    customer = api("cust-1", "customer")
    p1 = api("P1", "provider")
    p2 = api("P2", "provider")
    svc = await customer.create_service(ServiceCreate(description="Boxes"))
    await p1.place_bid(svc.id, 50)
    await customer.accept_bid(svc.id, "P1")

    with pytest.raises(HelprAPIError) as exc:
        await p2.advance(svc.id)
    assert exc.value.status_code == 409
    assert exc.value.code == "not_assigned_provider"
    assert (await customer.get_service(svc.id)).status is ServiceStatus.CONFIRMED


@pytest.mark.asyncio
async def test_accepting_withdrawn_bid_conflicts(api):
    customer = api("cust-1", "customer")
    p1 = api("P1", "provider")
    svc = await customer.create_service(ServiceCreate(description="Desk"))
    await p1.place_bid(svc.id, 25)
    await p1.withdraw_bid(svc.id)
    await p1.withdraw_bid(svc.id)

    with pytest.raises(HelprAPIError) as exc:
        await customer.accept_bid(svc.id, "P1")
    assert exc.value.code == "bid_not_found"


@pytest.mark.asyncio
async def test_invalid_bid_amount_is_422(api):
    customer = api("cust-1", "customer")
    p1 = api("P1", "provider")
    svc = await customer.create_service(ServiceCreate(description="Lamp"))

    with pytest.raises(HelprAPIError) as exc:
        await p1.place_bid(svc.id, 0)
    assert exc.value.status_code == 422
    assert exc.value.code == "invalid_amount"


@pytest.mark.asyncio
async def test_provider_cancel_reopens_job(api):
    customer = api("cust-1", "customer")
    p1 = api("P1", "provider")
    svc = await customer.create_service(ServiceCreate(description="Bed frame"))
    await p1.place_bid(svc.id, 60)
    await customer.accept_bid(svc.id, "P1")

    reopened = await p1.cancel_assignment(svc.id)
    assert reopened.status is ServiceStatus.FINDING_PROS
    assert reopened.assigned_provider_id is None

    board = await p1.list_services()
    assert svc.id in [item.service.id for item in board]


@pytest.mark.asyncio
async def test_customer_edit_and_delete(api):
    customer = api("cust-1", "customer")
    other = api("cust-2", "customer")
    svc = await customer.create_service(ServiceCreate(description="Old"))

    edited = await customer.edit_service(svc.id, ServiceUpdate(description="New"))
    assert edited.description == "New"

    with pytest.raises(HelprAPIError) as exc:
        await other.edit_service(svc.id, ServiceUpdate(description="Hijack"))
    assert exc.value.status_code == 404

    bookings = await customer.list_services()
    assert [item.service.id for item in bookings] == [svc.id]

    await customer.delete_service(svc.id)
    with pytest.raises(HelprAPIError) as exc:
        await customer.get_service(svc.id)
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_edit_after_confirmation_conflicts(api):
    customer = api("cust-1", "customer")
    p1 = api("P1", "provider")
    svc = await customer.create_service(ServiceCreate(description="Chairs"))
    await p1.place_bid(svc.id, 20)
    await customer.accept_bid(svc.id, "P1")

    with pytest.raises(HelprAPIError) as exc:
        await customer.edit_service(svc.id, ServiceUpdate(description="More chairs"))
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_scheduled_service_requires_time(api):
    customer = api("cust-1", "customer")
    with pytest.raises(HelprAPIError) as exc:
        await customer.create_service(ServiceCreate(scheduling_type="scheduled"))
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_role_enforcement(api):
    customer = api("cust-1", "customer")
    p1 = api("P1", "provider")
    svc = await customer.create_service(ServiceCreate(description="TV"))

    with pytest.raises(HelprAPIError) as exc:
        await customer.place_bid(svc.id, 10)
    assert exc.value.status_code == 403

    with pytest.raises(HelprAPIError) as exc:
        await p1.accept_bid(svc.id, "P1")
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_missing_user_header_is_401(api):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        r = await ac.get("/api/services")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_price_estimate(api):
    customer = api("cust-1", "customer")
    est = await customer.estimate_price("Move a sofa two blocks")
    assert est.price == 75

    est = await customer.estimate_price("Move my piano")
    assert est.price is None
    assert est.needs_clarification


@pytest.mark.asyncio
async def test_health():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        r = await ac.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_edit_to_scheduled_without_time_is_400(api):
    customer = api("cust-1", "customer")
    svc = await customer.create_service(ServiceCreate(description="Wardrobe"))

    with pytest.raises(HelprAPIError) as exc:
        await customer.edit_service(svc.id, ServiceUpdate(scheduling_type="scheduled"))
    assert exc.value.status_code == 400
    assert (await customer.get_service(svc.id)).scheduling_type == "asap"
