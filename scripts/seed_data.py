"""Seed the database with demo moving jobs and a few provider bids."""

import asyncio

from helpr.db.engine import async_session_factory, create_schema, engine
from helpr.db import crud
from helpr.schemas import ServiceCreate
from helpr.services import bidding, jobs

DEMO_CUSTOMER = "demo-customer"
DEMO_PROVIDERS = ["demo-helpr-1", "demo-helpr-2"]


async def seed():
    await create_schema()

    async with async_session_factory() as db:
        existing = await crud.list_services_for_customer(db, DEMO_CUSTOMER)
        if existing:
            print("Demo jobs already exist, skipping seed.")
            return

        couch = await jobs.create_service(db, DEMO_CUSTOMER, ServiceCreate(
            service_type="Moving",
            start_location="123 Main St, Springfield",
            end_location="456 Oak Ave, Springfield",
            price=85.0,
            description="Move a three-seat couch and two armchairs, second floor, no elevator.",
        ))
        print(f"Created service: {couch.service_type} (id: {couch.id})")

        boxes = await jobs.create_service(db, DEMO_CUSTOMER, ServiceCreate(
            service_type="Moving",
            start_location="78 Elm St, Springfield",
            end_location="9 Birch Rd, Shelbyville",
            price=120.0,
            description="Twenty boxes and a bed frame.",
        ))
        print(f"Created service: {boxes.service_type} (id: {boxes.id})")

        for provider, amount in zip(DEMO_PROVIDERS, (80.0, 70.0)):
            result = await bidding.place_bid(db, couch.id, provider, amount)
            print(f"  {provider} bid ${result.value.bid_amount:.2f} on {couch.id}")

    await engine.dispose()
    print("\nSeed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
