"""Simulate a complete job end to end against the local store.

A customer posts a job, two providers bid, the customer accepts one, and the
winning provider walks the job to completed. A SyncedView on the customer side
prints every status it observes, driven by the change feed with a slow poll
as fallback.

Usage:
    python scripts/simulate_job.py
"""

import asyncio
import logging

from helpr.db.engine import async_session_factory, create_schema, engine
from helpr.schemas import ServiceCreate
from helpr.services import bidding, jobs
from helpr.services.change_feed import change_feed
from helpr.services.sync import SyncedView

CUSTOMER = "sim-customer"
PROVIDERS = ("sim-helpr-a", "sim-helpr-b")


async def simulate():
    await create_schema()

    async with async_session_factory() as db:
        service = await jobs.create_service(db, CUSTOMER, ServiceCreate(
            start_location="1 River Rd",
            end_location="22 Hill St",
            price=60.0,
            description="Dresser and mattress, ground floor.",
        ))
        print(f"Posted {service.id} ({service.status.value})")

    async def fetch():
        async with async_session_factory() as view_db:
            return await jobs.get_service(view_db, service.id)

    def on_change(snapshot):
        print(f"  customer sees: {snapshot.status.value:<13} helpr={snapshot.assigned_provider_id or '-'}")

    view = SyncedView(
        fetch,
        interval=2.0,
        feed=change_feed,
        predicate=lambda row: row.get("id") == service.id,
        on_change=on_change,
        name="customer-booking",
    )

    async with view:
        async with async_session_factory() as db:
            for provider, amount in zip(PROVIDERS, (55.0, 48.0)):
                placed = await bidding.place_bid(db, service.id, provider, amount)
                print(f"{provider} bids ${placed.value.bid_amount:.2f}")

            accepted = await bidding.accept_bid(db, service.id, PROVIDERS[1])
            print(f"Customer accepts {PROVIDERS[1]}: {accepted.value.status.value}")
            await change_feed.drain()

            while True:
                step = await jobs.advance_service(db, service.id, PROVIDERS[1])
                if not step.ok:
                    print(f"Advance stopped: {step.error.message}")
                    break
                await change_feed.drain()

    await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(simulate())
