"""
Delivery Simulation Script.

Drives a running FreshBasket server end to end:
1. Health check
2. Agent marks the order Shipped and starts sharing
3. Scripted GPS walks from the store to the delivery address
4. A customer viewer polls and prints what the map would show
5. Agent delivers; sharing stops

Usage:
    python scripts/simulate_delivery.py <order id or code> <agent user id>
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx

from freshbasket.app.core.config import settings
from freshbasket.app.core.observability import configure_logging
from freshbasket.app.models.enums import OrderStatus
from freshbasket.tracking.client import FreshBasketClient
from freshbasket.tracking.dashboard import AgentDashboard
from freshbasket.tracking.errors import TrackingError
from freshbasket.tracking.geolocation import PositionFix, ScriptedGeolocation
from freshbasket.tracking.publisher import LocationPublisher, PublisherState
from freshbasket.tracking.session import MemorySessionStore
from freshbasket.tracking.viewer import TrackingViewer

BASE_URL = settings.client_base_url
STEPS = 6
STEP_SECONDS = 2.0


def print_step(step, msg):
    print(f"[{step}] {msg}")


def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)


def success(msg):
    print(f"✅ {msg}")


def walk(start, end, steps):
    """Evenly spaced fixes from start to end, inclusive."""
    return [
        PositionFix(
            latitude=start[0] + (end[0] - start[0]) * i / steps,
            longitude=start[1] + (end[1] - start[1]) * i / steps,
            accuracy_meters=15.0,
        )
        for i in range(steps + 1)
    ]


async def fetch_token(user_id: int) -> str:
    async with httpx.AsyncClient(base_url=BASE_URL, timeout=settings.client_request_timeout_seconds) as http:
        response = await http.get("/health")
        if response.status_code != 200:
            fail(f"/health returned {response.status_code}")
        success(f"Server healthy (redis {response.json().get('redis')})")

        response = await http.post(f"/{settings.api_version}/auth/token", json={"userId": user_id})
        if response.status_code != 200:
            fail(f"Could not get a token for user {user_id}: {response.text}")
        return response.json()["accessToken"]


async def main(order_ref: str, agent_id: int):
    configure_logging("INFO")
    print("🚀 Starting delivery simulation...")

    print_step("AUTH", f"Requesting token for agent {agent_id}")
    token = await fetch_token(agent_id)

    async with FreshBasketClient(BASE_URL, token=token) as agent_api, FreshBasketClient(BASE_URL) as public_api:
        snapshot = await public_api.fetch_tracking(order_ref)
        store = (snapshot.store_location.latitude, snapshot.store_location.longitude)
        if snapshot.delivery_location is None:
            fail(f"Order {order_ref} has no delivery location")
        destination = (snapshot.delivery_location.latitude, snapshot.delivery_location.longitude)

        geo = ScriptedGeolocation(fixes=[PositionFix(*store, accuracy_meters=15.0)])
        publisher = LocationPublisher(geo, agent_api, MemorySessionStore())
        dashboard = AgentDashboard(agent_api, publisher)

        async with dashboard:
            print_step("SHIP", f"Marking {order_ref} as Shipped")
            await dashboard.update_order_status(order_ref, OrderStatus.SHIPPED)

            await dashboard.start_sharing(order_ref)
            if await publisher.wait_until_settled(settings.geolocation_timeout_seconds * 2) is not PublisherState.PUBLISHING:
                fail(f"Sharing did not start: {publisher.last_error}")
            success("Location sharing started")

            async with TrackingViewer(public_api, order_ref, OrderStatus.SHIPPED, poll_interval=STEP_SECONDS) as viewer:
                for fix in walk(store, destination, STEPS)[1:]:
                    geo.push(fix)
                    await asyncio.sleep(STEP_SECONDS)
                    view = viewer.render()
                    print_step(
                        "TRACK",
                        f"state={view.state.value} agent={fix.latitude:.4f},{fix.longitude:.4f} "
                        f"remaining={view.distance_remaining_km} km",
                    )

            print_step("DELIVER", f"Marking {order_ref} as Delivered")
            await dashboard.update_order_status(order_ref, OrderStatus.DELIVERED)
            if publisher.is_active:
                fail("Publisher still active after delivery")
            success(f"Sharing stopped after delivery ({publisher.published_count} updates sent)")

    print("\n🎉 Simulation completed successfully!")


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(2)
    try:
        asyncio.run(main(sys.argv[1], int(sys.argv[2])))
    except TrackingError as e:
        fail(e.message)
