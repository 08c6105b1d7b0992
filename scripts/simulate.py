"""
Rush Hour Simulation Script

Registers a vendor, stocks a menu, then fires concurrent table orders
and walks them through the kitchen to exercise totals and the status
machine under load.
Run from project root: python scripts/simulate.py

Version: 1.0.0
"""

import argparse
import asyncio
import random
import sys
import time
import uuid
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8000"
API_PREFIX = "/api"
TOTAL_ORDERS = 50

MENU_ITEMS = [
    {"name": "Pizza Margherita", "price": 14.99, "category": "Mains", "preparationTime": 15},
    {"name": "Pepperoni Pizza", "price": 16.99, "category": "Mains", "preparationTime": 15},
    {"name": "Caesar Salad", "price": 8.99, "category": "Starters", "preparationTime": 5},
    {"name": "Garlic Bread", "price": 5.99, "category": "Starters", "preparationTime": 5},
    {"name": "Pasta Carbonara", "price": 13.99, "category": "Mains", "preparationTime": 20},
    {"name": "Tiramisu", "price": 7.99, "category": "Desserts", "preparationTime": 3},
    {"name": "Sparkling Water", "price": 3.49, "category": "Drinks", "preparationTime": 1},
]


def api(path: str) -> str:
    return f"{API_BASE_URL}{API_PREFIX}{path}"


# =============================================================================
# SETUP
# =============================================================================

async def register_vendor(client: httpx.AsyncClient) -> tuple[str, str]:
    """Create a throwaway vendor; returns (vendor id, bearer token)."""
    suffix = uuid.uuid4().hex[:8]
    response = await client.post(api("/auth/vendor/register"), json={
        "name": f"Rush Hour Bistro {suffix}",
        "email": f"bistro-{suffix}@example.com",
        "password": "simulation-pass",
        "address": "1 Main St",
        "city": "New York",
        "cuisine": "Italian",
    })
    response.raise_for_status()
    data = response.json()["data"]
    return data["account"]["id"], data["token"]


async def stock_menu(client: httpx.AsyncClient, token: str) -> list[dict[str, Any]]:
    headers = {"Authorization": f"Bearer {token}"}
    await client.put(
        api("/vendors/me/billing-settings"),
        json={"taxRate": 8.875, "serviceChargeRate": 10},
        headers=headers,
    )
    items = []
    for item in MENU_ITEMS:
        response = await client.post(api("/menu"), json=item, headers=headers)
        response.raise_for_status()
        items.append(response.json()["data"])
    return items


# =============================================================================
# ORDERS
# =============================================================================

def generate_order_payload(menu: list[dict[str, Any]]) -> dict[str, Any]:
    picks = random.sample(menu, k=random.randint(1, 4))
    payload: dict[str, Any] = {
        "tableNumber": str(random.randint(1, 30)),
        "items": [
            {"menuItemId": item["id"], "quantity": random.randint(1, 3)}
            for item in picks
        ],
        "paymentMethod": random.choice(["cash", "card", "mobile"]),
        "specialRequests": random.choice([None, "No onions", "Extra napkins", "Birthday"]),
    }
    if random.random() < 0.5:
        payload["tipPercentage"] = random.choice([10, 15, 18, 20])
    return payload


async def place_order(
    client: httpx.AsyncClient,
    menu: list[dict[str, Any]],
    order_num: int,
) -> dict[str, Any]:
    start_time = time.time()
    try:
        response = await client.post(api("/orders"), json=generate_order_payload(menu), timeout=30.0)
        elapsed = round(time.time() - start_time, 3)
        if response.status_code == 201:
            data = response.json()["data"]
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data["id"],
                "total": data["totalAmount"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def run_kitchen(client: httpx.AsyncClient, token: str, order_id: str) -> str:
    """Move one order to a random end state; returns the final status."""
    headers = {"Authorization": f"Bearer {token}"}
    path = random.choice([
        ["preparing", "ready", "served"],
        ["preparing", "ready"],
        ["preparing", "cancelled"],
        ["served"],
    ])
    final = "pending"
    for step in path:
        response = await client.patch(
            api(f"/orders/{order_id}/status"), json={"status": step}, headers=headers
        )
        if response.status_code != 200:
            return f"error: {response.text[:60]}"
        final = response.json()["data"]["status"]
    return final


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 RUSH HOUR SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}{API_PREFIX}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        health = await client.get(f"{API_BASE_URL}/health")
        print(f"\n🩺 Health: {health.json().get('status')}")

        vendor_id, token = await register_vendor(client)
        menu = await stock_menu(client, token)
        print(f"🏪 Vendor {vendor_id} with {len(menu)} menu items")

        start_time = time.time()
        print("\n🚀 Firing table orders...\n")
        results = await asyncio.gather(*[
            place_order(client, menu, i + 1) for i in range(num_orders)
        ])
        placed_time = round(time.time() - start_time, 2)

        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        print("👨‍🍳 Running the kitchen...\n")
        finals = await asyncio.gather(*[
            run_kitchen(client, token, r["order_id"]) for r in successful
        ])

        paid = 0
        response = await client.get(
            api("/orders"),
            params={"status": "served", "limit": 200},
            headers={"Authorization": f"Bearer {token}"},
        )
        if response.status_code == 200:
            paid = sum(
                1 for o in response.json()["data"]["orders"] if o["paymentStatus"] == "paid"
            )

    print("=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Placement Time: {placed_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r["total"] for r in successful)
        print(f"\n📈 Average Response: {avg_time}s")
        print(f"   💰 Gross Revenue: ${total_revenue:.2f}")

    counts: dict[str, int] = {}
    for final in finals:
        counts[final] = counts.get(final, 0) + 1
    print("\n🍽️  Final statuses:")
    for status, count in sorted(counts.items()):
        print(f"   {status}: {count}")
    print(f"   served and paid: {paid}")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "statuses": counts,
    }


def main():
    global API_BASE_URL

    parser = argparse.ArgumentParser(description="TableHub rush hour simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")
    asyncio.run(run_simulation(args.orders))


if __name__ == "__main__":
    main()
