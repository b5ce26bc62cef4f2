"""
Concurrency Simulation Script

Fires a burst of concurrent orders and catering requests at a running API.
A small pool of shared identities forces customer lookups to race, and a
limited-use discount code forces redemptions to race.

Run from project root: python scripts/simulate.py

Expected outcome:
    - every submission is either committed (201) or cleanly rejected (400)
    - the promo code is never redeemed more than ``--code-uses`` times
"""

import asyncio
import sys
import random
import time
import argparse
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_SUBMISSIONS = 50

IDENTITIES = [
    {"customer_name": "Jane Smith", "customer_email": "jane@example.com", "customer_phone": "407-555-0101"},
    {"customer_name": "Mike Brown", "customer_email": "mike@example.com", "customer_phone": "407-555-0102"},
    {"customer_name": "Emma Davis", "customer_email": None, "customer_phone": "407-555-0103"},
    {"customer_name": "Tom Wilson", "customer_email": "tom@example.com", "customer_phone": None},
]
STREETS = ["N Orange Ave", "E Colonial Dr", "Park Ave", "Mills Ave", "Corrine Dr"]
MENU_ITEMS = [
    {"item_name": "Pad Thai", "category": "Noodles", "price": "14.99"},
    {"item_name": "Khao Soi", "category": "Curry", "price": "16.99"},
    {"item_name": "Sai Ua Sausage", "category": "Appetizers", "price": "12.00"},
    {"item_name": "Moo Ping", "category": "Appetizers", "price": "11.00"},
    {"item_name": "Thai Iced Tea", "category": "Drinks", "price": "4.50"},
]


def random_items() -> list[dict]:
    items = []
    for _ in range(random.randint(1, 3)):
        item = dict(random.choice(MENU_ITEMS))
        item["quantity"] = random.randint(1, 3)
        items.append(item)
    return items


def delivery_date() -> str:
    day = datetime.now() + timedelta(days=random.randint(1, 14))
    return day.strftime("%m/%d/%Y (%A)")


# =============================================================================
# PAYLOADS
# =============================================================================

def order_payload(promo_code: str) -> dict[str, Any]:
    items = random_items()
    subtotal = sum(float(i["price"]) * i["quantity"] for i in items)
    return {
        **random.choice(IDENTITIES),
        "consent_to_updates": random.choice([True, False, None]),
        "delivery_address": f"{random.randint(100, 999)} {random.choice(STREETS)}",
        "delivery_date": delivery_date(),
        "order_total": f"{subtotal:.2f}",
        "tip_amount": random.choice(["0", "3.00", "5.00"]),
        "sales_tax": f"{subtotal * 0.065:.2f}",
        "discount_code": promo_code if random.random() < 0.5 else None,
        "items": items,
    }


def catering_payload() -> dict[str, Any]:
    cart = [
        {**dict(random.choice(MENU_ITEMS)), "quantity": 1, "selected_size": random.choice(["Half", "Full"])}
        for _ in range(random.randint(1, 3))
    ]
    return {
        **random.choice(IDENTITIES),
        "street_address": f"{random.randint(100, 999)} {random.choice(STREETS)}",
        "requested_date": delivery_date(),
        "event_details": random.choice(["Birthday", "Office lunch", "Wedding rehearsal"]),
        "cart_items": cart,
        "total_price": f"{sum(float(i['price']) for i in cart) * 8:.2f}",
    }


# =============================================================================
# SENDERS
# =============================================================================

async def submit(
    client: httpx.AsyncClient,
    path: str,
    payload: dict[str, Any],
    num: int,
) -> dict[str, Any]:
    start_time = time.time()
    try:
        response = await client.post(f"{API_BASE_URL}{path}", json=payload, timeout=30.0)
    except httpx.HTTPError as e:
        return {"num": num, "path": path, "status": "transport_error", "error": str(e)[:100],
                "time": round(time.time() - start_time, 3)}

    is_json = response.headers.get("content-type", "").startswith("application/json")
    body = response.json() if is_json else {}
    return {
        "num": num,
        "path": path,
        "status": response.status_code,
        "reason": body.get("reason"),
        "discount_code": body.get("discount_code"),
        "time": round(time.time() - start_time, 3),
    }


async def create_promo_code(client: httpx.AsyncClient, code: str, uses: int) -> bool:
    response = await client.post(
        f"{API_BASE_URL}/api/discount-codes",
        json={
            "code": code,
            "discount_type": "percentage",
            "discount_value": "10",
            "max_uses": uses,
            "description": "Simulation promo",
            "expires_at": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
        },
    )
    if response.status_code != 201:
        print(f"   ❌ Could not create {code}: {response.text[:100]}")
        return False
    return True


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    mode: str = "both",
    num_submissions: int = TOTAL_SUBMISSIONS,
    code_uses: int = 5,
) -> dict[str, Any]:
    """
    Run the simulation.

    Args:
        mode: "orders", "catering", or "both"
        num_submissions: Number of concurrent submissions
        code_uses: max_uses of the shared promo code
    """
    promo_code = f"SIM{random.randint(1000, 9999)}"

    print("=" * 70)
    print("CONCURRENCY SIMULATION")
    print("=" * 70)
    print(f"Submissions: {num_submissions}")
    print(f"Target: {API_BASE_URL}")
    print(f"Mode: {mode}")
    print(f"Promo code: {promo_code} (max {code_uses} uses)")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        if not await create_promo_code(client, promo_code, code_uses):
            return {}

        jobs = []
        for i in range(num_submissions):
            if mode == "orders" or (mode == "both" and i % 4 != 3):
                jobs.append(submit(client, "/api/orders", order_payload(promo_code), i + 1))
            else:
                jobs.append(submit(client, "/api/catering-requests", catering_payload(), i + 1))
        results = await asyncio.gather(*jobs)

        code = await client.get(f"{API_BASE_URL}/api/discount-codes/{promo_code}")
        final_uses = code.json().get("current_uses") if code.status_code == 200 else None

    total_time = round(time.time() - start_time, 2)

    statuses = Counter(r["status"] for r in results)
    reasons = Counter(r["reason"] for r in results if r.get("reason"))
    redeemed = sum(1 for r in results if r.get("discount_code"))

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    for status, count in sorted(statuses.items(), key=lambda kv: str(kv[0])):
        print(f"   HTTP {status}: {count}")
    for reason, count in reasons.most_common():
        print(f"   rejected ({reason}): {count}")
    print(f"\nTotal Time: {total_time}s")

    print(f"\nPromo redemptions in responses: {redeemed}")
    print(f"Promo current_uses in store:    {final_uses}")
    if final_uses is not None and final_uses == redeemed and redeemed <= code_uses:
        print("✅ Redemption count is consistent")
    else:
        print("❌ Redemption count mismatch")

    unexpected = [r for r in results if r["status"] not in (201, 400)]
    if unexpected:
        print("\n⚠️  Unexpected responses (showing first 5):")
        for r in unexpected[:5]:
            print(f"   #{r['num']} {r['path']}: {r['status']} {r.get('reason') or r.get('error')}")

    print("=" * 70)

    return {
        "total": num_submissions,
        "statuses": dict(statuses),
        "redeemed": redeemed,
        "final_uses": final_uses,
        "total_time": total_time,
        "results": results,
    }


async def check_health() -> bool:
    """Pre-flight health check."""
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"❌ API not reachable: {e}")
            return False

    data = response.json()
    print(f"Status: {data.get('status')}")
    print(f"   Database: {data.get('database')}")
    print(f"   Redis: {data.get('redis')}")
    return response.status_code == 200


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency Simulation Script")
    parser.add_argument("--orders-only", action="store_true", help="Submit orders only")
    parser.add_argument("--catering-only", action="store_true", help="Submit catering requests only")
    parser.add_argument("--count", type=int, default=TOTAL_SUBMISSIONS, help="Number of submissions")
    parser.add_argument("--code-uses", type=int, default=5, help="max_uses of the shared promo code")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    if args.orders_only:
        mode = "orders"
    elif args.catering_only:
        mode = "catering"
    else:
        mode = "both"

    if not asyncio.run(check_health()):
        sys.exit(1)

    asyncio.run(run_simulation(mode=mode, num_submissions=args.count, code_uses=args.code_uses))
