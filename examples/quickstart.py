#!/usr/bin/env python3
"""
Marketwire Quickstart — the REST side of the real-time hubs.

Likes a product (subscribers of /ws/likes see the new count), tracks a
few events (dashboards on /ws/analytics see them on the next flush) and
fetches a ticket for the analytics socket.
Run with: python examples/quickstart.py

Requires: pip install -e .
Backend must be running: http://localhost:3001
"""

import uuid

from _common import create_client

PRODUCT_ID = 42


def main():
    client = create_client(user_id=1, role="admin")
    visitor = str(uuid.uuid4())

    # ── Like toggle ───────────────────────────────────────────────
    print(f"\n1. Toggling like on product {PRODUCT_ID}...")
    resp = client.post(f"/products/{PRODUCT_ID}/like")
    assert resp.status_code == 200, f"Failed: {resp.text}"
    like = resp.json()
    print(f"   liked={like['is_liked']} count={like['likes_count']}")

    resp = client.get("/products/likes", params={"ids": f"{PRODUCT_ID},43,44"})
    print(f"   Batch counts: {resp.json()['counts']}")

    # ── Tracking ──────────────────────────────────────────────────
    print("\n2. Tracking a small funnel...")
    for body in (
        {"type": "pageview", "path": "/shop?utm_source=quickstart"},
        {"type": "product_view", "path": f"/p/{PRODUCT_ID}"},
        {"type": "event", "name": "add_to_cart", "path": f"/p/{PRODUCT_ID}"},
    ):
        resp = client.post("/analytics/v1/track", json={
            "event_id": str(uuid.uuid4()),
            "anon_id": visitor,
            **body,
        })
        assert resp.status_code == 200, f"Failed: {resp.text}"
        print(f"   {body['type']:<13} {body['path']}")

    # ── Dashboard ticket ──────────────────────────────────────────
    print("\n3. Fetching an analytics socket ticket...")
    resp = client.post("/analytics/ws-ticket")
    assert resp.status_code == 200, f"Failed: {resp.text}"
    ticket = resp.json()
    print(f"   ws://localhost:3001/ws/analytics?ticket={ticket['ticket'][:16]}...")
    print(f"   (valid for {ticket['ttl_sec']}s)")

    print("\n✓ Done")


if __name__ == "__main__":
    main()
