"""
Tests for checkout, manual orders, status updates and dashboard stats.

Run with: pytest tests/test_orders.py -v
"""
import re

import pytest
from sqlalchemy import select

from conftest import owner_headers
from shopfront.models import Order


ORDER_ID_RE = re.compile(r"^ORD-[0-9A-Z]+-\d{4}$")

CUSTOMER = {"name": "Amira Ben Ali", "email": "amira@example.com"}


async def checkout(client, store_id, items, **extra):
    payload = {
        "store_id": store_id,
        "customer": CUSTOMER,
        "items": items,
        "shipping_address": "Avenue Habib Bourguiba, Tunis",
        **extra,
    }
    return await client.post("/orders", json=payload)


# === Public checkout ===

@pytest.mark.asyncio
async def test_checkout_snapshots_product(client, register_store, add_product):
    store = await register_store("owner_1", "Alpha Store")
    product = await add_product("owner_1", "Classic Tee", 2999, inventory=10)

    response = await checkout(client, store["id"], [{"product_id": product["id"], "quantity": 2}])

    assert response.status_code == 201
    data = response.json()
    assert ORDER_ID_RE.match(data["order_id"])
    assert data["order_id"].endswith("-0001")
    assert data["store_id"] == store["id"]
    assert data["customer_name"] == "Amira Ben Ali"
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["total_cents"] == 5998
    assert data["items"] == [
        {"product_id": product["id"], "name": "Classic Tee", "price_cents": 2999, "quantity": 2}
    ]


@pytest.mark.asyncio
async def test_checkout_ignores_client_prices_and_total(client, register_store, add_product):
    store = await register_store("owner_1", "Alpha Store")
    product = await add_product("owner_1", "Classic Tee", 2999)

    response = await checkout(
        client,
        store["id"],
        [{"product_id": product["id"], "name": "Free Tee", "price_cents": 1, "quantity": 1}],
        total_cents=1,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["total_cents"] == 2999
    assert data["items"][0]["name"] == "Classic Tee"
    assert data["items"][0]["price_cents"] == 2999


@pytest.mark.asyncio
async def test_checkout_decrements_inventory_floored(client, register_store, add_product):
    store = await register_store("owner_1", "Alpha Store")
    tee = await add_product("owner_1", "Classic Tee", 1000, inventory=10)
    mug = await add_product("owner_1", "Mug", 500, inventory=2)

    response = await checkout(
        client,
        store["id"],
        [
            {"product_id": tee["id"], "quantity": 3},
            {"product_id": mug["id"], "quantity": 5},
        ],
    )
    assert response.status_code == 201

    assert (await client.get(f"/products/{tee['id']}")).json()["inventory"] == 7
    assert (await client.get(f"/products/{mug['id']}")).json()["inventory"] == 0


@pytest.mark.asyncio
async def test_order_ids_count_per_store(client, register_store, add_product):
    store = await register_store("owner_1", "Alpha Store")
    product = await add_product("owner_1", "Classic Tee", 1000)
    items = [{"product_id": product["id"], "quantity": 1}]

    first = (await checkout(client, store["id"], items)).json()
    second = (await checkout(client, store["id"], items)).json()

    assert first["order_id"].endswith("-0001")
    assert second["order_id"].endswith("-0002")
    assert first["order_id"] != second["order_id"]


@pytest.mark.asyncio
async def test_checkout_inactive_product_rejected(client, register_store, add_product):
    store = await register_store("owner_1", "Alpha Store")
    draft = await add_product("owner_1", "Secret", 1000, status="draft")

    response = await checkout(client, store["id"], [{"product_id": draft["id"], "quantity": 1}])

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["details"] == {"field": "items"}


@pytest.mark.asyncio
async def test_checkout_other_stores_product_rejected(client, register_store, add_product):
    alpha = await register_store("owner_1", "Alpha Store")
    await register_store("owner_2", "Beta Store")
    beta_product = await add_product("owner_2", "Beta Mug", 1500)

    response = await checkout(client, alpha["id"], [{"product_id": beta_product["id"], "quantity": 1}])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_checkout_unknown_store(client):
    response = await checkout(client, 4242, [{"name": "Thing", "price_cents": 100, "quantity": 1}])
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"items": []},
        {"shipping_address": "   "},
        {"customer": {"name": "Amira", "email": "not-an-email"}},
        {"items": [{"name": "Thing", "price_cents": 100, "quantity": 0}]},
    ],
)
async def test_checkout_invalid_payload(client, register_store, overrides):
    store = await register_store("owner_1", "Alpha Store")
    payload = {
        "store_id": store["id"],
        "customer": CUSTOMER,
        "items": [{"name": "Thing", "price_cents": 100, "quantity": 1}],
        "shipping_address": "Tunis",
        **overrides,
    }
    response = await client.post("/orders", json=payload)
    assert response.status_code == 422


# === Manual orders ===

@pytest.mark.asyncio
async def test_manual_order_free_form_items(client, register_store, add_product):
    await register_store("owner_1", "Alpha Store")
    draft = await add_product("owner_1", "Custom Print", 4000, status="draft")

    response = await client.post(
        "/orders/manual",
        json={
            "customer": {"name": "Walk-in", "email": "Walkin@Example.com"},
            "items": [
                {"name": "Gift wrap", "price_cents": 300, "quantity": 2},
                {"product_id": draft["id"], "quantity": 1},
            ],
        },
        headers=owner_headers("owner_1"),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["total_cents"] == 4600
    assert data["customer_email"] == "walkin@example.com"
    assert data["shipping_address"] is None


@pytest.mark.asyncio
async def test_manual_order_free_form_needs_price(client, register_store):
    await register_store("owner_1", "Alpha Store")

    response = await client.post(
        "/orders/manual",
        json={"customer": CUSTOMER, "items": [{"name": "Mystery", "quantity": 1}]},
        headers=owner_headers("owner_1"),
    )
    assert response.status_code == 400


# === Owner views and updates ===

@pytest.mark.asyncio
async def test_my_orders_and_tenant_isolation(client, register_store, add_product):
    alpha = await register_store("owner_1", "Alpha Store")
    await register_store("owner_2", "Beta Store")
    product = await add_product("owner_1", "Classic Tee", 1000)
    order = (await checkout(client, alpha["id"], [{"product_id": product["id"], "quantity": 1}])).json()

    mine = await client.get("/orders/my-orders", headers=owner_headers("owner_1"))
    theirs = await client.get("/orders/my-orders", headers=owner_headers("owner_2"))
    assert [o["id"] for o in mine.json()] == [order["id"]]
    assert theirs.json() == []

    assert (await client.get(f"/orders/{order['id']}", headers=owner_headers("owner_1"))).status_code == 200
    assert (await client.get(f"/orders/{order['id']}", headers=owner_headers("owner_2"))).status_code == 404

    hijack = await client.put(
        f"/orders/{order['id']}/status",
        json={"status": "cancelled"},
        headers=owner_headers("owner_2"),
    )
    assert hijack.status_code == 404


@pytest.mark.asyncio
async def test_update_status_and_payment(client, register_store, add_product, async_session):
    store = await register_store("owner_1", "Alpha Store")
    product = await add_product("owner_1", "Classic Tee", 1000)
    order = (await checkout(client, store["id"], [{"product_id": product["id"], "quantity": 1}])).json()

    status = await client.put(
        f"/orders/{order['id']}/status",
        json={"status": "shipped"},
        headers=owner_headers("owner_1"),
    )
    payment = await client.put(
        f"/orders/{order['id']}/payment",
        json={"payment_status": "paid"},
        headers=owner_headers("owner_1"),
    )

    assert status.status_code == 200
    assert status.json()["status"] == "shipped"
    assert payment.status_code == 200
    assert payment.json()["payment_status"] == "paid"
    assert payment.json()["status"] == "shipped"

    row = await async_session.scalar(select(Order).where(Order.id == order["id"]))
    assert row.payment_status == "paid"


@pytest.mark.asyncio
async def test_update_status_invalid_value(client, register_store, add_product):
    store = await register_store("owner_1", "Alpha Store")
    product = await add_product("owner_1", "Classic Tee", 1000)
    order = (await checkout(client, store["id"], [{"product_id": product["id"], "quantity": 1}])).json()

    response = await client.put(
        f"/orders/{order['id']}/status",
        json={"status": "lost"},
        headers=owner_headers("owner_1"),
    )
    assert response.status_code == 422


# === Dashboard stats ===

@pytest.mark.asyncio
async def test_dashboard_stats(client, register_store, add_product):
    store = await register_store("owner_1", "Alpha Store")
    tee = await add_product("owner_1", "Classic Tee", 10000)
    mug = await add_product("owner_1", "Mug", 5000)
    await add_product("owner_1", "Draft Item", 2500, status="draft")

    paid_1 = (await checkout(client, store["id"], [{"product_id": tee["id"], "quantity": 1}])).json()
    paid_2 = (await client.post(
        "/orders",
        json={
            "store_id": store["id"],
            "customer": {"name": "Youssef", "email": "youssef@example.com"},
            "items": [{"product_id": mug["id"], "quantity": 1}],
            "shipping_address": "Sfax",
        },
    )).json()
    await checkout(client, store["id"], [{"name": "Sticker", "price_cents": 2500, "quantity": 1}])

    for order in (paid_1, paid_2):
        response = await client.put(
            f"/orders/{order['id']}/payment",
            json={"payment_status": "paid"},
            headers=owner_headers("owner_1"),
        )
        assert response.status_code == 200

    response = await client.get("/orders/stats/dashboard", headers=owner_headers("owner_1"))

    assert response.status_code == 200
    stats = response.json()
    assert stats["total_sales_cents"] == 15000
    assert stats["total_orders"] == 3
    assert stats["total_products"] == 3
    assert stats["total_customers"] == 2
    assert len(stats["recent_sales"]) == 7
    assert stats["recent_sales"][-1]["amount_cents"] == 15000
    dates = [day["date"] for day in stats["recent_sales"]]
    assert dates == sorted(dates)


@pytest.mark.asyncio
async def test_dashboard_stats_empty_store(client, register_store):
    await register_store("owner_1", "Alpha Store")

    stats = (await client.get("/orders/stats/dashboard", headers=owner_headers("owner_1"))).json()

    assert stats["total_sales_cents"] == 0
    assert stats["total_orders"] == 0
    assert stats["total_customers"] == 0
    assert [day["amount_cents"] for day in stats["recent_sales"]] == [0] * 7


@pytest.mark.asyncio
async def test_duplicate_order_id_regenerated(client, register_store, add_product, monkeypatch):
    """An order_id that hits the unique index is regenerated and the checkout still succeeds."""
    from shopfront import identifiers

    real_generate = identifiers.generate_order_id
    fixed = iter(["ORD-FIXED-0001", "ORD-FIXED-0001"])

    def generate(store_order_count, now=None):
        return next(fixed, None) or real_generate(store_order_count, now=now)

    monkeypatch.setattr(identifiers, "generate_order_id", generate)

    store = await register_store("owner_1", "Alpha Store")
    product = await add_product("owner_1", "Classic Tee", 1000, inventory=5)
    items = [{"product_id": product["id"], "quantity": 1}]

    first = await checkout(client, store["id"], items)
    second = await checkout(client, store["id"], items)

    assert first.status_code == 201
    assert first.json()["order_id"] == "ORD-FIXED-0001"
    assert second.status_code == 201
    assert second.json()["order_id"] != "ORD-FIXED-0001"
    assert second.json()["order_id"].endswith("-0002")

    orders = (await client.get("/orders/my-orders", headers=owner_headers("owner_1"))).json()
    assert len(orders) == 2
    assert (await client.get(f"/products/{product['id']}")).json()["inventory"] == 3
