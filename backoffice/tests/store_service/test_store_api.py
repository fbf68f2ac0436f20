from typing import Any

import pytest
from httpx import AsyncClient


def _product_payload(sku: str = "SKU-001", stock: int = 10, price: str = "10.00", **extra: Any) -> dict[str, Any]:
    return {
        "name": f"Product {sku}",
        "sku": sku,
        "price": price,
        "cost": "4.00",
        "stockQuantity": stock,
        **extra,
    }


async def _create_product(client: AsyncClient, **kwargs: Any) -> dict[str, Any]:
    response = await client.post("/products", json=_product_payload(**kwargs))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health_and_seeded_categories(client: AsyncClient) -> None:
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"

    categories = await client.get("/categories")
    assert categories.status_code == 200
    names = [item["name"] for item in categories.json()["items"]]
    assert names == sorted(["Electronics", "Clothing", "Books", "Home & Garden", "Sports"])


@pytest.mark.asyncio
async def test_place_order_and_read_it_back(client: AsyncClient) -> None:
    product_a = await _create_product(client, sku="SKU-A", stock=10)
    product_b = await _create_product(client, sku="SKU-B", stock=5, price="5.00")

    response = await client.post(
        "/orders",
        json={
            "items": [
                {"productId": product_a["id"], "quantity": 2, "unitPrice": "10.00"},
                {"productId": product_b["id"], "quantity": 1, "unitPrice": "5.00"},
            ],
            "totalAmount": "25.00",
        },
    )
    assert response.status_code == 201, response.text
    order = response.json()
    assert order["totalAmount"] == "25.00"
    assert order["status"] == "pending"
    assert order["paymentMethod"] == "cash"
    assert order["itemCount"] == 2
    assert [(item["productSku"], item["quantity"], item["unitPrice"]) for item in order["items"]] == [
        ("SKU-A", 2, "10.00"),
        ("SKU-B", 1, "5.00"),
    ]

    fetched = await client.get(f"/orders/{order['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["orderNumber"] == order["orderNumber"]

    product = await client.get(f"/products/{product_a['id']}")
    assert product.json()["stockQuantity"] == 8

    listing = await client.get("/orders", params={"status": "pending"})
    assert listing.json()["total"] == 1

    sales = await client.get("/inventory/transactions", params={"type": "sale"})
    assert sales.json()["total"] == 2
    assert {entry["referenceType"] for entry in sales.json()["items"]} == {"order"}


@pytest.mark.asyncio
async def test_order_errors_use_typed_bodies(client: AsyncClient) -> None:
    product = await _create_product(client, sku="SKU-A", stock=1)

    short = await client.post("/orders", json={"items": [{"productId": product["id"], "quantity": 3}]})
    assert short.status_code == 400
    assert short.json() == {
        "detail": f"Insufficient stock for product {product['id']}",
        "code": "insufficient_stock",
        "productId": product["id"],
        "requested": 3,
        "available": 1,
    }

    empty = await client.post("/orders", json={"items": []})
    assert empty.status_code == 400
    assert empty.json()["code"] == "validation_failed"

    zero = await client.post("/orders", json={"items": [{"productId": product["id"], "quantity": 0}]})
    assert zero.status_code == 400

    missing = await client.post("/orders", json={"items": [{"productId": 999, "quantity": 1}]})
    assert missing.status_code == 404
    assert missing.json()["code"] == "product_not_found"

    unknown_order = await client.get("/orders/999")
    assert unknown_order.status_code == 404
    assert unknown_order.json()["code"] == "order_not_found"

    listing = await client.get("/orders")
    assert listing.json()["total"] == 0
    assert (await client.get(f"/products/{product['id']}")).json()["stockQuantity"] == 1


@pytest.mark.asyncio
async def test_cancel_is_guarded_against_repeats(client: AsyncClient) -> None:
    product = await _create_product(client, sku="SKU-A", stock=10)
    order = (await client.post("/orders", json={"items": [{"productId": product["id"], "quantity": 4}]})).json()

    cancelled = await client.post(f"/orders/{order['id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    again = await client.delete(f"/orders/{order['id']}")
    assert again.status_code == 409
    assert again.json()["code"] == "order_already_cancelled"

    assert (await client.get(f"/products/{product['id']}")).json()["stockQuantity"] == 10
    returns = await client.get("/inventory/transactions", params={"type": "return"})
    assert returns.json()["total"] == 1

    reopen = await client.put(f"/orders/{order['id']}/status", json={"status": "processing"})
    assert reopen.status_code == 409


@pytest.mark.asyncio
async def test_status_and_payment_updates(client: AsyncClient) -> None:
    product = await _create_product(client, sku="SKU-A", stock=10)
    order = (await client.post("/orders", json={"items": [{"productId": product["id"], "quantity": 1}]})).json()

    shipped = await client.put(f"/orders/{order['id']}/status", json={"status": "shipped"})
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "shipped"

    bogus = await client.put(f"/orders/{order['id']}/status", json={"status": "lost"})
    assert bogus.status_code == 400

    paid = await client.put(
        f"/orders/{order['id']}/payment",
        json={"paymentStatus": "paid", "paymentMethod": "card"},
    )
    assert paid.status_code == 200
    assert paid.json()["paymentStatus"] == "paid"
    assert paid.json()["paymentMethod"] == "card"


@pytest.mark.asyncio
async def test_inventory_adjust_and_reports(client: AsyncClient) -> None:
    product = await _create_product(client, sku="SKU-A", stock=5)

    too_much = await client.post(
        "/inventory/adjust",
        json={"productId": product["id"], "quantity": 1000000, "type": "out"},
    )
    assert too_much.status_code == 400
    assert too_much.json()["code"] == "insufficient_stock"

    drained = await client.post(
        "/inventory/adjust",
        json={"productId": product["id"], "quantity": 5, "type": "adjustment_out", "notes": "Damaged"},
    )
    assert drained.status_code == 201
    assert drained.json()["newStock"] == 0
    assert drained.json()["type"] == "adjustment_out"

    levels = await client.get("/inventory/stock-levels", params={"lowStockOnly": "true"})
    assert [(item["sku"], item["stockStatus"]) for item in levels.json()["items"]] == [("SKU-A", "out_of_stock")]

    summary = await client.get("/inventory/summary")
    assert summary.json() == {
        "totalProducts": 1,
        "totalInventoryValue": "0.00",
        "lowStockProducts": 1,
        "outOfStockProducts": 1,
        "todaysTransactions": 2,
    }

    reconciliation = await client.get("/inventory/reconciliation")
    assert reconciliation.json()["consistent"] is True
    assert reconciliation.json()["items"][0]["ledgerBalance"] == 0


@pytest.mark.asyncio
async def test_product_lifecycle(client: AsyncClient) -> None:
    categories = (await client.get("/categories")).json()["items"]
    books = next(item for item in categories if item["name"] == "Books")
    product = await _create_product(client, sku="BOOK-1", stock=3, categoryId=books["id"])
    assert product["categoryName"] == "Books"
    assert product["lowStock"] is True

    duplicate = await client.post("/products", json=_product_payload(sku="BOOK-1"))
    assert duplicate.status_code == 409

    updated = await client.put(f"/products/{product['id']}", json={"stockQuantity": 12, "price": "8.50"})
    assert updated.status_code == 200
    assert updated.json()["stockQuantity"] == 12
    assert updated.json()["price"] == "8.50"
    assert updated.json()["lowStock"] is False

    search = await client.get("/products", params={"search": "BOOK"})
    assert search.json()["total"] == 1

    alerts = await client.get("/products/alerts/low-stock")
    assert alerts.json() == []

    blocked = await client.delete(f"/categories/{books['id']}")
    assert blocked.status_code == 409

    deleted = await client.delete(f"/products/{product['id']}")
    assert deleted.status_code == 204
    assert (await client.get(f"/products/{product['id']}")).status_code == 404
    history = await client.get("/inventory/transactions", params={"productId": product["id"]})
    assert history.json()["total"] == 0


@pytest.mark.asyncio
async def test_customer_records(client: AsyncClient) -> None:
    created = await client.post(
        "/customers",
        json={"firstName": "Ada", "lastName": "Byron", "email": "ada@example.com", "city": "London"},
    )
    assert created.status_code == 201, created.text
    customer = created.json()

    duplicate = await client.post(
        "/customers",
        json={"firstName": "Other", "lastName": "Person", "email": "ada@example.com"},
    )
    assert duplicate.status_code == 409

    invalid = await client.post("/customers", json={"firstName": "No", "lastName": "Mail", "email": "nope"})
    assert invalid.status_code == 400

    product = await _create_product(client, sku="SKU-A", stock=10, price="7.50")
    await client.post(
        "/orders",
        json={"customerId": customer["id"], "items": [{"productId": product["id"], "quantity": 2}]},
    )

    detail = await client.get(f"/customers/{customer['id']}")
    assert detail.json()["totalOrders"] == 1
    assert detail.json()["totalSpent"] == "15.00"
    assert len(detail.json()["recentOrders"]) == 1

    by_customer = await client.get("/orders", params={"customer": "Byron"})
    assert by_customer.json()["items"][0]["customerName"] == "Ada Byron"

    renamed = await client.put(f"/customers/{customer['id']}", json={"city": "Paris"})
    assert renamed.json()["city"] == "Paris"

    blocked = await client.delete(f"/customers/{customer['id']}")
    assert blocked.status_code == 409

    ghost = await client.post("/orders", json={"customerId": 999, "items": [{"productId": product["id"], "quantity": 1}]})
    assert ghost.status_code == 404
    assert ghost.json()["code"] == "customer_not_found"


@pytest.mark.asyncio
async def test_dashboard_endpoints(client: AsyncClient) -> None:
    product = await _create_product(client, sku="SKU-A", stock=30, price="4.00")
    customer = (
        await client.post("/customers", json={"firstName": "Grace", "lastName": "Hopper", "email": "g@example.com"})
    ).json()
    await client.post(
        "/orders",
        json={
            "customerId": customer["id"],
            "items": [{"productId": product["id"], "quantity": 3}],
            "paymentStatus": "paid",
        },
    )

    overview = (await client.get("/dashboard/overview")).json()
    assert overview["totalRevenue"] == "12.00"
    assert overview["totalOrders"] == 1
    assert overview["totalCustomers"] == 1

    sales = (await client.get("/dashboard/sales", params={"period": "30d"})).json()
    assert sales["period"] == "30d"
    assert sales["salesByDay"][0]["orders"] == 1
    assert sales["topProducts"][0] == {"name": "Product SKU-A", "sku": "SKU-A", "quantitySold": 3, "revenue": "12.00"}

    inventory = (await client.get("/dashboard/inventory")).json()
    assert inventory["inventoryByCategory"][0]["totalQuantity"] == 27
    assert len(inventory["recentTransactions"]) == 2

    customers = (await client.get("/dashboard/customers")).json()
    assert customers["topCustomers"][0]["name"] == "Grace Hopper"
    assert customers["customerGrowth"][0]["newCustomers"] == 1

    bad_period = await client.get("/dashboard/sales", params={"period": "2w"})
    assert bad_period.status_code == 400
