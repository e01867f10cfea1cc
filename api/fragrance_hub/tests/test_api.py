"""HTTP surface, through httpx against the ASGI app."""
import io

from PyPDF2 import PdfReader

from fragrance_hub.exports import read_products_xlsx
from fragrance_hub.tests.factories import product_payload

HEADERS = {"X-User": "u-1"}


async def _create(client, code, **kw):
    response = await client.post("/products", json=product_payload(code, **kw), headers=HEADERS)
    assert response.status_code == 201, response.text
    return response.json()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"]["status"] == "healthy"
    assert body["database"]["elevated_configured"] is True


async def test_product_crud(client):
    created = await _create(client, "CH-001", brand_id="")
    assert created["brand_id"] is None
    assert created["created_by"] == "u-1"
    assert created["stock_status"] == "ok"
    assert created["updated_timeline"] == "today"

    response = await client.patch(f"/products/{created['id']}", json={"current_stock": 2})
    assert response.status_code == 200
    assert response.json()["stock_status"] == "low"

    duplicate = await client.post("/products", json=product_payload("ch-001", item_number="X"))
    assert duplicate.status_code == 409
    assert "already exists" in duplicate.json()["detail"]

    assert (await client.get("/products/exists", params={"code": "ch-001"})).json() == {"exists": True}

    assert (await client.delete(f"/products/{created['id']}", headers=HEADERS)).status_code == 204
    assert (await client.get(f"/products/{created['id']}")).status_code == 404
    assert (await client.delete(f"/products/{created['id']}")).status_code == 404


async def test_invalid_product_type_is_readable(client):
    response = await client.post("/products", json=product_payload("X-1", product_type="Candles"))
    assert response.status_code == 409
    assert "Invalid product type" in response.json()["detail"]


async def test_list_filters_and_sorts(client):
    await _create(client, "CH-001", commercial_name="Bleu de Chanel", price="150")
    await _create(client, "DI-002", commercial_name="Sauvage", price="99", current_stock=0)
    await _create(client, "GU-003", commercial_name="Bloom", price="20000")

    body = (await client.get("/products")).json()
    assert body["total"] == 3 and body["filtered"] == 3
    assert body["price_range"][1] == 20000
    assert [p["commercial_name"] for p in body["items"]] == ["Bleu de Chanel", "Bloom", "Sauvage"]

    body = (await client.get("/products", params={"search": "bl", "sort": "price", "direction": "desc"})).json()
    assert [p["code"] for p in body["items"]] == ["GU-003", "CH-001"]

    body = (await client.get("/products", params={"status": "out"})).json()
    assert [p["code"] for p in body["items"]] == ["DI-002"]

    body = (await client.get("/products", params={"price_max": 120})).json()
    assert [p["code"] for p in body["items"]] == ["DI-002"]

    # a lower bound alone still lets the upper bound follow the data
    body = (await client.get("/products", params={"price_min": 0})).json()
    assert body["filtered"] == 3
    assert body["price_range"] == [0, 20000]

    assert (await client.get("/products", params={"sort": "colour"})).status_code == 400

    suggestions = (await client.get("/products/suggestions", params={"q": "bl"})).json()
    assert suggestions[0].lower().startswith("bl")


async def test_xlsx_export(client):
    await _create(client, "CH-001", current_stock=0)
    await _create(client, "DI-002")
    response = await client.get("/products/export.xlsx", params={"status": "out"})
    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]
    df = read_products_xlsx(response.content)
    assert df["Code Name"].tolist() == ["CH-001"]


async def test_bulk_price_and_zero_stale(client):
    a = await _create(client, "A-1", price="100")
    response = await client.post(
        "/products/bulk-price", json={"product_ids": [a["id"]], "mode": "percentage", "value": "-10"}
    )
    assert response.status_code == 200
    assert response.json()[0]["price"] in ("90.00", "90.0", 90.0, "90")

    rejected = await client.post(
        "/products/bulk-price", json={"product_ids": [a["id"]], "mode": "percentage", "value": "-100"}
    )
    assert rejected.status_code == 422

    # everything was just updated, nothing is stale
    assert (await client.post("/products/zero-stale-stock")).json() == []


async def test_order_flow_and_pdfs(client):
    product = await _create(client, "CH-001", current_stock=10)
    payload = {
        "order_number": "ORD-WEB-1",
        "customer_name": "Amina",
        "order_type": "Store to Shop",
        "items": [{"product_id": product["id"], "quantity": 2, "unit_price": "150"}],
    }
    response = await client.post("/orders", json=payload, headers=HEADERS)
    assert response.status_code == 201, response.text
    order = response.json()
    assert order["order_type"] == "store_to_shop"
    assert order["created_by"] == "u-1"

    replay = await client.post("/orders", json=payload)
    assert replay.json()["id"] == order["id"]
    assert (await client.get(f"/products/{product['id']}")).json()["current_stock"] == 8

    updated = await client.patch(f"/orders/{order['id']}", json={"status": "shipped"})
    assert updated.json()["status"] == "shipped"

    pdf = await client.get(f"/orders/{order['id']}/pdf")
    assert pdf.headers["content-type"] == "application/pdf"
    assert "ORD-WEB-1" in PdfReader(io.BytesIO(pdf.content)).pages[0].extract_text()

    bulk = await client.post("/orders/pdf", json={"order_ids": [order["id"]]})
    assert bulk.status_code == 200
    assert (await client.post("/orders/pdf", json={"order_ids": [999]})).status_code == 404

    bad = await client.post("/orders", json={**payload, "order_number": None, "order_type": "teleport"})
    assert bad.status_code == 400


async def test_purchase_order_flow(client):
    product = await _create(client, "CH-001", current_stock=1)
    supplier = (await client.get("/suppliers")).json()[0]
    response = await client.post("/purchase-orders", json={
        "supplier_id": supplier["id"],
        "status": "confirmed",
        "items": [{"product_id": product["id"], "quantity": 5, "unit_price": "60"}],
    })
    assert response.status_code == 201, response.text
    po = response.json()
    assert po["supplier_name"] == "Argeville"

    item_id = po["items"][0]["id"]
    received = await client.post(f"/purchase-orders/{po['id']}/receive", json={"received": {str(item_id): 5}})
    assert received.status_code == 200
    assert received.json()["status"] == "received"
    assert (await client.get(f"/products/{product['id']}")).json()["current_stock"] == 6

    too_many = await client.post(f"/purchase-orders/{po['id']}/receive", json={"received": {str(item_id): 6}})
    assert too_many.status_code == 400

    movements = (await client.get("/movements", params={"product_id": product["id"]})).json()
    assert [m["movement_type"] for m in movements] == ["in"]


async def test_reports(client):
    product = await _create(client, "CH-001", current_stock=10, price="100")
    await client.post("/orders", json={
        "customer_name": "Amina",
        "items": [{"product_id": product["id"], "quantity": 2, "unit_price": "100"}],
    })

    dashboard = (await client.get("/reports/dashboard")).json()
    assert dashboard["total_products"] == 1
    assert dashboard["total_value"] == 800.0

    advanced = (await client.get("/reports/advanced", params={"days": 7, "sort_by": "quantity"})).json()
    assert advanced["orders"]["total_orders"] == 1
    assert advanced["top_products"][0]["quantity_sold"] == 2
    assert advanced["order_types"]["delivery"] == 1

    csv = await client.get("/reports/sales/export.csv")
    assert csv.status_code == 200
    assert "order_number" in csv.content.decode("utf-8-sig")
    assert (await client.get("/reports/bogus/export.csv")).status_code == 404

    exported = await client.get("/reports/advanced/export.json")
    assert exported.json()["orders"]["total_orders"] == 1


async def test_product_reports_and_activity(client):
    product = await _create(client, "CH-001")
    response = await client.post(
        "/product-reports",
        json={"product_id": product["id"], "report_type": "add", "quantity": 3, "reason": "Found in storage"},
        headers={"X-User": "staff-1"},
    )
    assert response.status_code == 201, response.text
    report = response.json()
    assert report["reporter"]["full_name"] == "Unknown User"

    reviewed = await client.patch(f"/product-reports/{report['id']}", json={"status": "rejected"})
    assert reviewed.json()["status"] == "rejected"
    assert (await client.patch(f"/product-reports/{report['id']}", json={"status": "pending"})).status_code == 422

    activity = (await client.get("/activity", params={"entity_type": "product_report"})).json()
    assert {a["action"] for a in activity} == {"create_product_report", "rejected_product_report"}


async def test_session_notifications(client):
    await _create(client, "CH-001", current_stock=0)
    await _create(client, "DI-002", current_stock=30)

    session = (await client.post("/session/login", json={"id": "u-1", "username": "amina"})).json()
    assert session["unread_count"] == 1
    note = session["notifications"][0]
    assert note["type"] == "out_of_stock"

    assert (await client.post("/session/u-1/notifications/refresh")).json() == []
    read = await client.post(f"/session/u-1/notifications/{note['id']}/read")
    assert read.json() == {"unread_count": 0}

    assert (await client.post("/session/u-1/logout")).json() == {"closed": True}
    assert (await client.get("/session/u-1")).status_code == 404
