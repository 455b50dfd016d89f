import json
import logging
import uuid

from sqlalchemy import update

from stockroom.models.product import Product


def _create_warehouse(client, code: str = "WH-MAIN") -> str:
    res = client.post("/warehouses", json={"code": code, "name": "Main Warehouse"})
    assert res.status_code == 200, res.text
    return res.json()["id"]


def _create_product(client, *, sku: str | None = None, **extra) -> str:
    payload = {
        "sku": sku or f"SKU-{uuid.uuid4().hex[:6]}",
        "name": "Oak Chair",
        "unit_of_measure": "pcs",
        "cost_price": 45.0,
        "selling_price": 80.0,
    }
    payload.update(extra)
    res = client.post("/products", json=payload)
    assert res.status_code == 200, res.text
    return res.json()["id"]


def _draft(client, path: str, *, reference: str, warehouse_id: str, lines: list[dict]) -> dict:
    res = client.post(
        path,
        json={
            "reference": reference,
            "counterparty": "Acme Supplies",
            "warehouse_id": warehouse_id,
            "document_date": "2026-10-19",
            "lines": lines,
        },
    )
    assert res.status_code == 200, res.text
    return res.json()


def _stock(client, product_id: str) -> dict:
    res = client.get(f"/inventory/stock/{product_id}")
    assert res.status_code == 200, res.text
    return res.json()


def test_health_endpoints_and_request_id(test_context):
    client, _ = test_context

    res = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert res.status_code == 200
    assert res.json() == {"ok": True}
    assert res.headers["X-Request-ID"] == "req-123"

    ready = client.get("/ready")
    assert ready.status_code == 200
    assert ready.headers.get("X-Request-ID")


def test_receipt_and_delivery_flow(test_context):
    client, _ = test_context
    warehouse_id = _create_warehouse(client)
    product_id = _create_product(client)

    product = client.get(f"/products/{product_id}").json()
    assert product["on_hand_qty"] == 0
    assert product["reorder_level"] == 5
    assert product["is_low_stock"] is True

    receipt = _draft(
        client,
        "/receipts",
        reference="REC-001",
        warehouse_id=warehouse_id,
        lines=[{"product_id": product_id, "qty": 15, "unit_price": 40.0}],
    )
    assert receipt["status"] == "draft"
    assert receipt["total"] == 600.0
    assert _stock(client, product_id)["on_hand_qty"] == 0

    validated = client.post(f"/receipts/{receipt['id']}/validate")
    assert validated.status_code == 200, validated.text
    assert validated.json()["status"] == "validated"
    assert validated.json()["validated_at"] is not None

    stock = _stock(client, product_id)
    assert stock["on_hand_qty"] == 15
    assert stock["ledger_qty"] == 15
    assert stock["is_low_stock"] is False

    delivery = _draft(
        client,
        "/deliveries",
        reference="DEL-001",
        warehouse_id=warehouse_id,
        lines=[{"product_id": product_id, "qty": 11, "unit_price": 80.0}],
    )
    res = client.post(f"/deliveries/{delivery['id']}/validate")
    assert res.status_code == 200, res.text

    stock = _stock(client, product_id)
    assert stock["on_hand_qty"] == 4
    assert stock["is_low_stock"] is True

    movements = client.get("/inventory/movements", params={"product_id": product_id})
    assert movements.status_code == 200
    body = movements.json()
    assert body["pagination"]["total"] == 2
    assert sorted(item["qty_delta"] for item in body["items"]) == [-11, 15]
    assert {item["note"] for item in body["items"]} == {"receipt REC-001", "delivery DEL-001"}

    low_stock = client.get("/inventory/low-stock")
    assert low_stock.status_code == 200
    assert [item["id"] for item in low_stock.json()["items"]] == [product_id]


def test_insufficient_stock_returns_error_envelope(test_context):
    client, _ = test_context
    warehouse_id = _create_warehouse(client)
    product_id = _create_product(client)

    delivery = _draft(
        client,
        "/deliveries",
        reference="DEL-404",
        warehouse_id=warehouse_id,
        lines=[{"product_id": product_id, "qty": 3}],
    )
    res = client.post(f"/deliveries/{delivery['id']}/validate", headers={"X-Request-ID": "req-stock"})

    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "insufficient_stock"
    assert error["request_id"] == "req-stock"
    assert error["path"] == f"/deliveries/{delivery['id']}/validate"
    assert client.get(f"/deliveries/{delivery['id']}").json()["status"] == "draft"
    assert _stock(client, product_id)["on_hand_qty"] == 0


def test_document_errors_map_to_status_codes(test_context):
    client, _ = test_context
    warehouse_id = _create_warehouse(client)
    product_id = _create_product(client)

    empty = client.post(
        "/receipts",
        json={"reference": "REC-EMPTY", "counterparty": "Supplier", "warehouse_id": warehouse_id, "lines": []},
    )
    assert empty.status_code == 422
    assert empty.json()["error"]["code"] == "empty_lines"

    unknown_product = client.post(
        "/receipts",
        json={
            "reference": "REC-BAD",
            "counterparty": "Supplier",
            "warehouse_id": warehouse_id,
            "lines": [{"product_id": "nope", "qty": 1}],
        },
    )
    assert unknown_product.status_code == 422
    assert unknown_product.json()["error"]["code"] == "invalid_line"

    zero_qty = client.post(
        "/receipts",
        json={
            "reference": "REC-ZERO",
            "counterparty": "Supplier",
            "warehouse_id": warehouse_id,
            "lines": [{"product_id": product_id, "qty": 0}],
        },
    )
    assert zero_qty.status_code == 422
    assert zero_qty.json()["error"]["code"] == "validation_error"

    receipt = _draft(
        client, "/receipts", reference="REC-002", warehouse_id=warehouse_id, lines=[{"product_id": product_id, "qty": 2}]
    )
    duplicate = client.post(
        "/receipts",
        json={
            "reference": "REC-002",
            "counterparty": "Supplier",
            "warehouse_id": warehouse_id,
            "lines": [{"product_id": product_id, "qty": 2}],
        },
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "duplicate_reference"

    assert client.post(f"/receipts/{receipt['id']}/validate").status_code == 200
    cancel = client.post(f"/receipts/{receipt['id']}/cancel")
    assert cancel.status_code == 409
    assert cancel.json()["error"]["code"] == "invalid_transition"

    wrong_kind = client.get(f"/deliveries/{receipt['id']}")
    assert wrong_kind.status_code == 404
    assert wrong_kind.json()["error"]["code"] == "unknown_document"


def test_edit_and_cancel_draft_over_http(test_context):
    client, _ = test_context
    warehouse_id = _create_warehouse(client)
    product_id = _create_product(client)
    receipt = _draft(
        client, "/receipts", reference="REC-EDIT", warehouse_id=warehouse_id, lines=[{"product_id": product_id, "qty": 2}]
    )

    edited = client.patch(
        f"/receipts/{receipt['id']}",
        json={"lines": [{"product_id": product_id, "qty": 9, "unit_price": 1.5}], "notes": "revised"},
    )
    assert edited.status_code == 200, edited.text
    assert edited.json()["lines"][0]["qty"] == 9
    assert edited.json()["total"] == 13.5

    cancelled = client.post(f"/receipts/{receipt['id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    listed = client.get("/receipts", params={"status": "cancelled"})
    assert listed.status_code == 200
    assert [item["reference"] for item in listed.json()["items"]] == ["REC-EDIT"]
    assert _stock(client, product_id)["on_hand_qty"] == 0


def test_product_on_hand_is_not_editable(test_context):
    client, _ = test_context
    product_id = _create_product(client, sku="FIXED-1")

    res = client.patch(f"/products/{product_id}", json={"on_hand_qty": 100})
    assert res.status_code == 422
    assert res.json()["error"]["code"] == "validation_error"

    res = client.patch(f"/products/{product_id}", json={"name": "Walnut Chair"})
    assert res.status_code == 200
    assert res.json()["name"] == "Walnut Chair"
    assert res.json()["on_hand_qty"] == 0

    duplicate = client.post("/products", json={"sku": "fixed-1", "name": "Clone"})
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "duplicate_sku"


def test_adjustment_dashboard_and_reconcile(test_context):
    client, session_local = test_context
    warehouse_id = _create_warehouse(client)
    product_id = _create_product(client, cost_price=2.5)

    adjust = client.post(
        "/inventory/adjust",
        json={
            "product_id": product_id,
            "warehouse_id": warehouse_id,
            "qty_delta": 8,
            "reason": "opening_balance",
        },
    )
    assert adjust.status_code == 200, adjust.text
    assert adjust.json()["kind"] == "adjustment"
    assert adjust.json()["note"] == "opening_balance"

    summary = client.get("/dashboard/summary")
    assert summary.status_code == 200
    assert summary.json()["total_products"] == 1
    assert summary.json()["low_stock_products"] == 0
    assert summary.json()["total_stock_value"] == 20.0

    assert client.get("/inventory/reconcile").json() == {"ok": True, "discrepancies": []}

    with session_local() as db:
        db.execute(update(Product).where(Product.id == product_id).values(on_hand_qty=3))
        db.commit()

    drift = client.get("/inventory/reconcile").json()
    assert drift["ok"] is False
    assert drift["discrepancies"][0]["cached_qty"] == 3
    assert drift["discrepancies"][0]["ledger_qty"] == 8


def test_warehouse_in_use_cannot_be_deleted(test_context):
    client, _ = test_context
    warehouse_id = _create_warehouse(client)
    spare_id = _create_warehouse(client, code="SPARE")
    product_id = _create_product(client)
    _draft(client, "/receipts", reference="REC-WH", warehouse_id=warehouse_id, lines=[{"product_id": product_id, "qty": 1}])

    assert client.delete(f"/warehouses/{spare_id}").json() == {"ok": True}
    in_use = client.delete(f"/warehouses/{warehouse_id}")
    assert in_use.status_code == 409
    assert in_use.json()["error"]["code"] == "entity_in_use"


class _CollectingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.events: list[dict] = []

    def emit(self, record):
        self.events.append(json.loads(record.getMessage()))


def test_routing_errors_use_error_envelope(test_context):
    client, _ = test_context

    missing = client.get("/no-such-route")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "not_found"
    assert missing.json()["error"]["path"] == "/no-such-route"

    wrong_method = client.put("/health")
    assert wrong_method.status_code == 405
    assert wrong_method.json()["error"]["code"] == "method_not_allowed"
    assert "X-API-Timeout-Hint-Ms" not in wrong_method.headers


def test_request_log_line_carries_inventory_error_code(test_context):
    client, _ = test_context
    handler = _CollectingHandler()
    api_logger = logging.getLogger("stockroom.api")
    api_logger.addHandler(handler)
    try:
        res = client.get("/products/missing-product", headers={"X-Request-ID": "req-log"})
        client.get("/health", headers={"X-Request-ID": "req-ok"})
    finally:
        api_logger.removeHandler(handler)

    assert res.status_code == 404
    requests_logged = {event["request_id"]: event for event in handler.events if event["event"] == "request"}
    failed = requests_logged["req-log"]
    assert failed["status_code"] == 404
    assert failed["error_code"] == "unknown_product"
    assert failed["path"] == "/products/missing-product"
    assert "error_code" not in requests_logged["req-ok"]
