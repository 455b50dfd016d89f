import os
import sys

import requests

base_url = os.getenv("STOCKROOM_BASE_URL", "http://localhost:8000").rstrip("/")
request_id = os.getenv("STOCKROOM_REQUEST_ID", "inventory-smoke")

headers = {"X-Request-ID": request_id}


def main() -> int:
    health_response = requests.get(f"{base_url}/ready", headers=headers, timeout=15)
    health_response.raise_for_status()
    if not health_response.json().get("ok"):
        print("Database is not reachable", file=sys.stderr)
        return 1

    summary_response = requests.get(f"{base_url}/dashboard/summary", headers=headers, timeout=15)
    summary_response.raise_for_status()

    low_stock_response = requests.get(
        f"{base_url}/inventory/low-stock",
        headers=headers,
        params={"limit": 5, "offset": 0},
        timeout=15,
    )
    low_stock_response.raise_for_status()

    reconcile_response = requests.get(f"{base_url}/inventory/reconcile", headers=headers, timeout=30)
    reconcile_response.raise_for_status()

    summary = summary_response.json()
    low_stock = low_stock_response.json()
    reconcile = reconcile_response.json()
    print(f"Products: {summary['total_products']}")
    print(f"Pending receipts/deliveries: {summary['pending_receipts']}/{summary['pending_deliveries']}")
    print(f"Low stock products: {low_stock['pagination']['total']}")
    for item in low_stock["items"]:
        print(f"  {item['sku']}: {item['on_hand_qty']} on hand (reorder at {item['reorder_level']})")
    if not reconcile["ok"]:
        print(f"Ledger drift on {len(reconcile['discrepancies'])} product(s)", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except requests.RequestException as exc:
        print(f"Inventory API smoke check failed: {exc}", file=sys.stderr)
        raise SystemExit(1)
