from datetime import datetime

from fastapi import APIRouter, Depends, Query

from stockroom.core.api_docs import error_responses
from stockroom.core.deps import get_ledger
from stockroom.models.movement import StockMovement
from stockroom.routers.products import product_out
from stockroom.schemas.common import PaginationMeta
from stockroom.schemas.inventory import (
    LowStockListOut,
    ReconcileOut,
    StockAdjustIn,
    StockDiscrepancyOut,
    StockLevelOut,
    StockMovementListOut,
    StockMovementOut,
)
from stockroom.services.ledger_service import LedgerEngine

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _movement_out(row: StockMovement) -> StockMovementOut:
    return StockMovementOut(
        id=row.id,
        product_id=row.product_id,
        warehouse_id=row.warehouse_id,
        qty_delta=row.qty_delta,
        kind=row.kind,
        note=row.note,
        document_id=row.document_id,
        document_line_id=row.document_line_id,
        created_at=row.created_at,
    )


@router.post(
    "/adjust",
    response_model=StockMovementOut,
    summary="Manual stock adjustment",
    description="Records a correction movement. Adjustments are not bound by the zero-stock floor.",
    responses=error_responses(400, 404, 422, 500, path="/inventory/adjust"),
)
def adjust_stock(
    payload: StockAdjustIn,
    ledger: LedgerEngine = Depends(get_ledger),
):
    movement = ledger.adjust(
        payload.product_id,
        payload.warehouse_id,
        payload.qty_delta,
        note=f"{payload.reason}: {payload.note}" if payload.note else payload.reason,
    )
    return _movement_out(movement)


@router.get(
    "/stock/{product_id}",
    response_model=StockLevelOut,
    summary="Get stock level for a product",
    responses=error_responses(404, 422, 500, path="/inventory/stock/{product_id}"),
)
def get_stock(
    product_id: str,
    ledger: LedgerEngine = Depends(get_ledger),
):
    product = ledger.products.get(product_id)
    return StockLevelOut(
        product_id=product.id,
        on_hand_qty=product.on_hand_qty,
        ledger_qty=ledger.recompute_stock(product.id),
        reorder_level=product.reorder_level,
        is_low_stock=ledger.is_low_stock(product.id),
    )


@router.get(
    "/movements",
    response_model=StockMovementListOut,
    summary="List stock movements",
    responses={
        200: {
            "description": "Paginated movement ledger, newest first",
            "content": {
                "application/json": {
                    "example": {
                        "items": [
                            {
                                "id": "movement-id",
                                "product_id": "product-id",
                                "warehouse_id": "warehouse-id",
                                "qty_delta": -2,
                                "kind": "delivery",
                                "note": "delivery DEL-001",
                                "document_id": "document-id",
                                "document_line_id": "line-id",
                                "created_at": "2026-10-19T10:00:00Z",
                            }
                        ],
                        "pagination": {
                            "total": 12,
                            "limit": 50,
                            "offset": 0,
                            "count": 1,
                            "has_next": True,
                        },
                    }
                }
            },
        },
        **error_responses(422, 500, path="/inventory/movements"),
    },
)
def list_movements(
    product_id: str | None = Query(default=None, description="Optional product filter"),
    warehouse_id: str | None = Query(default=None, description="Optional warehouse filter"),
    kind: str | None = Query(default=None, pattern="^(receipt|delivery|adjustment)$"),
    document_id: str | None = Query(default=None),
    created_from: datetime | None = Query(default=None),
    created_to: datetime | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    ledger: LedgerEngine = Depends(get_ledger),
):
    rows, total = ledger.list_movements(
        product_id=product_id,
        warehouse_id=warehouse_id,
        kind=kind,
        document_id=document_id,
        created_from=created_from,
        created_to=created_to,
        limit=limit,
        offset=offset,
    )
    items = [_movement_out(row) for row in rows]
    count = len(items)
    return StockMovementListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )


@router.get(
    "/low-stock",
    response_model=LowStockListOut,
    summary="List low-stock products",
    responses=error_responses(422, 500, path="/inventory/low-stock"),
)
def list_low_stock_products(
    threshold: int | None = Query(
        default=None,
        ge=0,
        description="Optional global threshold override. Defaults to each product's reorder level.",
    ),
    include_inactive: bool = Query(default=False),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=100, ge=1, le=500),
    ledger: LedgerEngine = Depends(get_ledger),
):
    rows, total = ledger.products.low_stock(
        threshold=threshold,
        include_inactive=include_inactive,
        limit=limit,
        offset=offset,
    )
    items = [product_out(row) for row in rows]
    count = len(items)
    return LowStockListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )


@router.get(
    "/reconcile",
    response_model=ReconcileOut,
    summary="Compare cached stock with the movement ledger",
    responses=error_responses(500, path="/inventory/reconcile"),
)
def reconcile_stock(ledger: LedgerEngine = Depends(get_ledger)):
    discrepancies = ledger.reconcile()
    return ReconcileOut(
        ok=not discrepancies,
        discrepancies=[
            StockDiscrepancyOut(
                product_id=item.product_id,
                sku=item.sku,
                cached_qty=item.cached_qty,
                ledger_qty=item.ledger_qty,
            )
            for item in discrepancies
        ],
    )
