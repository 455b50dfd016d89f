"""
Stock ledger.

The movement table is the source of truth. ``Product.on_hand_qty`` is a cached
projection of it and must always equal the signed sum of the product's
movement deltas. Every write goes through ``append``, which locks the product
row, bumps the cached quantity with a single conditional UPDATE that also
enforces the stock floor, then inserts the movement inside the caller's
transaction.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from stockroom.core.errors import InactiveEntity, InsufficientStock, InvalidMovement
from stockroom.core.id_utils import generate_shortuuid
from stockroom.models.movement import MOVEMENT_KINDS, StockMovement
from stockroom.models.product import Product
from stockroom.services.registry_service import ProductRegistry, WarehouseRegistry

logger = logging.getLogger("stockroom.ledger")

# Expected sign of the delta per kind. Adjustments may go either way.
_KIND_SIGNS = {"receipt": 1, "delivery": -1}


@dataclass(frozen=True)
class StockDiscrepancy:
    product_id: str
    sku: str
    cached_qty: int
    ledger_qty: int


class LedgerEngine:
    def __init__(
        self,
        db: Session,
        *,
        products: ProductRegistry | None = None,
        warehouses: WarehouseRegistry | None = None,
        allow_backorders: bool = False,
    ):
        self.db = db
        self.products = products or ProductRegistry(db)
        self.warehouses = warehouses or WarehouseRegistry(db)
        self.allow_backorders = allow_backorders

    def append(
        self,
        *,
        product_id: str,
        warehouse_id: str,
        delta: int,
        kind: str,
        note: str | None = None,
        document_id: str | None = None,
        document_line_id: str | None = None,
    ) -> StockMovement:
        """Stage one movement in the current transaction without committing it."""
        if kind not in MOVEMENT_KINDS:
            raise InvalidMovement(f"Unknown movement kind: {kind}", kind=kind)
        if delta == 0:
            raise InvalidMovement("Movement quantity cannot be zero", delta=delta)
        expected_sign = _KIND_SIGNS.get(kind)
        if expected_sign is not None and delta * expected_sign < 0:
            raise InvalidMovement(f"A {kind} cannot have a delta of {delta}", kind=kind, delta=delta)

        product = self.products.get(product_id, for_update=True)
        warehouse = self.warehouses.get(warehouse_id)
        if not product.is_active:
            raise InactiveEntity("product", product.id)
        if not warehouse.is_active:
            raise InactiveEntity("warehouse", warehouse.id)

        # Floor check and increment in one statement; SQLite ignores FOR UPDATE.
        bump = (
            update(Product)
            .where(Product.id == product.id)
            .values(on_hand_qty=Product.on_hand_qty + delta)
            .execution_options(synchronize_session=False)
        )
        if kind == "delivery" and not self.allow_backorders:
            bump = bump.where(Product.on_hand_qty + delta >= 0)
        result = self.db.execute(bump)
        if result.rowcount == 0:
            self.db.refresh(product, ["on_hand_qty"])
            raise InsufficientStock(product.id, on_hand=product.on_hand_qty, requested=-delta)
        self.db.expire(product, ["on_hand_qty"])

        movement = StockMovement(
            id=generate_shortuuid(),
            product_id=product.id,
            warehouse_id=warehouse.id,
            qty_delta=delta,
            kind=kind,
            note=note,
            document_id=document_id,
            document_line_id=document_line_id,
        )
        self.db.add(movement)
        self.db.flush()
        return movement

    def record(
        self,
        product_id: str,
        warehouse_id: str,
        delta: int,
        kind: str,
        note: str | None = None,
        document_id: str | None = None,
    ) -> StockMovement:
        try:
            movement = self.append(
                product_id=product_id,
                warehouse_id=warehouse_id,
                delta=delta,
                kind=kind,
                note=note,
                document_id=document_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            json.dumps(
                {
                    "event": "stock.movement_recorded",
                    "movement_id": movement.id,
                    "product_id": product_id,
                    "warehouse_id": warehouse_id,
                    "qty_delta": delta,
                    "kind": kind,
                    "document_id": document_id,
                }
            )
        )
        return movement

    def adjust(self, product_id: str, warehouse_id: str, delta: int, note: str | None = None) -> StockMovement:
        return self.record(product_id, warehouse_id, delta, "adjustment", note=note)

    def current_stock(self, product_id: str) -> int:
        return self.products.get(product_id).on_hand_qty

    def recompute_stock(self, product_id: str) -> int:
        self.products.get(product_id)
        q = select(func.coalesce(func.sum(StockMovement.qty_delta), 0)).where(
            StockMovement.product_id == product_id
        )
        return int(self.db.execute(q).scalar_one())

    def is_low_stock(self, product_id: str) -> bool:
        product = self.products.get(product_id)
        return product.on_hand_qty <= product.reorder_level

    def reconcile(self) -> list[StockDiscrepancy]:
        ledger_totals = (
            select(
                StockMovement.product_id.label("product_id"),
                func.sum(StockMovement.qty_delta).label("qty"),
            )
            .group_by(StockMovement.product_id)
            .subquery()
        )
        ledger_qty = func.coalesce(ledger_totals.c.qty, 0)
        rows = self.db.execute(
            select(Product.id, Product.sku, Product.on_hand_qty, ledger_qty)
            .outerjoin(ledger_totals, ledger_totals.c.product_id == Product.id)
            .where(Product.on_hand_qty != ledger_qty)
            .order_by(Product.sku.asc())
        ).all()
        discrepancies = [
            StockDiscrepancy(product_id=row[0], sku=row[1], cached_qty=int(row[2]), ledger_qty=int(row[3]))
            for row in rows
        ]
        if discrepancies:
            logger.warning(
                json.dumps(
                    {
                        "event": "stock.reconcile_mismatch",
                        "products": [item.product_id for item in discrepancies],
                    }
                )
            )
        return discrepancies

    def list_movements(
        self,
        *,
        product_id: str | None = None,
        warehouse_id: str | None = None,
        kind: str | None = None,
        document_id: str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[StockMovement], int]:
        conditions = []
        if product_id:
            conditions.append(StockMovement.product_id == product_id)
        if warehouse_id:
            conditions.append(StockMovement.warehouse_id == warehouse_id)
        if kind:
            conditions.append(StockMovement.kind == kind)
        if document_id:
            conditions.append(StockMovement.document_id == document_id)
        if created_from:
            conditions.append(StockMovement.created_at >= created_from)
        if created_to:
            conditions.append(StockMovement.created_at <= created_to)

        count_stmt = select(func.count(StockMovement.id))
        stmt = select(StockMovement)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
            stmt = stmt.where(*conditions)

        total = int(self.db.execute(count_stmt).scalar_one())
        rows = self.db.execute(
            stmt.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return list(rows), total
