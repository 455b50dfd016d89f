from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockroom.core.money import ZERO_MONEY, to_money
from stockroom.models.document import StockDocument
from stockroom.models.product import Product


class DashboardService:
    def __init__(self, db: Session):
        self.db = db

    def _pending_count(self, kind: str) -> int:
        return int(
            self.db.execute(
                select(func.count(StockDocument.id)).where(
                    StockDocument.kind == kind,
                    StockDocument.status == "draft",
                )
            ).scalar_one()
        )

    def summary(self) -> dict:
        total_products = int(self.db.execute(select(func.count(Product.id))).scalar_one())
        low_stock_products = int(
            self.db.execute(
                select(func.count(Product.id)).where(
                    Product.is_active.is_(True),
                    Product.on_hand_qty <= Product.reorder_level,
                )
            ).scalar_one()
        )
        stock_value = self.db.execute(
            select(func.coalesce(func.sum(Product.on_hand_qty * Product.cost_price), 0)).where(
                Product.on_hand_qty > 0
            )
        ).scalar_one()
        total_stock_value: Decimal = to_money(stock_value or ZERO_MONEY)

        return {
            "total_products": total_products,
            "low_stock_products": low_stock_products,
            "pending_receipts": self._pending_count("receipt"),
            "pending_deliveries": self._pending_count("delivery"),
            "total_stock_value": float(total_stock_value),
        }
