from decimal import Decimal

from sqlalchemy import exists, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockroom.core.errors import (
    DuplicateSku,
    DuplicateWarehouseCode,
    EntityInUse,
    InvalidValue,
    UnknownProduct,
    UnknownWarehouse,
)
from stockroom.core.id_utils import generate_shortuuid
from stockroom.core.money import ZERO_MONEY, to_money
from stockroom.models.document import StockDocument, StockDocumentLine
from stockroom.models.movement import StockMovement
from stockroom.models.product import Product
from stockroom.models.warehouse import Warehouse


def _clean_required(field: str, value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidValue(field, "cannot be empty")
    return cleaned


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def _non_negative_money(field: str, value: Decimal | int | float | str) -> Decimal:
    amount = to_money(value)
    if amount < ZERO_MONEY:
        raise InvalidValue(field, "must be zero or greater")
    return amount


def _non_negative_int(field: str, value: int) -> int:
    if value < 0:
        raise InvalidValue(field, "must be zero or greater")
    return value


class ProductRegistry:
    """Catalog entries. On-hand quantity is read-only here; see LedgerEngine."""

    def __init__(self, db: Session, *, default_reorder_level: int = 0):
        self.db = db
        self.default_reorder_level = default_reorder_level

    def get(self, product_id: str, *, for_update: bool = False) -> Product:
        stmt = select(Product).where(Product.id == product_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        product = self.db.execute(stmt).scalar_one_or_none()
        if not product:
            raise UnknownProduct(product_id)
        return product

    def _sku_taken(self, sku: str, *, exclude_id: str | None = None) -> bool:
        stmt = select(Product.id).where(func.lower(Product.sku) == sku.lower())
        if exclude_id:
            stmt = stmt.where(Product.id != exclude_id)
        return self.db.execute(stmt).first() is not None

    def create(
        self,
        *,
        sku: str,
        name: str,
        unit_of_measure: str = "unit",
        reorder_level: int | None = None,
        cost_price: Decimal | int | float | str = ZERO_MONEY,
        selling_price: Decimal | int | float | str = ZERO_MONEY,
        description: str | None = None,
        is_active: bool = True,
    ) -> Product:
        sku = _clean_required("sku", sku)
        if self._sku_taken(sku):
            raise DuplicateSku(sku)

        product = Product(
            id=generate_shortuuid(),
            sku=sku,
            name=_clean_required("name", name),
            description=_clean_optional(description),
            unit_of_measure=_clean_required("unit_of_measure", unit_of_measure),
            reorder_level=_non_negative_int(
                "reorder_level",
                self.default_reorder_level if reorder_level is None else reorder_level,
            ),
            cost_price=_non_negative_money("cost_price", cost_price),
            selling_price=_non_negative_money("selling_price", selling_price),
            on_hand_qty=0,
            is_active=is_active,
        )
        self.db.add(product)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateSku(sku)
        self.db.refresh(product)
        return product

    def update(
        self,
        product_id: str,
        *,
        sku: str | None = None,
        name: str | None = None,
        description: str | None = None,
        unit_of_measure: str | None = None,
        reorder_level: int | None = None,
        cost_price: Decimal | int | float | str | None = None,
        selling_price: Decimal | int | float | str | None = None,
        is_active: bool | None = None,
    ) -> Product:
        product = self.get(product_id)
        try:
            if sku is not None:
                sku = _clean_required("sku", sku)
                if self._sku_taken(sku, exclude_id=product.id):
                    raise DuplicateSku(sku)
                product.sku = sku
            if name is not None:
                product.name = _clean_required("name", name)
            if description is not None:
                product.description = _clean_optional(description)
            if unit_of_measure is not None:
                product.unit_of_measure = _clean_required("unit_of_measure", unit_of_measure)
            if reorder_level is not None:
                product.reorder_level = _non_negative_int("reorder_level", reorder_level)
            if cost_price is not None:
                product.cost_price = _non_negative_money("cost_price", cost_price)
            if selling_price is not None:
                product.selling_price = _non_negative_money("selling_price", selling_price)
            if is_active is not None:
                product.is_active = is_active
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateSku(sku if sku is not None else product.sku)
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(product)
        return product

    def list_products(
        self,
        *,
        search: str | None = None,
        include_inactive: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Product], int]:
        count_stmt = select(func.count(Product.id))
        stmt = select(Product)
        if not include_inactive:
            count_stmt = count_stmt.where(Product.is_active.is_(True))
            stmt = stmt.where(Product.is_active.is_(True))
        term = _clean_optional(search)
        if term:
            pattern = f"%{term.lower()}%"
            condition = or_(func.lower(Product.name).like(pattern), func.lower(Product.sku).like(pattern))
            count_stmt = count_stmt.where(condition)
            stmt = stmt.where(condition)

        total = int(self.db.execute(count_stmt).scalar_one())
        rows = self.db.execute(stmt.order_by(Product.name.asc(), Product.id.asc()).offset(offset).limit(limit)).scalars().all()
        return list(rows), total

    def low_stock(
        self,
        *,
        threshold: int | None = None,
        include_inactive: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Product], int]:
        limit_column = Product.reorder_level if threshold is None else threshold
        condition = Product.on_hand_qty <= limit_column
        count_stmt = select(func.count(Product.id)).where(condition)
        stmt = select(Product).where(condition)
        if not include_inactive:
            count_stmt = count_stmt.where(Product.is_active.is_(True))
            stmt = stmt.where(Product.is_active.is_(True))

        total = int(self.db.execute(count_stmt).scalar_one())
        rows = self.db.execute(
            stmt.order_by(Product.on_hand_qty.asc(), Product.name.asc()).offset(offset).limit(limit)
        ).scalars().all()
        return list(rows), total

    def delete(self, product_id: str) -> None:
        product = self.get(product_id)
        referenced = self.db.execute(
            select(
                or_(
                    exists().where(StockMovement.product_id == product.id),
                    exists().where(StockDocumentLine.product_id == product.id),
                )
            )
        ).scalar_one()
        if referenced:
            raise EntityInUse("product", product.id)
        self.db.delete(product)
        self.db.commit()


class WarehouseRegistry:
    def __init__(self, db: Session):
        self.db = db

    def get(self, warehouse_id: str) -> Warehouse:
        warehouse = self.db.get(Warehouse, warehouse_id)
        if not warehouse:
            raise UnknownWarehouse(warehouse_id)
        return warehouse

    def create(self, *, code: str, name: str, address: str | None = None, is_active: bool = True) -> Warehouse:
        normalized_code = _clean_required("code", code).upper()
        taken = self.db.execute(
            select(Warehouse.id).where(func.upper(Warehouse.code) == normalized_code)
        ).first()
        if taken:
            raise DuplicateWarehouseCode(normalized_code)

        warehouse = Warehouse(
            id=generate_shortuuid(),
            code=normalized_code,
            name=_clean_required("name", name),
            address=_clean_optional(address),
            is_active=is_active,
        )
        self.db.add(warehouse)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateWarehouseCode(normalized_code)
        self.db.refresh(warehouse)
        return warehouse

    def update(
        self,
        warehouse_id: str,
        *,
        name: str | None = None,
        address: str | None = None,
        is_active: bool | None = None,
    ) -> Warehouse:
        warehouse = self.get(warehouse_id)
        try:
            if address is not None:
                warehouse.address = _clean_optional(address)
            if is_active is not None:
                warehouse.is_active = is_active
            if name is not None:
                warehouse.name = _clean_required("name", name)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(warehouse)
        return warehouse

    def list_warehouses(
        self,
        *,
        search: str | None = None,
        include_inactive: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Warehouse], int]:
        count_stmt = select(func.count(Warehouse.id))
        stmt = select(Warehouse)
        if not include_inactive:
            count_stmt = count_stmt.where(Warehouse.is_active.is_(True))
            stmt = stmt.where(Warehouse.is_active.is_(True))
        term = _clean_optional(search)
        if term:
            pattern = f"%{term.lower()}%"
            condition = or_(func.lower(Warehouse.name).like(pattern), func.lower(Warehouse.code).like(pattern))
            count_stmt = count_stmt.where(condition)
            stmt = stmt.where(condition)

        total = int(self.db.execute(count_stmt).scalar_one())
        rows = self.db.execute(stmt.order_by(Warehouse.code.asc()).offset(offset).limit(limit)).scalars().all()
        return list(rows), total

    def delete(self, warehouse_id: str) -> None:
        warehouse = self.get(warehouse_id)
        referenced = self.db.execute(
            select(
                or_(
                    exists().where(StockMovement.warehouse_id == warehouse.id),
                    exists().where(StockDocument.warehouse_id == warehouse.id),
                )
            )
        ).scalar_one()
        if referenced:
            raise EntityInUse("warehouse", warehouse.id)
        self.db.delete(warehouse)
        self.db.commit()
