import threading
from datetime import date

import pytest
from sqlalchemy import create_engine, func, select, update
from sqlalchemy.orm import sessionmaker

from stockroom.core.errors import (
    InactiveEntity,
    InsufficientStock,
    InvalidMovement,
    InvalidTransition,
    UnknownProduct,
    UnknownWarehouse,
)
from stockroom.db.base import Base
from stockroom.models.movement import StockMovement
from stockroom.models.product import Product
from stockroom.services.document_service import DocumentWorkflow, DraftLine
from stockroom.services.ledger_service import LedgerEngine
from stockroom.services.registry_service import ProductRegistry, WarehouseRegistry


def _movement_count(db, product_id: str) -> int:
    return int(
        db.execute(
            select(func.count(StockMovement.id)).where(StockMovement.product_id == product_id)
        ).scalar_one()
    )


def test_receipt_adds_quantity_and_writes_one_movement(db, ledger, workflow, warehouse, make_product, seed_stock):
    product = make_product()
    seed_stock(product.id, warehouse.id, 5)
    assert ledger.current_stock(product.id) == 5
    movements_before = _movement_count(db, product.id)

    receipt = workflow.create_draft(
        "receipt",
        "REC-100",
        "Acme Supplies",
        warehouse.id,
        date(2026, 10, 19),
        [DraftLine(product_id=product.id, qty=10, unit_price="2.00")],
    )
    workflow.validate(receipt.id)

    assert ledger.current_stock(product.id) == 15
    assert _movement_count(db, product.id) == movements_before + 1
    rows, _ = ledger.list_movements(document_id=receipt.id)
    assert len(rows) == 1
    assert rows[0].qty_delta == 10
    assert rows[0].kind == "receipt"
    assert rows[0].warehouse_id == warehouse.id


def test_delivery_beyond_on_hand_is_rejected_without_side_effects(db, ledger, workflow, warehouse, make_product, seed_stock):
    product = make_product()
    seed_stock(product.id, warehouse.id, 15)
    movements_before = _movement_count(db, product.id)

    delivery = workflow.create_draft(
        "delivery",
        "DEL-100",
        "Jane Customer",
        warehouse.id,
        date(2026, 10, 19),
        [DraftLine(product_id=product.id, qty=20, unit_price="3.50")],
    )
    with pytest.raises(InsufficientStock) as exc_info:
        workflow.validate(delivery.id)

    assert exc_info.value.on_hand == 15
    assert exc_info.value.requested == 20
    assert ledger.current_stock(product.id) == 15
    assert _movement_count(db, product.id) == movements_before
    assert workflow.get(delivery.id).status == "draft"


def test_cached_stock_always_equals_ledger_sum(ledger, workflow, warehouse, make_product, seed_stock):
    widget = make_product()
    gadget = make_product()
    seed_stock(widget.id, warehouse.id, 40)
    seed_stock(gadget.id, warehouse.id, 3)

    delivery = workflow.create_draft(
        "delivery",
        "DEL-200",
        "Retailer",
        warehouse.id,
        date(2026, 10, 19),
        [
            DraftLine(product_id=widget.id, qty=12),
            DraftLine(product_id=gadget.id, qty=3),
        ],
    )
    workflow.validate(delivery.id)
    ledger.adjust(widget.id, warehouse.id, -4, note="cycle count")
    ledger.adjust(gadget.id, warehouse.id, 2, note="found in returns bay")

    failing = workflow.create_draft(
        "delivery",
        "DEL-201",
        "Retailer",
        warehouse.id,
        date(2026, 10, 19),
        [DraftLine(product_id=gadget.id, qty=50)],
    )
    with pytest.raises(InsufficientStock):
        workflow.validate(failing.id)

    for product_id, expected in ((widget.id, 24), (gadget.id, 2)):
        assert ledger.current_stock(product_id) == expected
        assert ledger.recompute_stock(product_id) == expected
    assert ledger.reconcile() == []


def test_low_stock_flag_tracks_reorder_level(ledger, workflow, warehouse, make_product, seed_stock):
    product = make_product(reorder_level=5)
    assert ledger.is_low_stock(product.id) is True

    seed_stock(product.id, warehouse.id, 6)
    assert ledger.is_low_stock(product.id) is False

    delivery = workflow.create_draft(
        "delivery",
        "DEL-300",
        "Walk-in",
        warehouse.id,
        date(2026, 10, 19),
        [DraftLine(product_id=product.id, qty=1)],
    )
    workflow.validate(delivery.id)
    assert ledger.current_stock(product.id) == 5
    assert ledger.is_low_stock(product.id) is True


def test_record_rejects_unknown_references(ledger, warehouse, make_product):
    product = make_product()

    with pytest.raises(UnknownProduct):
        ledger.record("missing-product", warehouse.id, 3, "receipt")
    with pytest.raises(UnknownWarehouse):
        ledger.record(product.id, "missing-warehouse", 3, "receipt")
    assert ledger.current_stock(product.id) == 0


def test_record_rejects_inactive_product_or_warehouse(ledger, products, warehouses, warehouse, make_product):
    product = make_product()
    products.update(product.id, is_active=False)
    with pytest.raises(InactiveEntity) as exc_info:
        ledger.record(product.id, warehouse.id, 3, "receipt")
    assert exc_info.value.entity_type == "product"

    other = make_product()
    warehouses.update(warehouse.id, is_active=False)
    with pytest.raises(InactiveEntity) as exc_info:
        ledger.record(other.id, warehouse.id, 3, "receipt")
    assert exc_info.value.entity_type == "warehouse"
    assert ledger.recompute_stock(other.id) == 0


def test_record_validates_delta_against_kind(ledger, warehouse, make_product):
    product = make_product()

    with pytest.raises(InvalidMovement):
        ledger.record(product.id, warehouse.id, 0, "adjustment")
    with pytest.raises(InvalidMovement):
        ledger.record(product.id, warehouse.id, -2, "receipt")
    with pytest.raises(InvalidMovement):
        ledger.record(product.id, warehouse.id, 2, "delivery")
    with pytest.raises(InvalidMovement):
        ledger.record(product.id, warehouse.id, 2, "transfer")


def test_adjustments_may_drive_stock_negative(ledger, warehouse, make_product):
    product = make_product()
    ledger.adjust(product.id, warehouse.id, 4)
    movement = ledger.adjust(product.id, warehouse.id, -7, note="shrinkage")

    assert movement.kind == "adjustment"
    assert ledger.current_stock(product.id) == -3
    assert ledger.recompute_stock(product.id) == -3


def test_direct_delivery_record_respects_stock_floor(ledger, warehouse, make_product):
    product = make_product()
    ledger.record(product.id, warehouse.id, 2, "receipt")

    with pytest.raises(InsufficientStock):
        ledger.record(product.id, warehouse.id, -3, "delivery")
    ledger.record(product.id, warehouse.id, -2, "delivery")
    assert ledger.current_stock(product.id) == 0


def test_backorders_allow_negative_deliveries_when_enabled(db, products, warehouses, warehouse, make_product):
    backorder_ledger = LedgerEngine(db, products=products, warehouses=warehouses, allow_backorders=True)
    workflow = DocumentWorkflow(backorder_ledger)
    product = make_product()

    delivery = workflow.create_draft(
        "delivery",
        "DEL-BO-1",
        "Patient Customer",
        warehouse.id,
        date(2026, 10, 19),
        [DraftLine(product_id=product.id, qty=4)],
    )
    workflow.validate(delivery.id)
    assert backorder_ledger.current_stock(product.id) == -4
    assert backorder_ledger.recompute_stock(product.id) == -4


def test_reconcile_reports_cached_quantity_drift(db, ledger, warehouse, make_product):
    product = make_product(sku="DRIFT-1")
    ledger.adjust(product.id, warehouse.id, 8)

    db.execute(update(Product).where(Product.id == product.id).values(on_hand_qty=11))
    db.commit()

    discrepancies = ledger.reconcile()
    assert len(discrepancies) == 1
    assert discrepancies[0].product_id == product.id
    assert discrepancies[0].sku == "DRIFT-1"
    assert discrepancies[0].cached_qty == 11
    assert discrepancies[0].ledger_qty == 8


def test_list_movements_filters_by_kind_and_product(ledger, warehouse, make_product, seed_stock):
    first = make_product()
    second = make_product()
    seed_stock(first.id, warehouse.id, 10)
    seed_stock(second.id, warehouse.id, 10)
    ledger.adjust(first.id, warehouse.id, -1, note="damaged")

    rows, total = ledger.list_movements(product_id=first.id)
    assert total == 2
    assert {row.kind for row in rows} == {"receipt", "adjustment"}

    rows, total = ledger.list_movements(kind="adjustment")
    assert total == 1
    assert rows[0].product_id == first.id
    assert rows[0].note == "damaged"

    rows, total = ledger.list_movements(warehouse_id=warehouse.id, limit=1)
    assert total == 3
    assert len(rows) == 1




@pytest.fixture()
def file_session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'stock.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _stocked_product(factory, qty: int) -> tuple[str, str]:
    with factory() as db:
        warehouse = WarehouseRegistry(db).create(code="RACE", name="Race Warehouse")
        product = ProductRegistry(db).create(sku="RACE-1", name="Contended item")
        LedgerEngine(db).record(product.id, warehouse.id, qty, "receipt")
        return product.id, warehouse.id


def _run_together(target, args_list: list[tuple]) -> None:
    threads = [threading.Thread(target=target, args=args) for args in args_list]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)


def _assert_ledger_matches(factory, product_id: str, expected: int) -> None:
    with factory() as db:
        ledger = LedgerEngine(db)
        assert ledger.current_stock(product_id) == expected
        assert ledger.recompute_stock(product_id) == expected
        assert ledger.reconcile() == []


class _RendezvousProductRegistry(ProductRegistry):
    """Holds every locked product read until all workers have made one."""

    def __init__(self, db, barrier: threading.Barrier):
        super().__init__(db)
        self.barrier = barrier

    def get(self, product_id: str, *, for_update: bool = False) -> Product:
        product = super().get(product_id, for_update=for_update)
        if for_update:
            self.barrier.wait(timeout=10)
        return product


class _RendezvousWorkflow(DocumentWorkflow):
    """Holds every locked document read until all workers have made one."""

    def __init__(self, ledger: LedgerEngine, barrier: threading.Barrier):
        super().__init__(ledger)
        self.barrier = barrier

    def get(self, document_id: str, *, for_update: bool = False):
        document = super().get(document_id, for_update=for_update)
        if for_update:
            self.barrier.wait(timeout=10)
        return document


def test_concurrent_delivery_records_never_oversell(file_session_factory):
    product_id, warehouse_id = _stocked_product(file_session_factory, 5)
    barrier = threading.Barrier(2)
    outcomes: list[str] = []

    def _deliver(note: str):
        with file_session_factory() as session:
            worker = LedgerEngine(session, products=_RendezvousProductRegistry(session, barrier))
            try:
                worker.record(product_id, warehouse_id, -5, "delivery", note=note)
                outcomes.append("recorded")
            except InsufficientStock:
                outcomes.append("rejected")
            except Exception as exc:
                outcomes.append(repr(exc))

    _run_together(_deliver, [("first",), ("second",)])

    assert sorted(outcomes) == ["recorded", "rejected"]
    _assert_ledger_matches(file_session_factory, product_id, 0)


def test_concurrent_delivery_validations_never_oversell(file_session_factory):
    product_id, warehouse_id = _stocked_product(file_session_factory, 5)
    with file_session_factory() as db:
        drafts = DocumentWorkflow(LedgerEngine(db))
        delivery_ids = [
            drafts.create_draft(
                "delivery",
                f"DEL-RACE-{n}",
                "Customer",
                warehouse_id,
                date(2026, 10, 19),
                [DraftLine(product_id=product_id, qty=5)],
            ).id
            for n in range(2)
        ]

    barrier = threading.Barrier(len(delivery_ids))
    outcomes: list[str] = []

    def _validate(document_id: str):
        with file_session_factory() as session:
            worker = _RendezvousWorkflow(LedgerEngine(session), barrier)
            try:
                worker.validate(document_id)
                outcomes.append("validated")
            except InsufficientStock:
                outcomes.append("rejected")
            except Exception as exc:
                outcomes.append(repr(exc))

    _run_together(_validate, [(document_id,) for document_id in delivery_ids])

    assert sorted(outcomes) == ["rejected", "validated"]
    _assert_ledger_matches(file_session_factory, product_id, 0)
    with file_session_factory() as db:
        statuses = sorted(DocumentWorkflow(LedgerEngine(db)).get(document_id).status for document_id in delivery_ids)
    assert statuses == ["draft", "validated"]


def test_same_receipt_validated_twice_concurrently_counts_once(file_session_factory):
    product_id, warehouse_id = _stocked_product(file_session_factory, 5)
    with file_session_factory() as db:
        receipt_id = DocumentWorkflow(LedgerEngine(db)).create_draft(
            "receipt",
            "REC-RACE",
            "Supplier",
            warehouse_id,
            date(2026, 10, 19),
            [DraftLine(product_id=product_id, qty=7)],
        ).id

    barrier = threading.Barrier(2)
    outcomes: list[str] = []

    def _validate():
        with file_session_factory() as session:
            worker = _RendezvousWorkflow(LedgerEngine(session), barrier)
            try:
                worker.validate(receipt_id)
                outcomes.append("validated")
            except InvalidTransition as exc:
                outcomes.append(f"already {exc.current_status}")
            except Exception as exc:
                outcomes.append(repr(exc))

    _run_together(_validate, [(), ()])

    assert sorted(outcomes) == ["already validated", "validated"]
    _assert_ledger_matches(file_session_factory, product_id, 12)
    with file_session_factory() as db:
        _, total = LedgerEngine(db).list_movements(document_id=receipt_id)
    assert total == 1
