import pytest
import os
from datetime import date
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

import stockroom.models  # noqa: F401
from stockroom.core.deps import get_db
from stockroom.db.base import Base
from stockroom.main import app
from stockroom.services.document_service import DocumentWorkflow, DraftLine
from stockroom.services.ledger_service import LedgerEngine
from stockroom.services.registry_service import ProductRegistry, WarehouseRegistry


@pytest.fixture()
def session_local():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_local):
    session = session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def products(db):
    return ProductRegistry(db)


@pytest.fixture()
def warehouses(db):
    return WarehouseRegistry(db)


@pytest.fixture()
def ledger(db, products, warehouses):
    return LedgerEngine(db, products=products, warehouses=warehouses)


@pytest.fixture()
def workflow(ledger):
    return DocumentWorkflow(ledger)


@pytest.fixture()
def warehouse(warehouses):
    return warehouses.create(code="wh-main", name="Main Warehouse", address="12 Dock Road")


@pytest.fixture()
def make_product(products):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Product {counter['n']}",
            "unit_of_measure": "pcs",
            "reorder_level": 5,
            "cost_price": "2.00",
            "selling_price": "3.50",
        }
        fields.update(overrides)
        return products.create(**fields)

    return _make


@pytest.fixture()
def seed_stock(workflow):
    counter = {"n": 0}

    def _seed(product_id: str, warehouse_id: str, qty: int):
        counter["n"] += 1
        receipt = workflow.create_draft(
            "receipt",
            f"SEED-{counter['n']:03d}",
            "Seed Supplier",
            warehouse_id,
            date(2026, 10, 1),
            [DraftLine(product_id=product_id, qty=qty, unit_price="1.00")],
        )
        return workflow.validate(receipt.id)

    return _seed


@pytest.fixture()
def test_context(session_local):
    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
