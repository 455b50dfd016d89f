from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from stockroom.core.config import settings
from stockroom.db.session import SessionLocal
from stockroom.services.dashboard_service import DashboardService
from stockroom.services.document_service import DocumentWorkflow
from stockroom.services.ledger_service import LedgerEngine
from stockroom.services.registry_service import ProductRegistry, WarehouseRegistry


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_product_registry(db: Session = Depends(get_db)) -> ProductRegistry:
    return ProductRegistry(db, default_reorder_level=settings.low_stock_default_threshold)


def get_warehouse_registry(db: Session = Depends(get_db)) -> WarehouseRegistry:
    return WarehouseRegistry(db)


def get_ledger(db: Session = Depends(get_db)) -> LedgerEngine:
    return LedgerEngine(db, allow_backorders=settings.allow_backorders)


def get_workflow(ledger: LedgerEngine = Depends(get_ledger)) -> DocumentWorkflow:
    return DocumentWorkflow(ledger)


def get_dashboard(db: Session = Depends(get_db)) -> DashboardService:
    return DashboardService(db)
