import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError

from stockroom.core.errors import (
    DuplicateReference,
    EmptyLines,
    InvalidLine,
    InvalidTransition,
    InvalidValue,
    InventoryError,
    UnknownDocument,
    UnknownProduct,
)
from stockroom.core.id_utils import generate_shortuuid
from stockroom.core.money import ZERO_MONEY, line_total, to_money
from stockroom.models.document import DOCUMENT_KINDS, DOCUMENT_STATUSES, StockDocument, StockDocumentLine
from stockroom.services.ledger_service import LedgerEngine

logger = logging.getLogger("stockroom.documents")

_DELTA_SIGNS = {"receipt": 1, "delivery": -1}


@dataclass(frozen=True)
class DraftLine:
    product_id: str
    qty: int
    unit_price: Decimal | int | float | str = ZERO_MONEY


def document_total(document: StockDocument) -> Decimal:
    total = ZERO_MONEY
    for line in document.lines:
        total += line_total(line.qty, line.unit_price)
    return to_money(total)


class DocumentWorkflow:
    """
    Receipts and deliveries.

    draft --validate--> validated
    draft --cancel----> cancelled

    Both targets are terminal. Validation writes one ledger movement per line,
    in line order, in the same transaction as the status change.
    """

    def __init__(self, ledger: LedgerEngine):
        self.ledger = ledger
        self.db = ledger.db
        self.products = ledger.products
        self.warehouses = ledger.warehouses

    def get(self, document_id: str, *, for_update: bool = False) -> StockDocument:
        stmt = select(StockDocument).where(StockDocument.id == document_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        document = self.db.execute(stmt).scalar_one_or_none()
        if not document:
            raise UnknownDocument(document_id)
        return document

    def _build_lines(self, lines: Sequence[DraftLine]) -> list[StockDocumentLine]:
        if not lines:
            raise EmptyLines()

        built: list[StockDocumentLine] = []
        for line_no, line in enumerate(lines, start=1):
            if isinstance(line.qty, bool) or not isinstance(line.qty, int) or line.qty <= 0:
                raise InvalidLine(line_no, "quantity must be a positive integer")
            try:
                unit_price = to_money(line.unit_price)
            except ArithmeticError:
                raise InvalidLine(line_no, "unit price is not a number")
            if unit_price < ZERO_MONEY:
                raise InvalidLine(line_no, "unit price cannot be negative")
            try:
                product = self.products.get(line.product_id)
            except UnknownProduct:
                raise InvalidLine(line_no, f"unknown product {line.product_id}")

            built.append(
                StockDocumentLine(
                    id=generate_shortuuid(),
                    line_no=line_no,
                    product_id=product.id,
                    qty=line.qty,
                    unit_price=unit_price,
                )
            )
        return built

    def _reference_taken(self, kind: str, reference: str) -> bool:
        return (
            self.db.execute(
                select(StockDocument.id).where(
                    StockDocument.kind == kind,
                    StockDocument.reference == reference,
                )
            ).first()
            is not None
        )

    def create_draft(
        self,
        kind: str,
        reference: str,
        counterparty: str,
        warehouse_id: str,
        document_date: date,
        lines: Sequence[DraftLine],
        notes: str | None = None,
    ) -> StockDocument:
        if kind not in DOCUMENT_KINDS:
            raise InvalidValue("kind", f"must be one of {', '.join(DOCUMENT_KINDS)}")
        if not lines:
            raise EmptyLines()

        reference = (reference or "").strip()
        if not reference:
            raise InvalidValue("reference", "cannot be empty")
        counterparty = (counterparty or "").strip()
        if not counterparty:
            raise InvalidValue("counterparty", "cannot be empty")
        if self._reference_taken(kind, reference):
            raise DuplicateReference(kind, reference)

        warehouse = self.warehouses.get(warehouse_id)
        document = StockDocument(
            id=generate_shortuuid(),
            kind=kind,
            reference=reference,
            counterparty=counterparty,
            warehouse_id=warehouse.id,
            document_date=document_date,
            notes=(notes or "").strip() or None,
            status="draft",
        )
        document.lines = self._build_lines(lines)
        self.db.add(document)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateReference(kind, reference)
        self.db.refresh(document)

        logger.info(
            json.dumps(
                {
                    "event": "document.drafted",
                    "document_id": document.id,
                    "kind": kind,
                    "reference": reference,
                    "lines": len(lines),
                }
            )
        )
        return document

    def update_draft(
        self,
        document_id: str,
        *,
        counterparty: str | None = None,
        document_date: date | None = None,
        notes: str | None = None,
        lines: Sequence[DraftLine] | None = None,
    ) -> StockDocument:
        try:
            document = self.get(document_id, for_update=True)
            if document.status != "draft":
                raise InvalidTransition(document.id, document.status, "edit")

            if counterparty is not None:
                cleaned = counterparty.strip()
                if not cleaned:
                    raise InvalidValue("counterparty", "cannot be empty")
                document.counterparty = cleaned
            if document_date is not None:
                document.document_date = document_date
            if notes is not None:
                document.notes = notes.strip() or None
            if lines is not None:
                new_lines = self._build_lines(lines)
                # Old rows must be gone before new ones reuse their line numbers.
                document.lines.clear()
                self.db.flush()
                document.lines.extend(new_lines)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(document)
        return document

    def _claim(self, document: StockDocument, action: str, **values) -> None:
        """Move a draft out of ``draft`` only if no one else already has."""
        if document.status != "draft":
            raise InvalidTransition(document.id, document.status, action)
        claimed = self.db.execute(
            update(StockDocument)
            .where(StockDocument.id == document.id, StockDocument.status == "draft")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            self.db.refresh(document, ["status"])
            raise InvalidTransition(document.id, document.status, action)

    def validate(self, document_id: str) -> StockDocument:
        try:
            document = self.get(document_id, for_update=True)
            self._claim(
                document,
                "validate",
                status="validated",
                validated_at=datetime.now(timezone.utc),
            )

            sign = _DELTA_SIGNS[document.kind]
            for line in document.lines:
                self.ledger.append(
                    product_id=line.product_id,
                    warehouse_id=document.warehouse_id,
                    delta=sign * line.qty,
                    kind=document.kind,
                    note=f"{document.kind} {document.reference}",
                    document_id=document.id,
                    document_line_id=line.id,
                )
            self.db.commit()
        except InventoryError as exc:
            self.db.rollback()
            logger.warning(
                json.dumps(
                    {
                        "event": "document.validate_rejected",
                        "document_id": document_id,
                        "code": exc.code,
                        "error": exc.message,
                    }
                )
            )
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(document)
        logger.info(
            json.dumps(
                {
                    "event": "document.validated",
                    "document_id": document.id,
                    "kind": document.kind,
                    "reference": document.reference,
                    "lines": len(document.lines),
                }
            )
        )
        return document

    def cancel(self, document_id: str) -> StockDocument:
        try:
            document = self.get(document_id, for_update=True)
            self._claim(
                document,
                "cancel",
                status="cancelled",
                cancelled_at=datetime.now(timezone.utc),
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(document)
        logger.info(
            json.dumps(
                {
                    "event": "document.cancelled",
                    "document_id": document.id,
                    "kind": document.kind,
                    "reference": document.reference,
                }
            )
        )
        return document

    def list_documents(
        self,
        *,
        kind: str | None = None,
        status: str | None = None,
        warehouse_id: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[StockDocument], int]:
        if status is not None and status not in DOCUMENT_STATUSES:
            raise InvalidValue("status", f"must be one of {', '.join(DOCUMENT_STATUSES)}")

        conditions = []
        if kind:
            conditions.append(StockDocument.kind == kind)
        if status:
            conditions.append(StockDocument.status == status)
        if warehouse_id:
            conditions.append(StockDocument.warehouse_id == warehouse_id)
        if date_from:
            conditions.append(StockDocument.document_date >= date_from)
        if date_to:
            conditions.append(StockDocument.document_date <= date_to)
        term = (search or "").strip()
        if term:
            pattern = f"%{term.lower()}%"
            conditions.append(
                or_(
                    func.lower(StockDocument.reference).like(pattern),
                    func.lower(StockDocument.counterparty).like(pattern),
                )
            )

        count_stmt = select(func.count(StockDocument.id))
        stmt = select(StockDocument)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
            stmt = stmt.where(*conditions)

        total = int(self.db.execute(count_stmt).scalar_one())
        rows = self.db.execute(
            stmt.order_by(StockDocument.document_date.desc(), StockDocument.created_at.desc(), StockDocument.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return list(rows), total
