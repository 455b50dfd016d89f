from datetime import date

from fastapi import APIRouter, Depends, Query

from stockroom.core.api_docs import error_responses
from stockroom.core.deps import get_workflow
from stockroom.core.errors import UnknownDocument
from stockroom.core.money import line_total
from stockroom.models.document import StockDocument
from stockroom.schemas.common import PaginationMeta
from stockroom.schemas.document import (
    DocumentCreateIn,
    DocumentLineIn,
    DocumentLineOut,
    DocumentListOut,
    DocumentOut,
    DocumentUpdateIn,
)
from stockroom.services.document_service import DocumentWorkflow, DraftLine, document_total


def _document_out(document: StockDocument) -> DocumentOut:
    return DocumentOut(
        id=document.id,
        kind=document.kind,
        reference=document.reference,
        counterparty=document.counterparty,
        warehouse_id=document.warehouse_id,
        document_date=document.document_date,
        notes=document.notes,
        status=document.status,
        total=float(document_total(document)),
        lines=[
            DocumentLineOut(
                id=line.id,
                line_no=line.line_no,
                product_id=line.product_id,
                qty=line.qty,
                unit_price=float(line.unit_price),
                line_total=float(line_total(line.qty, line.unit_price)),
            )
            for line in document.lines
        ],
        validated_at=document.validated_at,
        cancelled_at=document.cancelled_at,
        created_at=document.created_at,
    )


def _draft_lines(lines: list[DocumentLineIn]) -> list[DraftLine]:
    return [DraftLine(product_id=line.product_id, qty=line.qty, unit_price=line.unit_price) for line in lines]


def build_document_router(kind: str, *, prefix: str, tag: str, noun: str) -> APIRouter:
    """Receipts and deliveries share one workflow; only the kind differs."""
    router = APIRouter(prefix=prefix, tags=[tag])

    def _document_of_kind(workflow: DocumentWorkflow, document_id: str) -> StockDocument:
        document = workflow.get(document_id)
        if document.kind != kind:
            raise UnknownDocument(document_id)
        return document

    @router.post(
        "",
        response_model=DocumentOut,
        summary=f"Create draft {noun}",
        responses=error_responses(404, 409, 422, 500, path=prefix),
        name=f"create_{kind}",
    )
    def create_document(
        payload: DocumentCreateIn,
        workflow: DocumentWorkflow = Depends(get_workflow),
    ):
        document = workflow.create_draft(
            kind,
            payload.reference,
            payload.counterparty,
            payload.warehouse_id,
            payload.document_date,
            _draft_lines(payload.lines),
            notes=payload.notes,
        )
        return _document_out(document)

    @router.get(
        "",
        response_model=DocumentListOut,
        summary=f"List {noun}s",
        responses=error_responses(422, 500, path=prefix),
        name=f"list_{kind}s",
    )
    def list_documents(
        status: str | None = Query(default=None, pattern="^(draft|validated|cancelled)$"),
        warehouse_id: str | None = Query(default=None),
        date_from: date | None = Query(default=None),
        date_to: date | None = Query(default=None),
        q: str | None = Query(default=None, max_length=100, description="Substring match on reference or counterparty"),
        limit: int = Query(default=50, ge=1, le=200, description="Page size"),
        offset: int = Query(default=0, ge=0, description="Pagination offset"),
        workflow: DocumentWorkflow = Depends(get_workflow),
    ):
        rows, total = workflow.list_documents(
            kind=kind,
            status=status,
            warehouse_id=warehouse_id,
            date_from=date_from,
            date_to=date_to,
            search=q,
            limit=limit,
            offset=offset,
        )
        items = [_document_out(row) for row in rows]
        count = len(items)
        return DocumentListOut(
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
        "/{document_id}",
        response_model=DocumentOut,
        summary=f"Get {noun}",
        responses=error_responses(404, 422, 500, path=f"{prefix}/{{document_id}}"),
        name=f"get_{kind}",
    )
    def get_document(
        document_id: str,
        workflow: DocumentWorkflow = Depends(get_workflow),
    ):
        return _document_out(_document_of_kind(workflow, document_id))

    @router.patch(
        "/{document_id}",
        response_model=DocumentOut,
        summary=f"Edit draft {noun}",
        responses=error_responses(404, 409, 422, 500, path=f"{prefix}/{{document_id}}"),
        name=f"update_{kind}",
    )
    def update_document(
        document_id: str,
        payload: DocumentUpdateIn,
        workflow: DocumentWorkflow = Depends(get_workflow),
    ):
        _document_of_kind(workflow, document_id)
        document = workflow.update_draft(
            document_id,
            counterparty=payload.counterparty,
            document_date=payload.document_date,
            notes=payload.notes,
            lines=_draft_lines(payload.lines) if payload.lines is not None else None,
        )
        return _document_out(document)

    @router.post(
        "/{document_id}/validate",
        response_model=DocumentOut,
        summary=f"Validate {noun}",
        description="Writes one stock movement per line. All lines succeed or none do.",
        responses=error_responses(400, 404, 409, 500, path=f"{prefix}/{{document_id}}/validate"),
        name=f"validate_{kind}",
    )
    def validate_document(
        document_id: str,
        workflow: DocumentWorkflow = Depends(get_workflow),
    ):
        _document_of_kind(workflow, document_id)
        return _document_out(workflow.validate(document_id))

    @router.post(
        "/{document_id}/cancel",
        response_model=DocumentOut,
        summary=f"Cancel draft {noun}",
        responses=error_responses(404, 409, 500, path=f"{prefix}/{{document_id}}/cancel"),
        name=f"cancel_{kind}",
    )
    def cancel_document(
        document_id: str,
        workflow: DocumentWorkflow = Depends(get_workflow),
    ):
        _document_of_kind(workflow, document_id)
        return _document_out(workflow.cancel(document_id))

    return router


receipts_router = build_document_router("receipt", prefix="/receipts", tag="receipts", noun="receipt")
deliveries_router = build_document_router("delivery", prefix="/deliveries", tag="deliveries", noun="delivery")
