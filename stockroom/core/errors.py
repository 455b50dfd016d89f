"""
Typed inventory errors.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API layer answers with. All of them are business-rule failures: callers can
recover, and nothing here is retried.
"""

from typing import Any


class InventoryError(Exception):
    code: str = "inventory_error"
    status_code: int = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_details(self) -> list[dict] | None:
        if not self.details:
            return None
        return [{"field": key, "message": str(value), "type": self.code} for key, value in self.details.items()]


class UnknownProduct(InventoryError):
    code = "unknown_product"
    status_code = 404

    def __init__(self, product_id: str):
        super().__init__(f"Product not found: {product_id}", product_id=product_id)
        self.product_id = product_id


class UnknownWarehouse(InventoryError):
    code = "unknown_warehouse"
    status_code = 404

    def __init__(self, warehouse_id: str):
        super().__init__(f"Warehouse not found: {warehouse_id}", warehouse_id=warehouse_id)
        self.warehouse_id = warehouse_id


class UnknownDocument(InventoryError):
    code = "unknown_document"
    status_code = 404

    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}", document_id=document_id)
        self.document_id = document_id


class InactiveEntity(InventoryError):
    code = "inactive_entity"
    status_code = 400

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type.capitalize()} is inactive: {entity_id}", entity_type=entity_type, entity_id=entity_id)
        self.entity_type = entity_type
        self.entity_id = entity_id


class InsufficientStock(InventoryError):
    code = "insufficient_stock"
    status_code = 400

    def __init__(self, product_id: str, *, on_hand: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: on hand {on_hand}, requested {requested}",
            product_id=product_id,
            on_hand=on_hand,
            requested=requested,
        )
        self.product_id = product_id
        self.on_hand = on_hand
        self.requested = requested


class InvalidMovement(InventoryError):
    code = "invalid_movement"
    status_code = 422


class DuplicateReference(InventoryError):
    code = "duplicate_reference"
    status_code = 409

    def __init__(self, kind: str, reference: str):
        super().__init__(f"{kind.capitalize()} reference already exists: {reference}", kind=kind, reference=reference)
        self.kind = kind
        self.reference = reference


class DuplicateSku(InventoryError):
    code = "duplicate_sku"
    status_code = 409

    def __init__(self, sku: str):
        super().__init__(f"SKU already exists: {sku}", sku=sku)
        self.sku = sku


class DuplicateWarehouseCode(InventoryError):
    code = "duplicate_warehouse_code"
    status_code = 409

    def __init__(self, code: str):
        super().__init__(f"Warehouse code already exists: {code}", warehouse_code=code)
        self.warehouse_code = code


class EmptyLines(InventoryError):
    code = "empty_lines"
    status_code = 422

    def __init__(self):
        super().__init__("A document needs at least one line")


class InvalidLine(InventoryError):
    code = "invalid_line"
    status_code = 422

    def __init__(self, line_no: int, reason: str):
        super().__init__(f"Line {line_no}: {reason}", line=line_no)
        self.line_no = line_no
        self.reason = reason


class InvalidTransition(InventoryError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, document_id: str, current_status: str, action: str):
        super().__init__(
            f"Cannot {action} a document in status '{current_status}'",
            document_id=document_id,
            status=current_status,
        )
        self.document_id = document_id
        self.current_status = current_status
        self.action = action


class EntityInUse(InventoryError):
    code = "entity_in_use"
    status_code = 409

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type.capitalize()} is still referenced: {entity_id}", entity_type=entity_type, entity_id=entity_id)
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidValue(InventoryError):
    code = "invalid_value"
    status_code = 422

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}", **{field: reason})
        self.field = field
        self.reason = reason
