from fastapi import APIRouter, Depends, Query

from stockroom.core.api_docs import error_responses
from stockroom.core.deps import get_warehouse_registry
from stockroom.models.warehouse import Warehouse
from stockroom.schemas.common import OkOut, PaginationMeta
from stockroom.schemas.warehouse import WarehouseCreateIn, WarehouseListOut, WarehouseOut, WarehouseUpdateIn
from stockroom.services.registry_service import WarehouseRegistry

router = APIRouter(prefix="/warehouses", tags=["warehouses"])


def _warehouse_out(warehouse: Warehouse) -> WarehouseOut:
    return WarehouseOut(
        id=warehouse.id,
        code=warehouse.code,
        name=warehouse.name,
        address=warehouse.address,
        is_active=warehouse.is_active,
        created_at=warehouse.created_at,
        updated_at=warehouse.updated_at,
    )


@router.post(
    "",
    response_model=WarehouseOut,
    summary="Create warehouse",
    responses=error_responses(409, 422, 500, path="/warehouses"),
)
def create_warehouse(
    payload: WarehouseCreateIn,
    warehouses: WarehouseRegistry = Depends(get_warehouse_registry),
):
    warehouse = warehouses.create(
        code=payload.code,
        name=payload.name,
        address=payload.address,
        is_active=payload.is_active,
    )
    return _warehouse_out(warehouse)


@router.get(
    "",
    response_model=WarehouseListOut,
    summary="List warehouses",
    responses=error_responses(422, 500, path="/warehouses"),
)
def list_warehouses(
    q: str | None = Query(default=None, max_length=100, description="Substring match on name or code"),
    include_inactive: bool = Query(default=True),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    warehouses: WarehouseRegistry = Depends(get_warehouse_registry),
):
    rows, total = warehouses.list_warehouses(
        search=q,
        include_inactive=include_inactive,
        limit=limit,
        offset=offset,
    )
    items = [_warehouse_out(row) for row in rows]
    count = len(items)
    return WarehouseListOut(
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
    "/{warehouse_id}",
    response_model=WarehouseOut,
    summary="Get warehouse",
    responses=error_responses(404, 422, 500, path="/warehouses/{warehouse_id}"),
)
def get_warehouse(
    warehouse_id: str,
    warehouses: WarehouseRegistry = Depends(get_warehouse_registry),
):
    return _warehouse_out(warehouses.get(warehouse_id))


@router.patch(
    "/{warehouse_id}",
    response_model=WarehouseOut,
    summary="Update warehouse",
    responses=error_responses(404, 422, 500, path="/warehouses/{warehouse_id}"),
)
def update_warehouse(
    warehouse_id: str,
    payload: WarehouseUpdateIn,
    warehouses: WarehouseRegistry = Depends(get_warehouse_registry),
):
    warehouse = warehouses.update(
        warehouse_id,
        name=payload.name,
        address=payload.address,
        is_active=payload.is_active,
    )
    return _warehouse_out(warehouse)


@router.delete(
    "/{warehouse_id}",
    response_model=OkOut,
    summary="Delete warehouse",
    description="Warehouses referenced by a document or movement cannot be deleted; deactivate them instead.",
    responses=error_responses(404, 409, 500, path="/warehouses/{warehouse_id}"),
)
def delete_warehouse(
    warehouse_id: str,
    warehouses: WarehouseRegistry = Depends(get_warehouse_registry),
):
    warehouses.delete(warehouse_id)
    return OkOut()
