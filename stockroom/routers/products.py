from fastapi import APIRouter, Depends, Query

from stockroom.core.api_docs import error_responses
from stockroom.core.deps import get_product_registry
from stockroom.models.product import Product
from stockroom.schemas.common import OkOut, PaginationMeta
from stockroom.schemas.product import ProductCreate, ProductListOut, ProductOut, ProductUpdate
from stockroom.services.registry_service import ProductRegistry

router = APIRouter(prefix="/products", tags=["products"])
MAX_PRODUCT_PAGE_SIZE = 500


def product_out(product: Product) -> ProductOut:
    return ProductOut(
        id=product.id,
        sku=product.sku,
        name=product.name,
        description=product.description,
        unit_of_measure=product.unit_of_measure,
        reorder_level=product.reorder_level,
        cost_price=float(product.cost_price),
        selling_price=float(product.selling_price),
        on_hand_qty=product.on_hand_qty,
        is_low_stock=product.on_hand_qty <= product.reorder_level,
        is_active=product.is_active,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


@router.post(
    "",
    response_model=ProductOut,
    summary="Create product",
    responses=error_responses(409, 422, 500, path="/products"),
)
def create_product(
    payload: ProductCreate,
    products: ProductRegistry = Depends(get_product_registry),
):
    product = products.create(
        sku=payload.sku,
        name=payload.name,
        description=payload.description,
        unit_of_measure=payload.unit_of_measure,
        reorder_level=payload.reorder_level,
        cost_price=payload.cost_price,
        selling_price=payload.selling_price,
        is_active=payload.is_active,
    )
    return product_out(product)


@router.get(
    "",
    response_model=ProductListOut,
    summary="List products",
    responses={
        200: {
            "description": "Paginated products",
            "content": {
                "application/json": {
                    "example": {
                        "items": [
                            {
                                "id": "product-id",
                                "sku": "CHR-OAK-01",
                                "name": "Oak Chair",
                                "description": None,
                                "unit_of_measure": "pcs",
                                "reorder_level": 10,
                                "cost_price": 45.0,
                                "selling_price": 80.0,
                                "on_hand_qty": 4,
                                "is_low_stock": True,
                                "is_active": True,
                                "created_at": "2026-10-19T10:00:00Z",
                                "updated_at": "2026-10-19T10:00:00Z",
                            }
                        ],
                        "pagination": {
                            "total": 1,
                            "limit": 50,
                            "offset": 0,
                            "count": 1,
                            "has_next": False,
                        },
                    }
                }
            },
        },
        **error_responses(422, 500, path="/products"),
    },
)
def list_products(
    q: str | None = Query(default=None, max_length=100, description="Substring match on name or SKU"),
    include_inactive: bool = Query(default=True),
    limit: int = Query(default=50, ge=1, le=MAX_PRODUCT_PAGE_SIZE, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    products: ProductRegistry = Depends(get_product_registry),
):
    rows, total = products.list_products(search=q, include_inactive=include_inactive, limit=limit, offset=offset)
    items = [product_out(row) for row in rows]
    count = len(items)
    return ProductListOut(
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
    "/{product_id}",
    response_model=ProductOut,
    summary="Get product",
    responses=error_responses(404, 422, 500, path="/products/{product_id}"),
)
def get_product(
    product_id: str,
    products: ProductRegistry = Depends(get_product_registry),
):
    return product_out(products.get(product_id))


@router.patch(
    "/{product_id}",
    response_model=ProductOut,
    summary="Update product",
    description="Updates catalog fields. On-hand quantity only changes through stock movements.",
    responses=error_responses(404, 409, 422, 500, path="/products/{product_id}"),
)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    products: ProductRegistry = Depends(get_product_registry),
):
    product = products.update(
        product_id,
        sku=payload.sku,
        name=payload.name,
        description=payload.description,
        unit_of_measure=payload.unit_of_measure,
        reorder_level=payload.reorder_level,
        cost_price=payload.cost_price,
        selling_price=payload.selling_price,
        is_active=payload.is_active,
    )
    return product_out(product)


@router.delete(
    "/{product_id}",
    response_model=OkOut,
    summary="Delete product",
    description="Only products never used by a document or movement can be deleted; deactivate the rest.",
    responses=error_responses(404, 409, 500, path="/products/{product_id}"),
)
def delete_product(
    product_id: str,
    products: ProductRegistry = Depends(get_product_registry),
):
    products.delete(product_id)
    return OkOut()
