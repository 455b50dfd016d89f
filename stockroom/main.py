from sqlalchemy import text

from stockroom.core.observability import (
    http_exception_handler,
    inventory_error_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from stockroom.core.config import settings
from stockroom.core.errors import InventoryError
from stockroom.db.session import engine
from stockroom.routers import dashboard, documents, inventory, products, warehouses

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Inventory API: product catalog, warehouses, receipts, deliveries and the stock movement ledger.\n\n"
        "Quick test flow:\n"
        "1. Create a warehouse (`POST /warehouses`) and a product (`POST /products`).\n"
        "2. Draft a receipt (`POST /receipts`) and validate it (`POST /receipts/{id}/validate`).\n"
        "3. Check `/inventory/stock/{product_id}` and `/inventory/movements`."
    ),
    swagger_ui_parameters={
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "products", "description": "Product catalog."},
        {"name": "warehouses", "description": "Warehouse registry."},
        {"name": "receipts", "description": "Incoming stock documents from suppliers."},
        {"name": "deliveries", "description": "Outgoing stock documents to customers."},
        {"name": "inventory", "description": "Stock levels, movement ledger, adjustments and reconciliation."},
        {"name": "dashboard", "description": "Inventory KPIs."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(InventoryError, inventory_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:5173"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    # Helps local web development where tooling uses dynamic localhost ports.
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(products.router)
app.include_router(warehouses.router)
app.include_router(documents.receipts_router)
app.include_router(documents.deliveries_router)
app.include_router(inventory.router)
app.include_router(dashboard.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}
