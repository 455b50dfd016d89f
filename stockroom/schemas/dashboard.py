from pydantic import BaseModel


class DashboardSummaryOut(BaseModel):
    total_products: int
    low_stock_products: int
    pending_receipts: int
    pending_deliveries: int
    total_stock_value: float
