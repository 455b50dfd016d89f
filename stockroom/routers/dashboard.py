from fastapi import APIRouter, Depends

from stockroom.core.api_docs import error_responses
from stockroom.core.deps import get_dashboard
from stockroom.schemas.dashboard import DashboardSummaryOut
from stockroom.services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/summary",
    response_model=DashboardSummaryOut,
    summary="Inventory KPIs",
    description="Product count, low-stock count, pending (draft) receipts and deliveries, and stock value at cost.",
    responses=error_responses(500, path="/dashboard/summary"),
)
def dashboard_summary(dashboard: DashboardService = Depends(get_dashboard)):
    return DashboardSummaryOut(**dashboard.summary())
