"""
Supplier API routes: registry, delivery calendar, catalog and history.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from config import get_supplier, list_suppliers
from models.order import HistoryMonth, PreviousOrder
from models.product import Product
from models.supplier import SupplierCalendarResponse, SupplierConfig
from services.calendar_service import cutoff_instant, local_now, local_tz, normalize_delivery, urgency_stage
from services.history_service import get_history_service
from services.product_service import get_product_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/suppliers", tags=["Suppliers"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("", response_model=list[SupplierConfig])
async def get_suppliers():
    """List configured suppliers."""
    return list_suppliers()


@router.get("/{supplier_key}/calendar", response_model=SupplierCalendarResponse)
async def get_calendar(
    supplier_key: str,
    delivery: Optional[str] = Query(None, description="Requested delivery date (YYYY-MM-DD)")
):
    """
    Normalized delivery date, last delivery date, cutoff and urgency stage.
    """
    try:
        supplier = get_supplier(supplier_key)
        now = local_now()
        dates = normalize_delivery(delivery, supplier.allowed_weekdays, now.date())

        return SupplierCalendarResponse(
            supplier_key=supplier.key,
            delivery_date=dates.delivery_date,
            last_delivery_date=dates.last_delivery_date,
            today=dates.today,
            cutoff_at=cutoff_instant(
                dates.delivery_date,
                supplier.cutoff_hour,
                supplier.cutoff_minute,
                tz=local_tz()
            ),
            stage=urgency_stage(dates.delivery_date, now, supplier.cutoff_hour, supplier.cutoff_minute),
            allowed_weekdays=supplier.allowed_weekdays,
        )

    except Exception as e:
        return handle_error(e)


@router.get("/{supplier_key}/products", response_model=list[Product])
async def get_products(supplier_key: str):
    """Active products of a supplier, sorted by name."""
    try:
        supplier = get_supplier(supplier_key)
        return get_product_service().get_catalog(supplier.key)

    except Exception as e:
        return handle_error(e)


@router.get("/{supplier_key}/history", response_model=list[HistoryMonth])
async def get_history(supplier_key: str):
    """Past orders of the last 12 months, grouped by month."""
    try:
        return get_history_service().get_history(supplier_key)

    except Exception as e:
        return handle_error(e)


@router.get("/{supplier_key}/last-order", response_model=PreviousOrder)
async def get_last_order(supplier_key: str):
    """Last delivered order with its lines."""
    try:
        return get_history_service().get_last_delivered(supplier_key)

    except Exception as e:
        return handle_error(e)
