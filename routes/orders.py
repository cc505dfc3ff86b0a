"""
Order API routes.

Every write returns the recomputed OrderView so the editor never derives
rajout, locks or stage on its own.
"""

from fastapi import APIRouter, Body, Query
from fastapi.responses import JSONResponse
from typing import Literal, Optional
import structlog

from models.order import (
    CarryOverRequest,
    ItemEdit,
    Order,
    OrderView,
    OutboundMessage,
    SelectionUpdate,
)
from services.lifecycle_service import get_order_lifecycle
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


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
    # Unexpected error
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

@router.get("/{supplier_key}", response_model=OrderView)
async def get_order(
    supplier_key: str,
    delivery: Optional[str] = Query(None, description="Delivery date (YYYY-MM-DD)")
):
    """
    Get the editor state for a supplier.

    Missing, invalid or past delivery dates fall back to the next delivery
    day of the supplier.
    """
    try:
        return get_order_lifecycle().load(supplier_key, delivery)

    except Exception as e:
        return handle_error(e)


@router.put("/{supplier_key}/{delivery}/selection", response_model=OrderView)
async def save_selection(supplier_key: str, delivery: str, data: SelectionUpdate):
    """
    Replace the whole selection.

    Sent orders only grow: products are floored at what the supplier
    already received.

    Raises:
        422: Order past its cutoff
    """
    try:
        return get_order_lifecycle().save_selection(supplier_key, delivery, data.selection)

    except Exception as e:
        return handle_error(e)


@router.post("/{supplier_key}/{delivery}/items/{product_id}", response_model=OrderView)
async def edit_item(supplier_key: str, delivery: str, product_id: str, data: ItemEdit):
    """
    Apply one action to one product.

    Actions: toggle, set_quantity (qty = total), remove,
    set_rajout (qty = extra on top of the sent quantity), remove_rajout.
    """
    try:
        return get_order_lifecycle().edit_item(
            supplier_key,
            delivery,
            product_id,
            action=data.action,
            qty=data.qty
        )

    except Exception as e:
        return handle_error(e)


@router.post("/{supplier_key}/{delivery}/send", response_model=OrderView)
async def send_order(
    supplier_key: str,
    delivery: str,
    data: Optional[SelectionUpdate] = Body(None)
):
    """
    Send the initial order and freeze its baseline.

    Raises:
        422: Nothing selected, or order already sent
    """
    try:
        selection = data.selection if data is not None and data.selection else None
        return get_order_lifecycle().send(supplier_key, delivery, selection=selection)

    except Exception as e:
        return handle_error(e)


@router.post("/{supplier_key}/{delivery}/absorb-rajout", response_model=OrderView)
async def absorb_rajout(supplier_key: str, delivery: str):
    """
    Confirm the supplier received the rajout; current totals become the
    new baseline.
    """
    try:
        return get_order_lifecycle().absorb_rajout(supplier_key, delivery)

    except Exception as e:
        return handle_error(e)


@router.post("/{supplier_key}/{delivery}/archive", response_model=Order)
async def archive_order(supplier_key: str, delivery: str):
    """Archive a sent order after reception."""
    try:
        return get_order_lifecycle().archive(supplier_key, delivery)

    except Exception as e:
        return handle_error(e)


@router.post("/{supplier_key}/{delivery}/carry-over", response_model=OrderView)
async def carry_over(
    supplier_key: str,
    delivery: str,
    data: Optional[CarryOverRequest] = Body(None)
):
    """Add the products of the last delivered order that are not selected yet."""
    try:
        product_ids = data.product_ids if data is not None else None
        return get_order_lifecycle().carry_over(supplier_key, delivery, product_ids=product_ids)

    except Exception as e:
        return handle_error(e)


@router.get("/{supplier_key}/{delivery}/message", response_model=OutboundMessage)
async def get_message(
    supplier_key: str,
    delivery: str,
    kind: Literal["initial", "rajout"] = Query("initial", description="Message kind"),
    lang: Optional[Literal["fr", "en"]] = Query(None, description="Message language")
):
    """Text and e-mail subject to send to the supplier."""
    try:
        return get_order_lifecycle().compose_message(supplier_key, delivery, kind=kind, lang=lang)

    except Exception as e:
        return handle_error(e)
