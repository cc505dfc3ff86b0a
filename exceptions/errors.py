"""
Custom exception classes for the application.

Validation errors are raised before any remote call. Persistence errors wrap
Supabase failures with a short explanation the bakery staff can act on.
Absent data (no order yet, no baseline, no cached selection) is never an
error.
"""

import re
from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "ORDER_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# PERSISTENCE ERRORS
# ===================

# (pattern, explanation) checked in order against the raw Supabase message
_DATABASE_HINTS = [
    (re.compile(r"row-level security|violates row-level", re.I),
     "Écriture bloquée par RLS. Ajoute des policies sur 'orders' et 'order_items'."),
    (re.compile(r"permission denied", re.I),
     "Permission refusée. Vérifie la clé anonyme et les policies RLS."),
    (re.compile(r"relation .* does not exist", re.I),
     "Table/vue introuvable (schéma ?)."),
    (re.compile(r"column .* does not exist", re.I),
     "Colonne manquante. Vérifie/ajoute les colonnes."),
    (re.compile(r"duplicate key value", re.I),
     "Déjà inséré pour ce produit (pas grave)."),
    (re.compile(r"no order row returned", re.I),
     "Commande invisible après écriture. Vérifie les policies RLS en lecture sur 'orders'."),
]


def explain_database_error(error: Any) -> str:
    """
    Translate a raw Supabase/PostgREST error into a short explanation.

    Unknown errors fall through unchanged.
    """
    raw = getattr(error, "message", None) or str(error)
    for pattern, hint in _DATABASE_HINTS:
        if pattern.search(raw):
            return hint
    return raw


class PersistenceError(DatabaseError):
    """
    Remote store call failed.

    The in-memory selection is left untouched so the caller can retry by
    saving again.
    """

    def __init__(self, operation: str, error: Any, details: Optional[dict] = None):
        raw = getattr(error, "message", None) or str(error)
        self.explanation = explain_database_error(error)
        super().__init__(
            operation=operation,
            message=self.explanation,
            details={"raw_error": raw, **(details or {})}
        )


# ===================
# ORDER ERRORS
# ===================

class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: str):
        super().__init__(
            resource="Order",
            identifier=order_id,
            code="ORDER_NOT_FOUND"
        )


class InvalidOrderIdError(ValidationError):
    """Order id missing or malformed."""

    def __init__(self, order_id: Any):
        super().__init__(
            code="INVALID_ORDER_ID",
            message="Order id is missing or invalid",
            details={"provided": repr(order_id)}
        )


class InvalidDeliveryDateError(ValidationError):
    """Delivery date cannot be parsed."""

    def __init__(self, value: Any):
        super().__init__(
            code="INVALID_DELIVERY_DATE",
            message="Delivery date must be an ISO date (YYYY-MM-DD)",
            details={"provided": str(value)}
        )


class EmptyOrderError(ValidationError):
    """Nothing selected, so there is nothing to send."""

    def __init__(self, supplier_key: str, delivery_date: str):
        super().__init__(
            code="ORDER_EMPTY",
            message="At least one product with a quantity is required",
            details={"supplier_key": supplier_key, "delivery_date": delivery_date}
        )


class InvalidStatusTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, current_status: str, new_status: str, terminal_status: str = "archived"):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status,
                "reason": f"Status can only move forward, and {terminal_status} is terminal"
            }
        )


class OrderLockedError(ValidationError):
    """Order is past its cutoff (or archived) and is read-only."""

    def __init__(self, order_id: Optional[str], cutoff_at: Optional[str] = None):
        super().__init__(
            code="ORDER_LOCKED",
            message="Order can no longer be modified",
            details={"order_id": order_id, "cutoff_at": cutoff_at}
        )


class NoRajoutError(ValidationError):
    """Absorb requested while there is no pending rajout."""

    def __init__(self, order_id: str):
        super().__init__(
            code="NO_RAJOUT",
            message="There is no rajout to confirm",
            details={"order_id": order_id}
        )


# ===================
# SUPPLIER ERRORS
# ===================

class SupplierNotFoundError(NotFoundError):
    """Supplier key is not in the registry."""

    def __init__(self, supplier_key: str):
        super().__init__(
            resource="Supplier",
            identifier=supplier_key,
            code="SUPPLIER_NOT_FOUND"
        )
