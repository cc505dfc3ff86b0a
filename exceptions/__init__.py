"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Persistence
    PersistenceError,
    explain_database_error,

    # Orders
    OrderNotFoundError,
    InvalidOrderIdError,
    InvalidDeliveryDateError,
    EmptyOrderError,
    InvalidStatusTransitionError,
    OrderLockedError,
    NoRajoutError,

    # Suppliers
    SupplierNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Persistence
    "PersistenceError",
    "explain_database_error",

    # Orders
    "OrderNotFoundError",
    "InvalidOrderIdError",
    "InvalidDeliveryDateError",
    "EmptyOrderError",
    "InvalidStatusTransitionError",
    "OrderLockedError",
    "NoRajoutError",

    # Suppliers
    "SupplierNotFoundError",
]
