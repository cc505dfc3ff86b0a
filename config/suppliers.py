"""
Supplier registry.

Each supplier delivers on fixed weekdays (0 = Sunday ... 6 = Saturday) and
stops accepting changes at the cutoff on the day before delivery.
"""

from config.settings import settings
from models.supplier import SupplierConfig
from exceptions import SupplierNotFoundError

# =============================================================================
# SUPPLIERS
# =============================================================================

SUPPLIERS: dict[str, SupplierConfig] = {
    "becus": SupplierConfig(
        key="becus",
        label="Bécus",
        allowed_weekdays=[4],  # Thursday
        cutoff_hour=settings.default_cutoff_hour,
        cutoff_minute=settings.default_cutoff_minute,
    ),
    "coupdepates": SupplierConfig(
        key="coupdepates",
        label="Coup de Pâtes",
        allowed_weekdays=[3, 5],  # Wednesday / Friday
        cutoff_hour=settings.default_cutoff_hour,
        cutoff_minute=settings.default_cutoff_minute,
    ),
    "moulins": SupplierConfig(
        key="moulins",
        label="Moulins Bourgeois",
        allowed_weekdays=[4],  # Thursday
        cutoff_hour=settings.default_cutoff_hour,
        cutoff_minute=settings.default_cutoff_minute,
    ),
}


def get_supplier(supplier_key: str) -> SupplierConfig:
    """
    Look up a supplier by key.

    Raises:
        SupplierNotFoundError: If the key is unknown
    """
    supplier = SUPPLIERS.get((supplier_key or "").strip().lower())
    if supplier is None:
        raise SupplierNotFoundError(supplier_key)
    return supplier


def list_suppliers() -> list[SupplierConfig]:
    """All configured suppliers, sorted by label."""
    return sorted(SUPPLIERS.values(), key=lambda s: s.label)
