"""
Product service: supplier catalogs.

Catalog rows come from several generations of the products table, so
names, prices and departments are read through the normalizers in
department_service rather than fixed column names.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.product import Product
from services.department_service import (
    classify_department,
    is_active_product,
    product_emoji,
    product_name,
    product_price,
)
from utils.text_utils import fold
from exceptions import PersistenceError

logger = structlog.get_logger(__name__)


def product_from_row(row: dict, supplier_key: str = "") -> Product:
    """Normalize a raw products row."""
    return Product(
        id=str(row["id"]),
        supplier_key=row.get("supplier_key") or supplier_key,
        name=product_name(row),
        unit_price=product_price(row),
        department=classify_department(row),
        emoji=product_emoji(row),
        active=is_active_product(row),
    )


class ProductService:
    """
    Product business logic.

    Read-only access to the products table.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "products"

    def get_catalog(self, supplier_key: str, active_only: bool = True) -> list[Product]:
        """
        Products of one supplier, sorted by name (accent and case insensitive).

        Args:
            supplier_key: Supplier key
            active_only: Skip rows flagged inactive

        Returns:
            List of Product (empty when the supplier has none)
        """
        logger.debug("getting_catalog", supplier_key=supplier_key)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("supplier_key", supplier_key)
                .execute()
            )
        except Exception as e:
            logger.error("get_catalog_failed", supplier_key=supplier_key, error=str(e))
            raise PersistenceError("select", e)

        products = [
            product_from_row(row, supplier_key)
            for row in result.data or []
            if row.get("id") is not None
        ]
        if active_only:
            products = [p for p in products if p.active]

        products.sort(key=lambda p: (fold(p.name), p.id))

        logger.info("catalog_loaded", supplier_key=supplier_key, count=len(products))
        return products

    def get_catalog_map(self, supplier_key: str) -> dict[str, Product]:
        """Every product of a supplier (inactive included) keyed by id."""
        return {p.id: p for p in self.get_catalog(supplier_key, active_only=False)}


# Singleton instance
_product_service: Optional[ProductService] = None


def get_product_service() -> ProductService:
    """Get or create ProductService instance."""
    global _product_service
    if _product_service is None:
        _product_service = ProductService()
    return _product_service
