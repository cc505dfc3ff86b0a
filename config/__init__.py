"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Function to get settings (for dependency injection)
    get_supabase_client: Cached Supabase client
    check_connection: Health check function
    get_supplier: Supplier registry lookup
"""

from config.settings import settings, get_settings, Settings
from config.database import (
    get_supabase_client,
    check_connection,
    SupabaseConnectionError,
    TABLES,
)
from config.suppliers import SUPPLIERS, get_supplier, list_suppliers

__all__ = [
    # Settings
    "settings",
    "get_settings",
    "Settings",

    # Database
    "get_supabase_client",
    "check_connection",
    "SupabaseConnectionError",
    "TABLES",

    # Suppliers
    "SUPPLIERS",
    "get_supplier",
    "list_suppliers",
]
