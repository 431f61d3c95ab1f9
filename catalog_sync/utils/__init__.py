"""
Utilities package for catalog-sync.

Exports shared logging helpers. Keep this package lightweight and free of
domain-specific logic.
"""

from catalog_sync.utils.logging import JsonFormatter, configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
    "JsonFormatter",
]
