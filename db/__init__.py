"""Database helpers for the canonical catalog."""

from db.catalog_store import CatalogStore

__all__ = ["CatalogStore"]
