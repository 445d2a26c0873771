"""Catalog persistence: in-memory repository and SQLAlchemy document store."""

from muzak.infrastructure.persistence.catalog_repository import (
    CatalogRepository,
    DeletionOutcome,
    MergeOutcome,
)
from muzak.infrastructure.persistence.database import Database
from muzak.infrastructure.persistence.snapshot_store import SqlCatalogStore

__all__ = [
    "CatalogRepository",
    "Database",
    "DeletionOutcome",
    "MergeOutcome",
    "SqlCatalogStore",
]
