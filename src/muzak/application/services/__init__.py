"""Application services - ingestion, aggregation and replication of the catalog."""

from muzak.application.services.batch_ingestion import (
    BatchIngestionCoordinator,
    FileCandidate,
    IngestionBatch,
    IngestionReport,
)
from muzak.application.services.catalog_service import (
    CatalogService,
    DeletionResult,
    IngestionResult,
    UploadedFile,
)
from muzak.application.services.cover_art import CoverArtOptimizer
from muzak.application.services.local_folder_scanner import LocalFolderScanner
from muzak.application.services.metadata_extractor import (
    ExtractionResult,
    MetadataExtractor,
)
from muzak.application.services.remote_folder_crawler import RemoteFolderCrawler
from muzak.application.services.replication_sync import ReplicationSync

__all__ = [
    "BatchIngestionCoordinator",
    "CatalogService",
    "CoverArtOptimizer",
    "DeletionResult",
    "ExtractionResult",
    "FileCandidate",
    "IngestionBatch",
    "IngestionReport",
    "IngestionResult",
    "LocalFolderScanner",
    "MetadataExtractor",
    "RemoteFolderCrawler",
    "ReplicationSync",
    "UploadedFile",
]
