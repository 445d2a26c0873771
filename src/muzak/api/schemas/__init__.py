"""Request schemas and response builders for the music API."""

from muzak.api.schemas.catalog import (
    DeleteAlbumsRequest,
    RemoteIngestRequest,
    ScanPathRequest,
    SnapshotPayload,
    deletion_response,
    ingestion_response,
    snapshot_response,
)

__all__ = [
    "DeleteAlbumsRequest",
    "RemoteIngestRequest",
    "ScanPathRequest",
    "SnapshotPayload",
    "deletion_response",
    "ingestion_response",
    "snapshot_response",
]
