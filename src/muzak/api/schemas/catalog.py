"""API schemas for catalog ingestion and replication.

Hey future me - the web client and the mirror instance both speak camelCase, so request
models accept the camelCase alias (and the snake_case name, handy in tests). Responses
are plain dicts built from the entities' to_dict(), which already is the wire format.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from muzak.application.services.catalog_service import DeletionResult, IngestionResult
from muzak.domain.entities import Album, Artist, CatalogSnapshot, Track
from muzak.domain.exceptions import ValidationException


class ScanPathRequest(BaseModel):
    """Request schema for scanning a server-local folder."""

    model_config = ConfigDict(populate_by_name=True)

    folder_path: str = Field(
        ..., alias="folderPath", min_length=1, description="Directory on the server"
    )


class RemoteIngestRequest(BaseModel):
    """Request schema for adding a shared Drive file or folder."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., min_length=1, description="Drive share link or bare file id")
    force_compilation: bool = Field(
        default=False,
        alias="forceCompilation",
        description="Treat every album found as a compilation",
    )


class DeleteAlbumsRequest(BaseModel):
    """Request schema for deleting albums."""

    model_config = ConfigDict(populate_by_name=True)

    album_ids: list[str] = Field(..., alias="albumIds", min_length=1)


class SnapshotPayload(BaseModel):
    """Full catalog state as pushed by a mirror instance.

    All three arrays are required; an incomplete payload is rejected with 422 before
    anything touches the catalog.
    """

    albums: list[dict[str, Any]]
    tracks: list[dict[str, Any]]
    artists: list[dict[str, Any]]

    def to_snapshot(self) -> CatalogSnapshot:
        """Build entities from the documents.

        Raises:
            ValidationException: A document lacks a required field (id, title...)
        """
        try:
            return CatalogSnapshot(
                albums=[Album.from_dict(a) for a in self.albums],
                tracks=[Track.from_dict(t) for t in self.tracks],
                artists=[Artist.from_dict(a) for a in self.artists],
            )
        except TypeError as e:
            raise ValidationException(f"Malformed snapshot document: {e}") from e


def ingestion_response(result: IngestionResult) -> dict[str, Any]:
    return {
        "success": result.success,
        "message": result.message,
        "albums": [a.to_dict() for a in result.albums],
        "tracksCount": result.tracks_count,
        "artistsCount": result.artists_count,
        "skipped": result.skipped,
        "failed": result.failed,
    }


def deletion_response(result: DeletionResult) -> dict[str, Any]:
    return {
        "success": result.success,
        "message": result.message,
        "deletedAlbums": result.deleted_albums,
        "deletedTracks": result.deleted_tracks,
        "prunedArtists": result.pruned_artists,
    }


def snapshot_response(snapshot: CatalogSnapshot) -> dict[str, Any]:
    return {"success": True, **snapshot.to_dict(), "counts": snapshot.counts()}
