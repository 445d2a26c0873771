"""Catalog endpoints: reads, album deletion and the replication contract."""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from muzak.api.dependencies import get_catalog_service
from muzak.api.schemas import (
    DeleteAlbumsRequest,
    SnapshotPayload,
    deletion_response,
    snapshot_response,
)
from muzak.application.services.catalog_service import CatalogService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/albums")
async def list_albums(
    service: CatalogService = Depends(get_catalog_service),
) -> list[dict[str, Any]]:
    return [a.to_dict() for a in service.list_albums()]


@router.delete("/albums")
async def delete_albums(
    request: DeleteAlbumsRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Delete albums, their tracks and artists left without tracks or albums."""
    result = await service.delete_albums(request.album_ids)
    return deletion_response(result)


@router.get("/albums/{album_id}/tracks")
async def album_tracks(
    album_id: str,
    service: CatalogService = Depends(get_catalog_service),
) -> list[dict[str, Any]]:
    """Tracks of one album ordered by disc and track number (404 for unknown ids)."""
    return [t.to_dict() for t in service.album_tracks(album_id)]


@router.get("/tracks")
async def list_tracks(
    service: CatalogService = Depends(get_catalog_service),
) -> list[dict[str, Any]]:
    return [t.to_dict() for t in service.list_tracks()]


@router.get("/artists")
async def list_artists(
    service: CatalogService = Depends(get_catalog_service),
) -> list[dict[str, Any]]:
    """Artists with albumCount derived from the albums they own."""
    return [a.to_dict() for a in service.list_artists()]


@router.get("/genres")
async def list_genres(
    service: CatalogService = Depends(get_catalog_service),
) -> list[dict[str, Any]]:
    return [g.to_dict() for g in service.list_genres()]


@router.get("/export-data")
async def export_data(
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Full catalog snapshot (what a mirror restores from)."""
    return snapshot_response(service.export_snapshot())


# Hey future me - a mirror POSTs its whole catalog here. An all-empty payload over a
# non-empty catalog is refused with 409 (EmptySnapshotRejectedError handler), everything
# else merges by id. Importing never pushes back to the mirror.
@router.post("/import-data")
async def import_data(
    payload: SnapshotPayload,
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Merge a pushed snapshot into the catalog."""
    counts = await service.import_snapshot(payload.to_snapshot())
    return {"success": True, "message": "Data imported", "counts": counts}
