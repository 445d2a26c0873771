"""Ingestion endpoints: uploads, server folders and Drive share links."""

import asyncio
import logging
import shutil
import uuid
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO

import httpx
from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from muzak.api.dependencies import get_app_settings, get_catalog_service
from muzak.api.exception_handlers import error_message, status_code_for
from muzak.api.schemas import RemoteIngestRequest, ScanPathRequest, ingestion_response
from muzak.application.services.catalog_service import CatalogService, UploadedFile
from muzak.config import Settings
from muzak.domain.exceptions import DomainException, ValidationException

router = APIRouter()
logger = logging.getLogger(__name__)


def _logical_name(filename: str | None) -> str:
    """Client file name as a safe relative path ("Album/CD2/01.mp3" kept, ".." dropped)."""
    parts = [
        p
        for p in PurePosixPath((filename or "").replace("\\", "/")).parts
        if p not in ("", ".", "..", "/")
    ]
    return "/".join(parts) or "upload"


def _store_upload(source: BinaryIO, dest: Path) -> None:
    with dest.open("wb") as out:
        shutil.copyfileobj(source, out)


# Hey future me, uploads are written to storage.upload_path under a random prefix and
# STAY there: accepted tracks are served from that file (filePath). CatalogService deletes
# the ones that didn't make it into the catalog. The client's name, folders included, is
# kept as the logical path so "CD2" in a dropped directory still counts.
@router.post("/scan-files")
async def scan_files(
    files: list[UploadFile] = File(..., description="Audio files to ingest"),
    service: CatalogService = Depends(get_catalog_service),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """Ingest uploaded audio files.

    Returns:
        Added albums and track/artist counts
    """
    if len(files) > settings.ingestion.max_upload_files:
        raise ValidationException(
            f"Too many files ({len(files)}), at most "
            f"{settings.ingestion.max_upload_files} per upload"
        )

    upload_dir = settings.storage.upload_path
    await asyncio.to_thread(upload_dir.mkdir, parents=True, exist_ok=True)

    stored: list[UploadedFile] = []
    try:
        for upload in files:
            logical = _logical_name(upload.filename)
            dest = upload_dir / f"{uuid.uuid4().hex}-{PurePosixPath(logical).name}"
            await asyncio.to_thread(_store_upload, upload.file, dest)
            stored.append(UploadedFile(filename=logical, path=dest))
    except OSError:
        for uploaded in stored:
            uploaded.path.unlink(missing_ok=True)
        raise
    finally:
        for upload in files:
            await upload.close()

    result = await service.ingest_local(stored)
    return ingestion_response(result)


@router.post("/scan-path")
async def scan_path(
    request: ScanPathRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Ingest every audio file below a server-local folder."""
    result = await service.ingest_local_path(request.folder_path)
    return ingestion_response(result)


# Yo, this one answers failures as {"success": false, "error": ...} instead of the usual
# {"detail": ...}: the web client shows `error` in its add-link dialog. The status code
# still says what went wrong (403 not shared, 502 Drive trouble, 422 bad link/file).
@router.post("/add-from-google-drive", response_model=None)
async def add_from_google_drive(
    request: RemoteIngestRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any] | JSONResponse:
    """Ingest a shared Drive file or folder."""
    try:
        result = await service.ingest_remote(request.url, request.force_compilation)
    except (DomainException, httpx.HTTPError) as e:
        status_code = status_code_for(e)
        logger.warning(
            f"Drive ingestion failed ({status_code}): {error_message(e)}",
            extra={"url": request.url},
        )
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "error": error_message(e)},
        )
    return ingestion_response(result)
