"""SQLAlchemy-backed catalog store (wholesale load / wholesale rewrite)."""

import logging
from typing import Any

from sqlalchemy import delete, select

from muzak.domain.entities import Album, Artist, CatalogSnapshot, Track
from muzak.domain.ports import ICatalogStore
from muzak.infrastructure.persistence.database import Database
from muzak.infrastructure.persistence.models import (
    AlbumDocument,
    ArtistDocument,
    TrackDocument,
    utc_now,
)

logger = logging.getLogger(__name__)


class SqlCatalogStore(ICatalogStore):
    """Catalog store keeping one document table per collection."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def load(self) -> CatalogSnapshot:
        """Load all three collections in stored order."""
        async with self._database.session_scope() as session:
            albums = await session.scalars(
                select(AlbumDocument).order_by(AlbumDocument.position)
            )
            tracks = await session.scalars(
                select(TrackDocument).order_by(TrackDocument.position)
            )
            artists = await session.scalars(
                select(ArtistDocument).order_by(ArtistDocument.position)
            )
            snapshot = CatalogSnapshot(
                albums=[Album.from_dict(row.document) for row in albums],
                tracks=[Track.from_dict(row.document) for row in tracks],
                artists=[Artist.from_dict(row.document) for row in artists],
            )

        counts = snapshot.counts()
        logger.info(
            f"Loaded catalog: {counts['albums']} albums, {counts['tracks']} tracks, "
            f"{counts['artists']} artists",
            extra=counts,
        )
        return snapshot

    # Hey future me - delete-all + insert-all inside ONE session_scope, so a crash mid-save
    # rolls back to the previous catalog instead of leaving half the tracks on disk.
    async def save(self, snapshot: CatalogSnapshot) -> None:
        """Rewrite all three collections in one transaction."""
        now = utc_now()
        async with self._database.session_scope() as session:
            for model, records in (
                (AlbumDocument, snapshot.albums),
                (TrackDocument, snapshot.tracks),
                (ArtistDocument, snapshot.artists),
            ):
                await session.execute(delete(model))
                session.add_all(
                    model(
                        id=record.id,
                        position=position,
                        document=record.to_dict(),
                        updated_at=now,
                    )
                    for position, record in enumerate(_unique_by_id(records))
                )

        logger.debug("Catalog saved", extra=snapshot.counts())


def _unique_by_id(records: list[Any]) -> list[Any]:
    """Collapse duplicate ids (primary key), keeping the last record at the first position."""
    by_id: dict[str, Any] = {}
    for record in records:
        by_id[record.id] = record
    return list(by_id.values())
