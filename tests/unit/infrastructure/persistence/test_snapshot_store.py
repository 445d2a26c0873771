"""Tests for SqlCatalogStore against a real SQLite file."""

from collections.abc import AsyncIterator

import pytest

from muzak.config import DatabaseSettings, Settings
from muzak.domain.entities import Album, Artist, CatalogSnapshot, Track
from muzak.infrastructure.persistence import Database, SqlCatalogStore


@pytest.fixture
async def database(tmp_path) -> AsyncIterator[Database]:
    settings = Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    )
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


def _snapshot() -> CatalogSnapshot:
    return CatalogSnapshot(
        albums=[
            Album(id="b-album", title="B", artist="Band", artist_id="band", cd_count=2),
            Album(
                id="a-album", title="A", artist="Band", artist_id="band",
                cover_art="data:image/jpeg;base64,AAAA",
            ),
        ],
        tracks=[
            Track(
                id="band-b-one", title="One", artist="Band", artist_id="band",
                album="B", album_id="b-album", album_artist="Band",
                album_artist_id="band", duration=181, file_path="gdrive://xyz",
                google_drive_id="xyz", disc_number=2,
            )
        ],
        artists=[Artist(id="band", name="Band", track_count=1)],
    )


class TestSqlCatalogStore:
    """Test wholesale load and save."""

    async def test_load_of_fresh_database_is_empty(self, database) -> None:
        """Test that nothing saved loads as an empty snapshot."""
        snapshot = await SqlCatalogStore(database).load()
        assert snapshot.is_empty

    async def test_save_then_load_keeps_order_and_fields(self, database) -> None:
        """Test that documents survive storage in insertion order."""
        store = SqlCatalogStore(database)

        await store.save(_snapshot())
        loaded = await store.load()

        assert [a.id for a in loaded.albums] == ["b-album", "a-album"]
        assert loaded.albums[0].cd_count == 2
        assert loaded.albums[1].cover_art == "data:image/jpeg;base64,AAAA"
        assert loaded.tracks[0].google_drive_id == "xyz"
        assert loaded.tracks[0].disc_number == 2
        assert loaded.artists[0].track_count == 1

    async def test_save_replaces_previous_catalog(self, database) -> None:
        """Test that a save drops records missing from the new snapshot."""
        store = SqlCatalogStore(database)
        await store.save(_snapshot())

        await store.save(
            CatalogSnapshot(artists=[Artist(id="other", name="Other", track_count=0)])
        )
        loaded = await store.load()

        assert loaded.albums == []
        assert loaded.tracks == []
        assert [a.id for a in loaded.artists] == ["other"]

    async def test_duplicate_ids_are_collapsed(self, database) -> None:
        """Test that a snapshot with a repeated id still saves."""
        store = SqlCatalogStore(database)
        first = Artist(id="band", name="Band", track_count=1)
        second = Artist(id="band", name="Band", track_count=5)

        await store.save(CatalogSnapshot(artists=[first, second]))
        loaded = await store.load()

        assert [(a.id, a.track_count) for a in loaded.artists] == [("band", 5)]
