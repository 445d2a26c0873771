"""Tests for CatalogRepository merge, deletion and import rules."""

import pytest

from muzak.application.services.batch_ingestion import IngestionBatch
from muzak.domain.entities import Album, Artist, CatalogSnapshot, Track
from muzak.domain.exceptions import EmptySnapshotRejectedError
from muzak.infrastructure.persistence.catalog_repository import CatalogRepository


def _batch(*results) -> IngestionBatch:
    batch = IngestionBatch()
    for result in results:
        batch.add(result)
    return batch


@pytest.fixture
def repository() -> CatalogRepository:
    return CatalogRepository()


class TestMergeBatch:
    """Tests for merging ingestion runs."""

    def test_merge_creates_album_tracks_and_artists(
        self, repository, result_factory
    ) -> None:
        """Test a fresh merge."""
        outcome = repository.merge_batch(
            _batch(
                result_factory("One", "Daft Punk", "Discovery", genre="House"),
                result_factory("Two", "Daft Punk, Romanthony", "Discovery"),
            )
        )

        assert len(outcome.tracks) == 2
        [album] = outcome.albums
        assert album.id == "daft-punk-discovery"
        assert album.track_count == 2
        assert {a.id for a in outcome.artists} == {"daft-punk", "romanthony"}
        artists = {a.id: a for a in repository.list_artists()}
        assert artists["daft-punk"].track_count == 2
        assert artists["romanthony"].track_count == 1

    def test_known_track_is_skipped(self, repository, result_factory) -> None:
        """Test that a track id already in the catalog is skipped."""
        repository.merge_batch(_batch(result_factory("One", "Artist", "Album")))

        outcome = repository.merge_batch(_batch(result_factory("One", "Artist", "Album")))

        assert outcome.skipped == 1
        assert outcome.tracks == []
        assert repository.get_album("artist-album").track_count == 1

    def test_known_remote_id_is_skipped(self, repository, result_factory) -> None:
        """Test that a remote id already cataloged is skipped under a new track id."""
        repository.merge_batch(
            _batch(result_factory("One", "Artist", "Album", remote_id="remote-1"))
        )

        outcome = repository.merge_batch(
            _batch(result_factory("Renamed", "Artist", "Album", remote_id="remote-1"))
        )

        assert outcome.skipped == 1
        assert repository.has_remote_file("remote-1")
        assert repository.track_by_remote_id("remote-1").title == "One"

    def test_origin_folder_recorded_on_new_album(self, repository, result_factory) -> None:
        """Test that the remote folder id is stored on albums created by the run."""
        repository.merge_batch(
            _batch(result_factory("One", "Artist", "Album", remote_id="r1")),
            origin_folder_id="folder-9",
        )

        assert [a.id for a in repository.albums_from_folder("folder-9")] == [
            "artist-album"
        ]
        assert repository.albums_from_folder("other") == []

    def test_cover_backfilled_only_when_missing(self, repository, result_factory) -> None:
        """Test that cover art is filled once and never replaced."""
        repository.merge_batch(_batch(result_factory("One", "Artist", "Album")))
        repository.merge_batch(
            _batch(result_factory("Two", "Artist", "Album", cover="data:first"))
        )
        repository.merge_batch(
            _batch(result_factory("Three", "Artist", "Album", cover="data:second"))
        )

        assert repository.get_album("artist-album").cover_art == "data:first"

    def test_returned_records_are_copies(self, repository, result_factory) -> None:
        """Test that callers cannot mutate catalog state through reads."""
        repository.merge_batch(_batch(result_factory("One", "Artist", "Album")))

        repository.list_albums()[0].track_count = 99

        assert repository.get_album("artist-album").track_count == 1


class TestReads:
    """Tests for derived read views."""

    def test_tracks_for_album_ordered_by_disc_and_number(self, repository) -> None:
        """Test album track ordering."""

        def track(tid: str, disc: int | None, number: int | None) -> Track:
            return Track(
                id=tid, title=tid, artist="A", artist_id="a", album="X",
                album_id="a-x", album_artist="A", album_artist_id="a",
                disc_number=disc, track_number=number,
            )

        repository.replace_all(
            CatalogSnapshot(
                albums=[Album(id="a-x", title="X", artist="A", artist_id="a")],
                tracks=[track("t3", 2, 1), track("t2", 1, 2), track("t1", 1, 1)],
            )
        )

        assert [t.id for t in repository.tracks_for_album("a-x")] == ["t1", "t2", "t3"]

    def test_artist_album_count_is_derived(self, repository) -> None:
        """Test that albumCount counts the albums an artist owns."""
        repository.replace_all(
            CatalogSnapshot(
                albums=[
                    Album(id="a-x", title="X", artist="A", artist_id="a"),
                    Album(id="a-y", title="Y", artist="A", artist_id="a"),
                ],
                artists=[Artist(id="a", name="A"), Artist(id="b", name="B")],
            )
        )

        counts = {a.id: a.album_count for a in repository.list_artists()}
        assert counts == {"a": 2, "b": 0}

    def test_list_genres_splits_comma_joined_values(self, repository) -> None:
        """Test genre derivation from albums and tracks."""
        repository.replace_all(
            CatalogSnapshot(
                albums=[
                    Album(id="x", title="X", artist="A", artist_id="a", genre="Rock, Pop")
                ],
                tracks=[
                    Track(
                        id="t", title="T", artist="A", artist_id="a", album="X",
                        album_id="x", album_artist="A", album_artist_id="a",
                        genre="Rock",
                    )
                ],
            )
        )

        genres = {g.id: g for g in repository.list_genres()}
        assert set(genres) == {"pop", "rock"}
        assert genres["rock"].album_count == 1
        assert genres["rock"].track_count == 1
        assert genres["pop"].track_count == 0


class TestDeleteAlbums:
    """Tests for cascading deletion."""

    def test_delete_cascades_and_prunes(self, repository, result_factory) -> None:
        """Test tracks removed, counts recomputed, orphan artists pruned."""
        repository.merge_batch(
            _batch(
                result_factory("One", "Solo", "First"),
                result_factory("Two", "Solo, Guest", "First", album_artist="Solo"),
                result_factory("Three", "Solo", "Second", remote_id="r3"),
            )
        )

        outcome = repository.delete_albums(["solo-first", "unknown-album"])

        assert outcome.deleted_albums == 1
        assert outcome.deleted_tracks == 2
        assert outcome.pruned_artists == 1
        artists = {a.id: a for a in repository.list_artists()}
        assert set(artists) == {"solo"}
        assert artists["solo"].track_count == 1
        assert repository.counts() == {"albums": 1, "tracks": 1, "artists": 1}

    def test_delete_frees_remote_ids(self, repository, result_factory) -> None:
        """Test that a deleted remote track can be ingested again."""
        repository.merge_batch(
            _batch(result_factory("One", "Artist", "Album", remote_id="r1"))
        )

        repository.delete_albums(["artist-album"])

        assert not repository.has_remote_file("r1")

    def test_artist_owning_album_survives_without_tracks(self, repository) -> None:
        """Test that an artist with albums but no tracks is kept."""
        repository.replace_all(
            CatalogSnapshot(
                albums=[
                    Album(id="x", title="X", artist="A", artist_id="a"),
                    Album(id="y", title="Y", artist="B", artist_id="b"),
                ],
                artists=[Artist(id="a", name="A", track_count=3)],
            )
        )

        outcome = repository.delete_albums(["y"])

        assert outcome.pruned_artists == 0
        [artist] = repository.list_artists()
        assert artist.track_count == 0

    def test_unknown_ids_delete_nothing(self, repository) -> None:
        """Test that deleting unknown ids is a no-op."""
        outcome = repository.delete_albums(["nope"])
        assert outcome.deleted_albums == 0
        assert outcome.deleted_tracks == 0


class TestSnapshots:
    """Tests for import, replace and late-load adoption."""

    def test_empty_import_over_non_empty_catalog_is_rejected(
        self, repository, result_factory
    ) -> None:
        """Test the wipe guard."""
        repository.merge_batch(_batch(result_factory("One", "Artist", "Album")))

        with pytest.raises(EmptySnapshotRejectedError) as exc_info:
            repository.import_snapshot(CatalogSnapshot())

        assert exc_info.value.existing_counts == {"albums": 1, "tracks": 1, "artists": 1}
        assert repository.counts()["tracks"] == 1

    def test_empty_import_into_empty_catalog_is_allowed(self, repository) -> None:
        """Test that an empty catalog accepts an empty snapshot."""
        assert repository.import_snapshot(CatalogSnapshot()) == {
            "albums": 0,
            "tracks": 0,
            "artists": 0,
        }

    def test_import_merges_by_id_and_imported_wins(self, repository) -> None:
        """Test upsert semantics of import."""
        repository.replace_all(
            CatalogSnapshot(
                albums=[
                    Album(id="x", title="Old", artist="A", artist_id="a"),
                    Album(id="y", title="Y", artist="A", artist_id="a"),
                ]
            )
        )

        counts = repository.import_snapshot(
            CatalogSnapshot(albums=[Album(id="x", title="New", artist="A", artist_id="a")])
        )

        assert counts["albums"] == 2
        assert repository.get_album("x").title == "New"

    def test_adopt_loaded_keeps_records_created_meanwhile(
        self, repository, result_factory
    ) -> None:
        """Test that a late startup load does not drop fresh ingestions."""
        repository.merge_batch(_batch(result_factory("Fresh", "Artist", "New Album")))
        stored = CatalogSnapshot(
            albums=[Album(id="old", title="Old", artist="B", artist_id="b")]
        )

        repository.adopt_loaded(stored)

        assert {a.id for a in repository.list_albums()} == {"old", "artist-new-album"}
        assert repository.loaded is True

    def test_adopt_loaded_adds_to_stored_counts(self, repository, result_factory) -> None:
        """Test that a track ingested during the load adds to the stored album."""
        stored_repo = CatalogRepository()
        stored_repo.merge_batch(
            _batch(
                result_factory("One", "Band", "Record", path="/m/Record/CD1/01.mp3"),
                result_factory("Two", "Band", "Record", path="/m/Record/CD1/02.mp3"),
            )
        )
        stored = stored_repo.snapshot()
        stored.albums[0].cover_art = "data:image/jpeg;base64,STORED"
        repository.merge_batch(
            _batch(
                result_factory(
                    "Three",
                    "Band",
                    "Record",
                    path="/m/Record/CD2/03.mp3",
                    cover="data:image/jpeg;base64,NEW",
                )
            )
        )

        repository.adopt_loaded(stored)

        [album] = repository.list_albums()
        [artist] = repository.list_artists()
        assert len(repository.list_tracks()) == 3
        assert album.track_count == 3
        assert album.cd_count == 2
        assert album.cover_art == "data:image/jpeg;base64,STORED"
        assert artist.track_count == 3

    def test_adopt_loaded_skips_window_duplicates(self, repository, result_factory) -> None:
        """Test that a file ingested again during the load isn't counted twice."""
        stored_repo = CatalogRepository()
        stored_repo.merge_batch(_batch(result_factory("One", "Band", "Record")))
        repository.merge_batch(_batch(result_factory("One", "Band", "Record")))

        repository.adopt_loaded(stored_repo.snapshot())

        [album] = repository.list_albums()
        assert len(repository.list_tracks()) == 1
        assert album.track_count == 1
        assert repository.list_artists()[0].track_count == 1

    def test_adopt_loaded_backfills_missing_cover(self, repository, result_factory) -> None:
        """Test that a stored album without cover takes the one found meanwhile."""
        stored_repo = CatalogRepository()
        stored_repo.merge_batch(_batch(result_factory("One", "Band", "Record")))
        repository.merge_batch(
            _batch(result_factory("Two", "Band", "Record", cover="data:image/jpeg;base64,C"))
        )

        repository.adopt_loaded(stored_repo.snapshot())

        assert repository.get_album("band-record").cover_art == "data:image/jpeg;base64,C"

    def test_adopt_loaded_into_empty_catalog_replaces(self, repository) -> None:
        """Test that adoption on an empty catalog is a plain replace."""
        repository.adopt_loaded(
            CatalogSnapshot(artists=[Artist(id="a", name="A", track_count=2)])
        )

        assert repository.counts() == {"albums": 0, "tracks": 0, "artists": 1}
        assert repository.loaded is True
