"""Unit tests for entity documents and snapshots."""

from muzak.domain.entities import Album, Artist, CatalogSnapshot, Track


def _track(**overrides: object) -> Track:
    values: dict[str, object] = {
        "id": "solo-artist-hits-2020-c",
        "title": "C",
        "artist": "Solo Artist",
        "artist_id": "solo-artist",
        "album": "Hits 2020",
        "album_id": "solo-artist-hits-2020",
        "album_artist": "Solo Artist",
        "album_artist_id": "solo-artist",
        "duration": 181,
        "file_path": "gdrive://1AbCdEfGhIjKlMnOpQrStUv",
        "google_drive_id": "1AbCdEfGhIjKlMnOpQrStUv",
        "disc_number": 2,
    }
    values.update(overrides)
    return Track(**values)  # type: ignore[arg-type]


class TestDocuments:
    """Tests for camelCase documents."""

    def test_track_document_is_camel_case_without_nulls(self) -> None:
        """Test the wire shape of a track."""
        document = _track().to_dict()
        assert document["albumArtistId"] == "solo-artist"
        assert document["googleDriveId"] == "1AbCdEfGhIjKlMnOpQrStUv"
        assert document["discNumber"] == 2
        assert "trackNumber" not in document
        assert "genre" not in document

    def test_from_dict_ignores_unknown_keys(self) -> None:
        """Test that newer/older snapshot fields don't break parsing."""
        album = Album.from_dict(
            {
                "id": "hits-2020",
                "title": "Hits 2020",
                "artist": "Various Artists",
                "artistId": "various-artists",
                "trackCount": 2,
                "coverArt": "data:image/jpeg;base64,AAAA",
                "somethingNew": True,
            }
        )
        assert album.track_count == 2
        assert album.cover_art == "data:image/jpeg;base64,AAAA"
        assert album.cd_count is None

    def test_remote_track(self) -> None:
        """Test the remote flag from the locator."""
        assert _track().is_remote is True
        assert _track(google_drive_id=None, file_path="/music/c.mp3").is_remote is False


class TestCatalogSnapshot:
    """Tests for CatalogSnapshot."""

    def test_empty_snapshot(self) -> None:
        """Test is_empty and counts on an empty snapshot."""
        snapshot = CatalogSnapshot()
        assert snapshot.is_empty is True
        assert snapshot.counts() == {"albums": 0, "tracks": 0, "artists": 0}

    def test_from_dict_tolerates_missing_collections(self) -> None:
        """Test that a payload with only artists still parses."""
        snapshot = CatalogSnapshot.from_dict(
            {"artists": [{"id": "abba", "name": "ABBA", "trackCount": 3}]}
        )
        assert snapshot.albums == []
        assert snapshot.artists == [Artist(id="abba", name="ABBA", track_count=3)]
        assert snapshot.is_empty is False
