"""Unit tests for catalog identity derivation."""

import pytest

from muzak.domain.value_objects.identity import (
    album_grouping_key,
    album_id,
    artist_id,
    display_album_artist,
    is_compilation,
    slug,
    split_artist_names,
    split_genres,
    track_id,
)


class TestSlug:
    """Tests for slug()."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Daft Punk", "daft-punk"),
            ("  AC/DC  ", "ac-dc"),
            ("Hits -- 2020!!", "hits-2020"),
            ("---", ""),
            ("Beyoncé", "beyonc"),
        ],
    )
    def test_slug(self, name: str, expected: str) -> None:
        """Test lowercasing, hyphen collapsing and trimming."""
        assert slug(name) == expected


class TestCompilation:
    """Tests for the compilation heuristic and album ids."""

    @pytest.mark.parametrize(
        "album_artist",
        ["Various Artists", "VARIOUS", "various", "Best Compilation Ever", "Artistes Various"],
    )
    def test_various_names_are_compilations(self, album_artist: str) -> None:
        """Test that 'various'/'compilation' substrings mark a compilation."""
        assert is_compilation(album_artist) is True

    def test_regular_artist_is_not_compilation(self) -> None:
        """Test a plain artist name."""
        assert is_compilation("Solo Artist") is False
        assert is_compilation(None) is False

    def test_forced_compilation(self) -> None:
        """Test that the caller can force compilation mode."""
        assert is_compilation("Solo Artist", forced=True) is True

    def test_compilation_album_id_depends_on_title_only(self) -> None:
        """Test that different 'various' spellings share one album id."""
        assert album_id("Hits 2020", "Various Artists") == "hits-2020"
        assert album_id("Hits 2020", "various") == album_id("Hits 2020", "Compilation")

    def test_same_title_different_artists_never_collide(self) -> None:
        """Test that non-compilation albums are keyed by album artist."""
        first = album_id("Greatest Hits", "Queen")
        second = album_id("Greatest Hits", "ABBA")
        assert first == "queen-greatest-hits"
        assert first != second

    def test_forced_compilation_album_id(self) -> None:
        """Test that forcing compilation drops the artist from the id."""
        assert album_id("Hits 2020", "Solo Artist", forced_compilation=True) == "hits-2020"


class TestIds:
    """Tests for track/artist ids and grouping keys."""

    def test_track_id(self) -> None:
        """Test that the track id combines artist, album and title."""
        assert track_id("Solo Artist", "Hits 2020", "C") == "solo-artist-hits-2020-c"

    def test_artist_id(self) -> None:
        """Test that the artist id is the slug of the name."""
        assert artist_id("Pharrell Williams") == "pharrell-williams"

    def test_grouping_key_for_compilations(self) -> None:
        """Test that compilations group by album id alone."""
        assert album_grouping_key("hits-2020", "various-artists", True) == "hits-2020"

    def test_grouping_key_for_regular_albums(self) -> None:
        """Test that regular albums are prefixed with the album artist id."""
        key = album_grouping_key("solo-artist-hits-2020", "solo-artist", False)
        assert key == "solo-artist-solo-artist-hits-2020"

    def test_display_album_artist(self) -> None:
        """Test the album artist shown for compilations."""
        assert display_album_artist("DJ Mix", True) == "Various Artists"
        assert display_album_artist("DJ Mix", False) == "DJ Mix"


class TestSplitting:
    """Tests for multi-valued artist and genre fields."""

    def test_split_artist_names_dedupes_by_slug(self) -> None:
        """Test that repeated names (any case) are kept once, in order."""
        names = split_artist_names("Daft Punk, Pharrell Williams, daft punk")
        assert names == ["Daft Punk", "Pharrell Williams"]

    def test_split_artist_names_empty(self) -> None:
        """Test empty and blank values."""
        assert split_artist_names(None) == []
        assert split_artist_names(" , ") == []

    def test_split_genres(self) -> None:
        """Test comma-joined genre strings."""
        assert split_genres("Rock, Pop,,  Jazz ") == ["Rock", "Pop", "Jazz"]
        assert split_genres(None) == []
