"""Deterministic identity derivation for catalog entities.

Hey future me - EVERY id in the catalog comes from this module. Re-ingesting the same
file must produce the same ids, otherwise merges turn into duplicates. Keep these
functions pure (no I/O, no settings) so every ingestion path shares them.

Album ids have two shapes:
- compilation ("Various Artists", forced by the caller): slug(title)
- everything else: slug(album_artist + "-" + title)

Usage:
    from muzak.domain.value_objects.identity import album_id, is_compilation, slug

    slug("AC/DC")                                   # "ac-dc"
    album_id("Hits 2020", "Various Artists")        # "hits-2020"
    album_id("Hits 2020", "Solo Artist")            # "solo-artist-hits-2020"
"""

import re

VARIOUS_ARTISTS = "Various Artists"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Substring markers, matched against the lowercased album artist
COMPILATION_MARKERS = ("various", "compilation")


def slug(name: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to one hyphen, trim hyphens.

    Example:
        >>> slug("  Daft Punk!! ")
        'daft-punk'
        >>> slug("Hits -- 2020")
        'hits-2020'
    """
    return _NON_ALNUM.sub("-", name.lower()).strip("-")


def is_compilation(album_artist: str | None, forced: bool = False) -> bool:
    """Check whether an album artist denotes a compilation.

    Args:
        album_artist: Album artist name (may be None)
        forced: Caller forces compilation mode (remote "treat as compilation" flag)

    Returns:
        True for forced mode or names containing "various"/"compilation"
    """
    if forced:
        return True
    if not album_artist:
        return False
    normalized = album_artist.strip().lower()
    return normalized == "various" or any(
        marker in normalized for marker in COMPILATION_MARKERS
    )


def album_id(title: str, album_artist: str, forced_compilation: bool = False) -> str:
    """Derive the album id.

    Same-titled albums by different artists get distinct ids, true compilations
    collapse onto the title alone.
    """
    if is_compilation(album_artist, forced_compilation):
        return slug(title)
    return slug(f"{album_artist}-{title}")


def track_id(track_artist: str, album: str, title: str) -> str:
    """Derive the track id from (track artist, album title, title)."""
    return slug(f"{track_artist}-{album}-{title}")


def artist_id(name: str) -> str:
    """Derive an artist id (plain slug of the name)."""
    return slug(name)


def album_grouping_key(album_id_: str, album_artist_id: str, compilation: bool) -> str:
    """Key used to merge same-run duplicates inside one ingestion batch.

    Compilations group by album id alone; other albums prefix the album artist id so
    same-titled albums by different artists never collide mid-batch.
    """
    if compilation:
        return album_id_
    return f"{album_artist_id}-{album_id_}"


def display_album_artist(album_artist: str, compilation: bool) -> str:
    """Name shown as the album's artist."""
    return VARIOUS_ARTISTS if compilation else album_artist


def split_artist_names(value: str | None) -> list[str]:
    """Expand a comma-separated artist credit into distinct names (order kept).

    Example:
        >>> split_artist_names("Daft Punk, Pharrell Williams, Daft Punk")
        ['Daft Punk', 'Pharrell Williams']
    """
    if not value:
        return []
    seen: set[str] = set()
    names: list[str] = []
    for part in value.split(","):
        name = part.strip()
        key = slug(name)
        if name and key and key not in seen:
            seen.add(key)
            names.append(name)
    return names


def split_genres(value: str | None) -> list[str]:
    """Split a comma-joined genre string into trimmed names."""
    if not value:
        return []
    return [g.strip() for g in value.split(",") if g.strip()]
