"""Domain entities: Track, Album, Artist and the derived Genre.

Hey future me - these are plain dataclasses, NOT Pydantic models and NOT ORM rows.
The wire format and the stored documents are camelCase JSON (the web client and the
mirror instance both speak it), so every entity carries to_dict()/from_dict(). Unknown
keys in from_dict() are ignored so older/newer snapshots still import.
"""

from dataclasses import dataclass, field, fields
from typing import Any, TypeVar

REMOTE_LOCATOR_PREFIX = "gdrive://"

_E = TypeVar("_E", bound="_CamelDocument")


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class _CamelDocument:
    """Mixin mapping snake_case dataclass fields to camelCase documents."""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a camelCase document, dropping unset optional fields."""
        document: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if value is None:
                continue
            document[_to_camel(f.name)] = value
        return document

    @classmethod
    def from_dict(cls: type[_E], data: dict[str, Any]) -> _E:
        """Build an entity from a camelCase document."""
        kwargs: dict[str, Any] = {}
        for f in fields(cls):  # type: ignore[arg-type]
            key = _to_camel(f.name)
            if key in data:
                kwargs[f.name] = data[key]
        return cls(**kwargs)


@dataclass
class Track(_CamelDocument):
    """One ingested audio file.

    id is derived from (artist, album, title) - see identity.track_id().
    file_path is the source locator: a local path, or gdrive://<id> for remote files
    (the temporary download is gone once extraction finished).
    """

    id: str
    title: str
    artist: str
    artist_id: str
    album: str
    album_id: str
    album_artist: str
    album_artist_id: str
    duration: int = 0
    file_path: str = ""
    genre: str | None = None
    google_drive_id: str | None = None
    disc_number: int | None = None
    track_number: int | None = None
    year: int | None = None
    band: str | None = None
    conductor: str | None = None
    remixer: str | None = None

    @property
    def is_remote(self) -> bool:
        """Check whether the track is served from a remote share."""
        return bool(self.google_drive_id) or self.file_path.startswith(
            REMOTE_LOCATOR_PREFIX
        )


@dataclass
class Album(_CamelDocument):
    """Album aggregate with a running track count."""

    id: str
    title: str
    artist: str
    artist_id: str
    year: int | None = None
    genre: str | None = None
    track_count: int = 0
    cover_art: str | None = None
    google_drive_folder_id: str | None = None
    cd_count: int | None = None


@dataclass
class Artist(_CamelDocument):
    """Artist record, one per distinct credited name."""

    id: str
    name: str
    track_count: int = 0
    album_count: int | None = None
    cover_art: str | None = None
    biography: str | None = None


@dataclass
class Genre(_CamelDocument):
    """Genre view derived from album/track genre strings (never stored)."""

    id: str
    name: str
    track_count: int = 0
    album_count: int = 0


@dataclass
class CatalogSnapshot:
    """Full catalog state: the unit of persistence and replication."""

    albums: list[Album] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)
    artists: list[Artist] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Check whether all three collections are empty."""
        return not (self.albums or self.tracks or self.artists)

    def counts(self) -> dict[str, int]:
        """Collection sizes."""
        return {
            "albums": len(self.albums),
            "tracks": len(self.tracks),
            "artists": len(self.artists),
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the replication wire format."""
        return {
            "albums": [a.to_dict() for a in self.albums],
            "tracks": [t.to_dict() for t in self.tracks],
            "artists": [a.to_dict() for a in self.artists],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CatalogSnapshot":
        """Parse the replication wire format."""
        return cls(
            albums=[Album.from_dict(a) for a in data.get("albums") or []],
            tracks=[Track.from_dict(t) for t in data.get("tracks") or []],
            artists=[Artist.from_dict(a) for a in data.get("artists") or []],
        )


__all__ = [
    "REMOTE_LOCATOR_PREFIX",
    "Album",
    "Artist",
    "CatalogSnapshot",
    "Genre",
    "Track",
]
