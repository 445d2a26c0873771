"""Audio metadata extraction with mutagen.

Hey future me - one file in, one normalized Track (plus optional cover) out. Handles the
three tag families we actually see in uploads:
- ID3 (mp3, some wav/aac): frames like TIT2/TPE1/TPE2/TALB, pictures in APIC
- Vorbis comments (flac, ogg): lowercase keys, FLAC pictures / metadata_block_picture
- MP4 atoms (m4a): ©nam/©ART/aART/©alb, trkn tuples, covr
plus ASF (wma) text attributes.

Album artist resolution: albumartist -> ensemble/band (TPE2) -> track artist.
Disc number NEVER comes from tags - see folder_parsing.disc_number_from_path().

extract() never raises. Unreadable input is logged and returns None, the batch
coordinator turns that into a per-file failure.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any

from mutagen import File as MutagenFile  # type: ignore[attr-defined]
from mutagen import MutagenError
from mutagen.flac import Picture
from mutagen.mp4 import MP4Cover

from muzak.application.services.cover_art import CoverArtOptimizer
from muzak.domain.entities import REMOTE_LOCATOR_PREFIX, Track
from muzak.domain.value_objects import (
    album_id,
    artist_id,
    disc_number_from_path,
    is_compilation,
    is_disc_folder,
    track_id,
)

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"

# Field -> tag keys across formats, first present key wins
TAG_KEYS: dict[str, tuple[str, ...]] = {
    "title": ("TIT2", "title", "©nam", "Title"),
    "artist": ("TPE1", "artist", "©ART", "Author"),
    "album": ("TALB", "album", "©alb", "WM/AlbumTitle"),
    "albumartist": (
        "TXXX:ALBUMARTIST",
        "albumartist",
        "album artist",
        "aART",
        "WM/AlbumArtist",
    ),
    "band": ("TPE2", "ensemble", "band"),
    "conductor": ("TPE3", "conductor", "WM/Conductor"),
    "remixer": ("TPE4", "remixer", "mixartist", "WM/ModifiedBy"),
    "track_number": ("TRCK", "tracknumber", "trkn", "WM/TrackNumber"),
    "year": ("TDRC", "TYER", "date", "year", "©day", "WM/Year"),
    "genre": ("TCON", "genre", "©gen", "WM/Genre"),
}

_LEADING_INT = re.compile(r"^\s*(\d+)")
_YEAR = re.compile(r"(\d{4})")


@dataclass
class ExtractionResult:
    """Normalized output of one extraction."""

    track: Track
    cover_art: str | None
    compilation: bool


def _flatten(value: Any) -> list[str]:
    """Turn mutagen tag values (frames, lists, tuples, ASF attributes) into strings."""
    items = value if isinstance(value, list) else [value]
    texts: list[str] = []
    for item in items:
        if hasattr(item, "genres"):  # ID3 TCON resolves "(17)" style references
            texts.extend(item.genres)
        elif hasattr(item, "text"):  # ID3 text frames
            texts.extend(str(t) for t in item.text)
        elif hasattr(item, "value"):  # ASF attributes
            texts.append(str(item.value))
        elif isinstance(item, tuple):  # MP4 trkn/disk: (number, total)
            if item and item[0]:
                texts.append(str(item[0]))
        else:
            texts.append(str(item))
    return [t.strip() for t in texts if t and t.strip()]


def _album_from_path(logical: PurePath) -> str:
    """Nearest parent folder that isn't a disc folder ("Album/CD2/x.mp3" -> "Album")."""
    for folder in reversed(logical.parent.parts):
        if folder not in ("/", ".") and not is_disc_folder(folder):
            return folder
    return UNKNOWN_ALBUM


def _parse_int(value: str | None) -> int | None:
    """Parse "3" or "3/12" into 3."""
    if not value:
        return None
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def _parse_year(value: str | None) -> int | None:
    """Parse "1999", "1999-05-01" or an ID3 timestamp into 1999."""
    if not value:
        return None
    match = _YEAR.search(value)
    return int(match.group(1)) if match else None


class MetadataExtractor:
    """Reads tags from one audio file and builds a Track."""

    def __init__(self, cover_optimizer: CoverArtOptimizer | None = None) -> None:
        self.cover_optimizer = cover_optimizer or CoverArtOptimizer()

    def extract(
        self,
        path: Path,
        *,
        logical_path: str | PurePath | None = None,
        force_compilation: bool = False,
        remote_id: str | None = None,
    ) -> ExtractionResult | None:
        """Extract one file.

        Args:
            path: Where the bytes are on disk (upload, scanned file or temp download)
            logical_path: Path the user knows the file by. Title/album fallbacks and the
                disc number come from here, never from temp names. Defaults to path.
            force_compilation: Treat the album as a compilation regardless of tags
            remote_id: Remote file id; becomes the durable source locator

        Returns:
            ExtractionResult, or None when the file isn't readable audio
        """
        logical = PurePath(logical_path) if logical_path is not None else PurePath(path)

        try:
            audio = MutagenFile(path)
        except Exception as e:
            logger.warning(f"Unreadable audio file {logical}: {e}")
            return None
        if audio is None:
            logger.warning(f"Not a recognized audio file: {logical}")
            return None

        try:
            return self._build(audio, path, logical, force_compilation, remote_id)
        except Exception as e:
            logger.warning(f"Failed to read metadata from {logical}: {e}")
            return None

    def _build(
        self,
        audio: Any,
        path: Path,
        logical: PurePath,
        force_compilation: bool,
        remote_id: str | None,
    ) -> ExtractionResult:
        tags = audio.tags
        values = {name: self._read(tags, keys) for name, keys in TAG_KEYS.items()}

        def first(name: str) -> str | None:
            found = values[name]
            return found[0] if found else None

        title = first("title") or logical.stem
        artist = first("artist") or UNKNOWN_ARTIST
        album = first("album") or _album_from_path(logical)
        band = first("band")
        album_artist = first("albumartist") or band or artist
        compilation = is_compilation(album_artist, force_compilation)

        length = getattr(audio.info, "length", None) if audio.info else None
        genres = values["genre"]

        track = Track(
            id=track_id(artist, album, title),
            title=title,
            artist=artist,
            artist_id=artist_id(artist),
            album=album,
            album_id=album_id(album, album_artist, force_compilation),
            album_artist=album_artist,
            album_artist_id=artist_id(album_artist),
            duration=round(length) if length else 0,
            file_path=f"{REMOTE_LOCATOR_PREFIX}{remote_id}" if remote_id else str(path),
            genre=", ".join(dict.fromkeys(genres)) if genres else None,
            google_drive_id=remote_id,
            disc_number=disc_number_from_path(logical),
            track_number=_parse_int(first("track_number")),
            year=_parse_year(first("year")),
            band=band,
            conductor=first("conductor"),
            remixer=first("remixer"),
        )

        return ExtractionResult(
            track=track,
            cover_art=self._cover(audio),
            compilation=compilation,
        )

    @staticmethod
    def _read(tags: Any, keys: tuple[str, ...]) -> list[str]:
        if not tags:
            return []
        for key in keys:
            if key in tags:
                found = _flatten(tags[key])
                if found:
                    return found
        return []

    # First embedded picture wins, whatever its picture type.
    def _cover(self, audio: Any) -> str | None:
        picture = self._first_picture(audio)
        if picture is None:
            return None
        data, mime = picture
        return self.cover_optimizer.optimize(data, mime)

    @staticmethod
    def _first_picture(audio: Any) -> tuple[bytes, str | None] | None:
        # FLAC keeps pictures outside the Vorbis comment
        for pic in getattr(audio, "pictures", None) or []:
            if pic.data:
                return pic.data, pic.mime or None

        tags = audio.tags
        if not tags:
            return None

        if hasattr(tags, "getall"):  # ID3
            for frame in tags.getall("APIC"):
                if frame.data:
                    return frame.data, frame.mime or None

        if "covr" in tags:  # MP4
            for cover in tags["covr"]:
                mime = (
                    "image/png"
                    if cover.imageformat == MP4Cover.FORMAT_PNG
                    else "image/jpeg"
                )
                return bytes(cover), mime

        if "metadata_block_picture" in tags:  # Ogg Vorbis/Opus
            for encoded in tags["metadata_block_picture"]:
                try:
                    pic = Picture(base64.b64decode(encoded))
                except (binascii.Error, ValueError, MutagenError) as e:
                    logger.debug(f"Skipping malformed metadata_block_picture: {e}")
                    continue
                if pic.data:
                    return pic.data, pic.mime or None

        return None
