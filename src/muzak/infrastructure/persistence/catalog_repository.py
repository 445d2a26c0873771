"""In-memory catalog repository: the single owner of albums, tracks and artists.

Hey future me - NOTHING outside this class touches the three collections directly.
Ingestion hands over an IngestionBatch, deletion hands over album ids, replication hands
over a snapshot; the repository applies the merge rules and the store persists the
result wholesale (see SqlCatalogStore). Methods are synchronous on purpose: mutations
happen between awaits on the event loop, and CatalogService serializes whole operations
with its lock.

Merge rules in one place:
- a track is added at most once: known remote id or known track id -> skipped
- album exists -> trackCount += 1, cover/origin folder backfilled only when absent,
  cdCount raised to the highest disc seen
- one artist increment per distinct credited name (comma-split track artist)
- deleting albums cascades to their tracks, then artist counts are recomputed and
  artists left with zero tracks and zero albums are pruned
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, TypeVar

from muzak.domain.entities import Album, Artist, CatalogSnapshot, Genre, Track
from muzak.domain.exceptions import EmptySnapshotRejectedError
from muzak.domain.value_objects import artist_id, slug, split_artist_names, split_genres

if TYPE_CHECKING:
    from muzak.application.services.batch_ingestion import IngestionBatch

logger = logging.getLogger(__name__)

_R = TypeVar("_R", Album, Track, Artist)


@dataclass
class MergeOutcome:
    """What a batch merge changed in the catalog."""

    albums: list[Album] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)
    artists: list[Artist] = field(default_factory=list)
    skipped: int = 0


@dataclass
class DeletionOutcome:
    """What an album deletion removed."""

    deleted_albums: int = 0
    deleted_tracks: int = 0
    pruned_artists: int = 0


class CatalogRepository:
    """Owns the three catalog collections (insertion-ordered, keyed by id)."""

    def __init__(self) -> None:
        self._albums: dict[str, Album] = {}
        self._tracks: dict[str, Track] = {}
        self._artists: dict[str, Artist] = {}
        self._remote_ids: set[str] = set()
        self.loaded = False

    # =========================================================================
    # READ
    # =========================================================================

    @property
    def is_empty(self) -> bool:
        """Check whether all three collections are empty."""
        return not (self._albums or self._tracks or self._artists)

    def counts(self) -> dict[str, int]:
        """Collection sizes."""
        return {
            "albums": len(self._albums),
            "tracks": len(self._tracks),
            "artists": len(self._artists),
        }

    def list_albums(self) -> list[Album]:
        return [replace(a) for a in self._albums.values()]

    def list_tracks(self) -> list[Track]:
        return [replace(t) for t in self._tracks.values()]

    def get_album(self, album_id: str) -> Album | None:
        album = self._albums.get(album_id)
        return replace(album) if album else None

    def tracks_for_album(self, album_id: str) -> list[Track]:
        """Tracks of one album, ordered by disc then track number."""
        tracks = [replace(t) for t in self._tracks.values() if t.album_id == album_id]
        tracks.sort(key=lambda t: (t.disc_number or 0, t.track_number or 0))
        return tracks

    def list_artists(self) -> list[Artist]:
        """Artists with albumCount derived from the albums they own."""
        album_counts = self._album_counts()
        return [
            replace(a, album_count=album_counts.get(a.id, 0))
            for a in self._artists.values()
        ]

    def list_genres(self) -> list[Genre]:
        """Genres derived from comma-joined album and track genre strings."""
        genres: dict[str, Genre] = {}

        def _tally(value: str | None, *, is_album: bool) -> None:
            for name in split_genres(value):
                key = slug(name)
                if not key:
                    continue
                genre = genres.setdefault(key, Genre(id=key, name=name))
                if is_album:
                    genre.album_count += 1
                else:
                    genre.track_count += 1

        for album in self._albums.values():
            _tally(album.genre, is_album=True)
        for track in self._tracks.values():
            _tally(track.genre, is_album=False)
        return sorted(genres.values(), key=lambda g: g.name.lower())

    def has_remote_file(self, remote_id: str) -> bool:
        """Check whether a track with this remote identifier is already cataloged."""
        return remote_id in self._remote_ids

    def track_by_remote_id(self, remote_id: str) -> Track | None:
        for track in self._tracks.values():
            if track.google_drive_id == remote_id:
                return replace(track)
        return None

    def albums_from_folder(self, folder_id: str) -> list[Album]:
        """Albums whose origin is the given remote folder."""
        return [
            replace(a)
            for a in self._albums.values()
            if a.google_drive_folder_id == folder_id
        ]

    def snapshot(self) -> CatalogSnapshot:
        """Copy of the full catalog state."""
        return CatalogSnapshot(
            albums=self.list_albums(),
            tracks=self.list_tracks(),
            artists=[replace(a) for a in self._artists.values()],
        )

    # =========================================================================
    # MUTATE
    # =========================================================================

    def replace_all(self, snapshot: CatalogSnapshot) -> None:
        """Replace the whole catalog (startup load, mirror restore)."""
        self._albums = _index(snapshot.albums)
        self._tracks = _index(snapshot.tracks)
        self._artists = _index(snapshot.artists)
        self._reindex_remote_ids()
        self.loaded = True

    # Hey future me - the startup load may finish AFTER the app started serving (2s race).
    # Anything ingested in the meantime must survive, but the stored catalog is the base:
    # loaded tracks stay, window tracks are added only when unknown (same rule as
    # merge_batch), and the counts of touched albums/artists are recounted from the
    # merged tracks. Replacing loaded albums by their window copies would collapse a
    # stored trackCount of 12 to the 1 track uploaded during the race.
    def adopt_loaded(self, snapshot: CatalogSnapshot) -> None:
        """Swap in a late-loaded snapshot while keeping records created meanwhile."""
        if self.is_empty:
            self.replace_all(snapshot)
            return
        window = self.snapshot()
        self.replace_all(snapshot)
        self._merge_window(window)

    def merge_batch(
        self, batch: "IngestionBatch", origin_folder_id: str | None = None
    ) -> MergeOutcome:
        """Merge one ingestion run into the catalog.

        Args:
            batch: Extracted files of the run (already deduplicated within the run)
            origin_folder_id: Remote folder the run came from, recorded on new albums

        Returns:
            Touched albums (final state), added tracks, touched artists, skipped count
        """
        outcome = MergeOutcome()
        touched_albums: dict[str, Album] = {}
        touched_artists: dict[str, Artist] = {}

        for entry in batch.entries:
            track = entry.track
            if self._is_known(track):
                outcome.skipped += 1
                continue

            self._tracks[track.id] = track
            if track.google_drive_id:
                self._remote_ids.add(track.google_drive_id)
            outcome.tracks.append(replace(track))

            partial = batch.album_partial(entry)
            album = self._albums.get(track.album_id)
            if album is None:
                album = replace(
                    partial,
                    track_count=0,
                    cover_art=None,
                    cd_count=None,
                    google_drive_folder_id=partial.google_drive_folder_id
                    or origin_folder_id,
                )
                self._albums[album.id] = album
            album.track_count += 1
            if not album.cover_art and partial.cover_art:
                album.cover_art = partial.cover_art
            if not album.google_drive_folder_id and origin_folder_id:
                album.google_drive_folder_id = origin_folder_id
            if track.disc_number and track.disc_number > (album.cd_count or 0):
                album.cd_count = track.disc_number
            touched_albums[album.id] = album

            for name in split_artist_names(track.artist):
                key = artist_id(name)
                artist = self._artists.get(key)
                if artist is None:
                    artist = Artist(id=key, name=name, track_count=0)
                    self._artists[key] = artist
                artist.track_count += 1
                touched_artists[key] = artist

        outcome.albums = [replace(a) for a in touched_albums.values()]
        outcome.artists = [replace(a) for a in touched_artists.values()]
        logger.info(
            f"Merged batch: {len(outcome.tracks)} new tracks, {len(outcome.albums)} albums, "
            f"{len(outcome.artists)} artists touched, {outcome.skipped} skipped"
        )
        return outcome

    def delete_albums(self, album_ids: Iterable[str]) -> DeletionOutcome:
        """Delete albums, cascade to their tracks, recompute and prune artists."""
        ids = {a for a in album_ids if a in self._albums}
        outcome = DeletionOutcome()
        if not ids:
            return outcome

        for album_id_ in ids:
            del self._albums[album_id_]
        outcome.deleted_albums = len(ids)

        remaining = {k: t for k, t in self._tracks.items() if t.album_id not in ids}
        outcome.deleted_tracks = len(self._tracks) - len(remaining)
        self._tracks = remaining
        self._reindex_remote_ids()

        track_counts = self._artist_track_counts()
        album_counts = self._album_counts()

        kept: dict[str, Artist] = {}
        for key, artist in self._artists.items():
            artist.track_count = track_counts.get(key, 0)
            if artist.track_count == 0 and album_counts.get(key, 0) == 0:
                outcome.pruned_artists += 1
                continue
            kept[key] = artist
        self._artists = kept

        logger.info(
            f"Deleted {outcome.deleted_albums} albums, {outcome.deleted_tracks} tracks, "
            f"pruned {outcome.pruned_artists} artists"
        )
        return outcome

    def import_snapshot(self, snapshot: CatalogSnapshot) -> dict[str, int]:
        """Merge an imported snapshot by id (imported records win).

        Raises:
            EmptySnapshotRejectedError: All-empty snapshot over a non-empty catalog
        """
        if snapshot.is_empty and not self.is_empty:
            counts = self.counts()
            logger.warning(
                "Rejected empty snapshot import over non-empty catalog", extra=counts
            )
            raise EmptySnapshotRejectedError(**counts)

        self._upsert(snapshot)
        return self.counts()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _is_known(self, track: Track) -> bool:
        if track.google_drive_id and track.google_drive_id in self._remote_ids:
            return True
        return track.id in self._tracks

    def _merge_window(self, window: CatalogSnapshot) -> None:
        for track in window.tracks:
            if self._is_known(track):
                continue
            self._tracks[track.id] = track
            if track.google_drive_id:
                self._remote_ids.add(track.google_drive_id)

        per_album: dict[str, list[Track]] = {}
        for track in self._tracks.values():
            per_album.setdefault(track.album_id, []).append(track)

        for candidate in window.albums:
            tracks = per_album.get(candidate.id, [])
            album = self._albums.get(candidate.id)
            if album is None:
                if not tracks:
                    continue
                album = candidate
                self._albums[album.id] = album
            else:
                if not album.cover_art and candidate.cover_art:
                    album.cover_art = candidate.cover_art
                if not album.google_drive_folder_id and candidate.google_drive_folder_id:
                    album.google_drive_folder_id = candidate.google_drive_folder_id
            album.track_count = len(tracks)
            top_disc = max((t.disc_number or 0 for t in tracks), default=0)
            if top_disc > (album.cd_count or 0):
                album.cd_count = top_disc

        track_counts = self._artist_track_counts()
        album_counts = self._album_counts()
        for candidate in window.artists:
            count = track_counts.get(candidate.id, 0)
            artist = self._artists.get(candidate.id)
            if artist is None:
                if not count and not album_counts.get(candidate.id):
                    continue
                artist = candidate
                self._artists[artist.id] = artist
            artist.track_count = count

        logger.info(
            f"Merged {len(window.tracks)} tracks created during the load into the "
            f"stored catalog ({len(self._tracks)} tracks total)"
        )

    def _upsert(self, snapshot: CatalogSnapshot) -> None:
        for album in snapshot.albums:
            self._albums[album.id] = album
        for track in snapshot.tracks:
            self._tracks[track.id] = track
        for artist in snapshot.artists:
            self._artists[artist.id] = artist
        self._reindex_remote_ids()

    def _reindex_remote_ids(self) -> None:
        self._remote_ids = {
            t.google_drive_id for t in self._tracks.values() if t.google_drive_id
        }

    def _artist_track_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for track in self._tracks.values():
            for name in split_artist_names(track.artist):
                key = artist_id(name)
                counts[key] = counts.get(key, 0) + 1
        return counts

    def _album_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for album in self._albums.values():
            counts[album.artist_id] = counts.get(album.artist_id, 0) + 1
        return counts


def _index(records: Iterable[_R]) -> dict[str, _R]:
    return {record.id: record for record in records}
