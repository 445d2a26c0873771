"""Domain value objects: identity derivation and path parsing."""

from muzak.domain.value_objects.folder_parsing import (
    AUDIO_EXTENSIONS,
    disc_number_from_path,
    is_audio_filename,
    is_disc_folder,
    parse_disc_folder,
)
from muzak.domain.value_objects.identity import (
    VARIOUS_ARTISTS,
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

__all__ = [
    "AUDIO_EXTENSIONS",
    "VARIOUS_ARTISTS",
    "album_grouping_key",
    "album_id",
    "artist_id",
    "disc_number_from_path",
    "display_album_artist",
    "is_audio_filename",
    "is_compilation",
    "is_disc_folder",
    "parse_disc_folder",
    "slug",
    "split_artist_names",
    "split_genres",
    "track_id",
]
