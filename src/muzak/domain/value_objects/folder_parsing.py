"""Path and folder-name parsing for ingestion.

Hey future me - disc numbers come from the PATH, not from tags. Rippers and share
uploads are wildly inconsistent with TPOS/discnumber tags, but "CD2" or "Disc 2" in a
folder name is almost always right. No match means "no disc number" - we never
default to 1, single-disc albums stay without a disc number.

Examples:
    disc_number_from_path("Album/CD2/01 - Intro.mp3")      # 2
    disc_number_from_path("Album/Disc 3/track.flac")       # 3
    disc_number_from_path("Album/01 - Intro.mp3")          # None
    is_disc_folder("cd1")                                  # True
"""

import re
from pathlib import PurePath

# =============================================================================
# REGEX PATTERNS
# =============================================================================

# Disc marker anywhere inside one path segment: "CD2", "cd 2", "Disc 3", "Album [Disc1]"
# First segment (from the root) that matches wins.
DISC_SEGMENT_PATTERN = re.compile(r"(?:cd|disc)\s*(?P<disc>\d+)", re.IGNORECASE)

# Whole-name disc folder: "CD1", "Disc 2", "disc 2 - Bonus", "CD 3: Live"
DISC_FOLDER_PATTERN = re.compile(
    r"^\s*(?:cd|disc)\s*(?P<disc>\d+)(?:\s*[-–:]\s*(?P<title>.+))?\s*$",
    re.IGNORECASE,
)

# Supported audio file extensions (lowercase, with dot)
AUDIO_EXTENSIONS = frozenset(
    {
        ".mp3",
        ".m4a",
        ".flac",
        ".wav",
        ".ogg",
        ".aac",
        ".wma",
    }
)


def is_audio_filename(name: str) -> bool:
    """Check whether a file name has a supported audio extension."""
    return PurePath(name).suffix.lower() in AUDIO_EXTENSIONS


def disc_number_from_path(path: str | PurePath) -> int | None:
    """Derive the disc number from the first path segment carrying a disc marker.

    Args:
        path: File path (relative or absolute)

    Returns:
        Disc number, or None when no segment matches
    """
    for segment in PurePath(path).parts:
        match = DISC_SEGMENT_PATTERN.search(segment)
        if match:
            return int(match.group("disc"))
    return None


def parse_disc_folder(name: str) -> int | None:
    """Return the disc number if the folder name is a disc folder, else None."""
    match = DISC_FOLDER_PATTERN.match(name)
    if match:
        return int(match.group("disc"))
    return None


def is_disc_folder(name: str) -> bool:
    """Check whether a folder name denotes a disc grouping (CD1, Disc 2...)."""
    return parse_disc_folder(name) is not None
