"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from muzak.domain.entities import CatalogSnapshot
from muzak.domain.value_objects.folder_parsing import is_audio_filename

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


@dataclass(frozen=True)
class RemoteEntry:
    """One child of a remote folder as reported by a listing strategy.

    Scrape heuristics can't see mime types or sizes, so both stay optional there.
    """

    id: str
    name: str
    mime_type: str | None = None
    size: int | None = None

    @property
    def is_folder(self) -> bool:
        """Check whether the entry is a folder."""
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_audio(self) -> bool:
        """Check whether the entry looks like an audio file (extension or mime type)."""
        if self.is_folder:
            return False
        return is_audio_filename(self.name) or bool(
            self.mime_type and self.mime_type.startswith("audio/")
        )


class ICatalogStore(ABC):
    """Durable storage for the three catalog collections.

    Hey future me - the store is deliberately dumb: load everything, save everything.
    All merge logic lives in CatalogRepository, the store never sees partial updates.
    """

    @abstractmethod
    async def load(self) -> CatalogSnapshot:
        """Load the full catalog (empty snapshot when nothing was ever saved)."""
        pass

    @abstractmethod
    async def save(self, snapshot: CatalogSnapshot) -> None:
        """Replace the stored catalog with the snapshot in one transaction."""
        pass


class IFolderListingStrategy(ABC):
    """One way of enumerating the children of a remote folder.

    Strategies are tried in order; an empty list or an exception hands over to the
    next one.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short strategy name used in logs."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the strategy can run with the current configuration."""
        pass

    @abstractmethod
    async def list(self, folder_id: str) -> list[RemoteEntry]:
        """List the children of a remote folder."""
        pass


class IMirrorClient(ABC):
    """Client for the mirror instance the catalog is replicated to."""

    @abstractmethod
    async def push(self, snapshot: CatalogSnapshot) -> None:
        """Send the full snapshot to the mirror (raises on failure)."""
        pass

    @abstractmethod
    async def fetch(self) -> CatalogSnapshot:
        """Read the mirror's snapshot (read-only, raises on failure)."""
        pass


__all__ = [
    "FOLDER_MIME_TYPE",
    "ICatalogStore",
    "IFolderListingStrategy",
    "IMirrorClient",
    "RemoteEntry",
]
