"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseModel):
    """Filesystem locations used by the service."""

    data_path: Path = Field(
        default=Path("./data"), description="Directory holding the catalog database"
    )
    upload_path: Path = Field(
        default=Path("./uploads/files"),
        description="Directory where uploaded audio files are kept and served from",
    )
    temp_path: Path = Field(
        default=Path("./uploads/temp"),
        description="Scratch directory for remote downloads (deleted after extraction)",
    )


class DatabaseSettings(BaseModel):
    """Catalog document store configuration."""

    url: str = Field(
        default="sqlite+aiosqlite:///./data/muzak.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")


class IngestionSettings(BaseModel):
    """Batch sizes and cover-art limits for ingestion."""

    local_batch_size: int = Field(default=5, ge=1)
    remote_batch_size: int = Field(default=3, ge=1)
    cover_max_size: int = Field(
        default=400, ge=16, description="Max square edge of stored cover art (px)"
    )
    cover_quality: int = Field(default=95, ge=1, le=100)
    max_upload_files: int = Field(default=100, ge=1)


class RemoteSettings(BaseModel):
    """Remote share (Google Drive) access."""

    google_api_key: str | None = Field(
        default=None, description="Drive v3 API key used for folder listing"
    )
    max_redirects: int = Field(default=5, ge=0)
    request_timeout: float = Field(default=60.0, gt=0)
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )


class ReplicationSettings(BaseModel):
    """Mirror instance the catalog snapshot is replicated to."""

    mirror_url: str | None = Field(
        default=None, description="Base URL of the mirror instance"
    )
    push_timeout: float = Field(default=60.0, gt=0)
    restore_on_empty: bool = Field(
        default=True,
        description="Pull the mirror snapshot at startup when the local store is empty",
    )

    @field_validator("mirror_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        return value or None


class ObservabilitySettings(BaseModel):
    """Logging and lifecycle timing."""

    log_json_format: bool = Field(default=False)
    startup_load_timeout: float = Field(
        default=2.0,
        gt=0,
        description="Seconds to wait for the catalog load before serving anyway",
    )
    shutdown_timeout: float = Field(default=10.0, gt=0)


class ApiSettings(BaseModel):
    """HTTP server binding."""

    host: str = "0.0.0.0"
    port: int = 5000


class Settings(BaseSettings):
    """Root settings object.

    Nested sections are configured with a double underscore, e.g.
    ``REMOTE__GOOGLE_API_KEY`` or ``REPLICATION__MIRROR_URL``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "muzak"
    log_level: str = "INFO"
    public_url: str | None = Field(
        default=None, description="Public base URL of this instance"
    )

    storage: StorageSettings = Field(default_factory=StorageSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    replication: ReplicationSettings = Field(default_factory=ReplicationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    def ensure_directories(self) -> None:
        """Create storage directories if they don't exist."""
        for path in (
            self.storage.data_path,
            self.storage.upload_path,
            self.storage.temp_path,
        ):
            path.mkdir(parents=True, exist_ok=True)

    # Hey future me - the mirror must never be this instance itself, or every ingestion
    # would POST the snapshot back to us and trigger another push. Compare normalized URLs.
    def is_self_mirror(self) -> bool:
        """Check whether the configured mirror points back at this instance."""
        mirror = self.replication.mirror_url
        if not mirror or not self.public_url:
            return False
        return mirror.rstrip("/").lower() == self.public_url.rstrip("/").lower()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
