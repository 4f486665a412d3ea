"""Application settings and configuration."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RenditionSpec(BaseModel):
    """Target box and encoding for one derived image."""

    model_config = ConfigDict(frozen=True)

    # Also the storage key category, so it must be a safe path segment
    name: str = Field(
        ...,
        pattern=r"^[a-z0-9][a-z0-9_-]*$",
        max_length=64,
        description="Rendition name, e.g. 'thumbnail'"
    )
    max_width: int = Field(..., gt=0, description="Maximum width in pixels")
    max_height: int = Field(..., gt=0, description="Maximum height in pixels")
    quality: int = Field(default=85, ge=1, le=100, description="Encoder quality")
    format: Literal["jpeg", "png", "webp"] = Field(
        default="jpeg",
        description="Output format of the rendition"
    )


DEFAULT_RENDITIONS = [
    RenditionSpec(name="thumbnail", max_width=200, max_height=200, quality=80),
    RenditionSpec(name="medium", max_width=800, max_height=800, quality=85),
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(
        default="Media Asset Service",
        description="Application name"
    )
    environment: Literal["local", "dev", "stage", "prod"] = Field(
        default="local",
        description="Deployment environment"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Storage Configuration (for original and rendition bytes)
    storage_type: Literal["local", "memory"] = Field(
        default="local",
        description="Storage backend type for asset bytes"
    )
    storage_root: Path = Field(
        default=Path("data/assets"),
        description="Root directory for local storage"
    )

    # Metadata Storage Configuration
    metadata_storage: Literal["memory", "database"] = Field(
        default="database",
        description="Storage backend for asset records"
    )

    @field_validator("storage_root", mode="before")
    @classmethod
    def resolve_storage_path(cls, v: str | Path) -> Path:
        """Ensure storage root is a Path object."""
        if isinstance(v, str):
            return Path(v)
        return v

    # Database Configuration (for metadata)
    database_url: str = Field(
        default="sqlite:///data/assets.sqlite3",
        description="Database connection URL"
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL statements (for debugging)"
    )

    # Upload validation
    max_upload_size: int = Field(
        default=5 * 1024 * 1024,  # 5MiB
        gt=0,
        description="Maximum upload size in bytes"
    )
    min_dimension: int = Field(
        default=200,
        gt=0,
        description="Minimum accepted width/height in pixels"
    )
    max_dimension: int = Field(
        default=5000,
        gt=0,
        description="Maximum accepted width/height in pixels"
    )
    allowed_formats: list[str] = Field(
        default=["jpeg", "png", "webp"],
        description="Decoded formats accepted for upload"
    )

    @field_validator("allowed_formats")
    @classmethod
    def normalize_formats(cls, v: list[str]) -> list[str]:
        """Lowercase format names so they compare against Pillow's."""
        return [fmt.strip().lower() for fmt in v if fmt.strip()]

    # Renditions
    renditions: list[RenditionSpec] = Field(
        default_factory=lambda: list(DEFAULT_RENDITIONS),
        description="Renditions derived from every original"
    )
    rendition_background: str = Field(
        default="#ffffff",
        description="Background colour used when flattening transparency"
    )
    rendition_workers: int = Field(
        default=0,
        ge=0,
        description="Worker threads for rendition generation (0 runs inline)"
    )

    # Bulk ingestion
    max_batch_size: int = Field(
        default=10,
        gt=0,
        description="Maximum number of files accepted by one bulk upload"
    )
    bulk_concurrency: int = Field(
        default=4,
        gt=0,
        description="Number of bulk items processed at the same time"
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Path to log file (if None, logs to stdout only)"
    )

    @model_validator(mode="after")
    def check_dimension_bounds(self) -> "Settings":
        """Reject an empty dimension range."""
        if self.min_dimension > self.max_dimension:
            raise ValueError(
                f"min_dimension ({self.min_dimension}) must not exceed "
                f"max_dimension ({self.max_dimension})"
            )
        return self

    @property
    def log_level_numeric(self) -> int:
        """Get numeric log level."""
        return getattr(logging, self.log_level)

    def configure_logging(self) -> None:
        """Configure logging based on settings."""
        import sys

        handlers: list[logging.Handler] = []

        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        handlers.append(console_handler)

        # File handler if specified
        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_file)
            handlers.append(file_handler)

        if self.log_json:
            formatter: logging.Formatter = JSONFormatter()
        else:
            formatter = logging.Formatter(self.log_format)

        for handler in handlers:
            handler.setFormatter(formatter)

        logging.basicConfig(
            level=self.log_level_numeric,
            handlers=handlers,
            force=True,
        )

        if self.debug:
            logging.getLogger("media_assets").setLevel(logging.DEBUG)
        else:
            # Reduce noise from third-party libraries
            logging.getLogger("PIL").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    def get_storage_path(self, *paths: str) -> Path:
        """Get a path relative to storage root."""
        full_path = self.storage_root
        for path in paths:
            full_path = full_path / path
        return full_path


class JSONFormatter(logging.Formatter):
    """Structured log formatter, one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        import json

        log_obj = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
