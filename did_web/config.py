"""
Environment configuration via pydantic_settings.

Settings are built once by the entry point and passed down explicitly;
library code never reads os.environ.

Usage:
    from did_web.config import Settings
    settings = Settings()
    settings.domain
    settings.keys_path
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    All environment variables in one place.
    Names match the variables the Docker image and shell scripts export
    (DOMAIN, PORT, ...); matching is case-insensitive.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── Identity ────────────────────────────────────────────────────────
    domain: str | None = None
    did_path: str | None = None

    # ── Filesystem layout ───────────────────────────────────────────────
    root_dir: Path = Path(".")
    keys_dir: str = "keys"
    archive_dir: str = "did-document"

    # ── HTTP server ─────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)

    # ── Runtime ─────────────────────────────────────────────────────────
    # "development" | "production" | "test"
    environment: str = "development"
    log_level: str = "INFO"

    @field_validator("domain", "did_path", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def keys_path(self) -> Path:
        return self.root_dir / self.keys_dir

    @property
    def archive_path(self) -> Path:
        return self.root_dir / self.archive_dir

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"
