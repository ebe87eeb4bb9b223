"""Store configuration, env-driven.

Reads from a .env file and REVSTORE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreConfig(BaseSettings):
    """Configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export REVSTORE_DATA_PATH=/data/revstore
        export REVSTORE_LOG_LEVEL=DEBUG
        export REVSTORE_VERIFY_REVISIONS=true
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="REVSTORE_",
        env_file_encoding="utf-8",
    )

    # Logging
    log_level: str = "INFO"

    # Storage
    data_path: Path = Path(".revstore")

    # Behaviour
    verify_revisions: bool = False
    max_write_retries: int = Field(default=3, ge=1)
    merge_on_write: bool = True

    @property
    def content_path(self) -> Path:
        """Directory of the content blob store."""
        return self.data_path / "content"

    @property
    def revision_db_path(self) -> Path:
        """SQLite database holding one revision tree per content."""
        return self.data_path / "revisions.db"


# Module-level singleton, import as `from revstore.config import config`
config = StoreConfig()
