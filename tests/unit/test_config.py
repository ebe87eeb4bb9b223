"""Tests for store configuration, env-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from revstore.config import StoreConfig


class TestStoreConfig:
    """StoreConfig defaults, derived paths and env overrides."""

    def test_defaults(self):
        """Defaults apply when no environment is set."""
        config = StoreConfig()
        assert config.log_level == "INFO"
        assert config.max_write_retries == 3
        assert config.merge_on_write is True
        assert config.verify_revisions is False

    def test_derived_paths(self):
        """Content and database paths live under data_path."""
        config = StoreConfig(data_path=Path("/data/store"))
        assert config.content_path == Path("/data/store/content")
        assert config.revision_db_path == Path("/data/store/revisions.db")

    def test_env_override(self, monkeypatch, tmp_path):
        """REVSTORE_* variables override the defaults."""
        monkeypatch.setenv("REVSTORE_DATA_PATH", str(tmp_path))
        monkeypatch.setenv("REVSTORE_MAX_WRITE_RETRIES", "5")
        monkeypatch.setenv("REVSTORE_VERIFY_REVISIONS", "true")
        config = StoreConfig()
        assert config.data_path == tmp_path
        assert config.max_write_retries == 5
        assert config.verify_revisions is True

    def test_retries_must_be_positive(self):
        """max_write_retries must be at least 1."""
        with pytest.raises(ValidationError):
            StoreConfig(max_write_retries=0)
