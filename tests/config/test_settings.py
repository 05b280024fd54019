"""Tests for checkpoint tool settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from config.settings import Settings, get_settings


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run from an empty directory so no stray .env or env vars leak in."""
    monkeypatch.chdir(tmp_path)
    for var in (
        "GIT_CHECKPOINT_STORAGE_DIR",
        "GIT_CHECKPOINT_LOG_LEVEL",
        "GIT_CHECKPOINT_LOCK_TIMEOUT_SECONDS",
        "GIT_CHECKPOINT_GIT_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(var, raising=False)


class TestSettingsDefaults:
    """Tests for default values."""

    def test_defaults(self) -> None:
        settings = Settings()

        assert settings.storage_dir == ".checkpoints"
        assert settings.log_level == "WARNING"
        assert settings.lock_timeout_seconds == 10.0
        assert settings.git_timeout_seconds == 30.0


class TestSettingsOverrides:
    """Tests for environment and .env overrides."""

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GIT_CHECKPOINT_STORAGE_DIR", ".snapshots")
        monkeypatch.setenv("GIT_CHECKPOINT_LOG_LEVEL", "debug")
        monkeypatch.setenv("GIT_CHECKPOINT_LOCK_TIMEOUT_SECONDS", "2.5")

        settings = Settings()

        assert settings.storage_dir == ".snapshots"
        assert settings.log_level == "DEBUG"
        assert settings.lock_timeout_seconds == 2.5

    def test_dotenv_file(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text(
            "GIT_CHECKPOINT_STORAGE_DIR=backups/checkpoints\nUNRELATED_APP_SETTING=1\n"
        )

        settings = Settings()

        assert settings.storage_dir == "backups/checkpoints"

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestSettingsValidation:
    """Tests for rejected values."""

    @pytest.mark.parametrize("value", ["/abs/path", "../outside", "a/../../b", ".", ""])
    def test_storage_dir_must_stay_inside_working_dir(self, value: str) -> None:
        with pytest.raises(ValidationError, match="storage_dir"):
            Settings(storage_dir=value)

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError, match="Invalid log level"):
            Settings(log_level="VERBOSE")

    @pytest.mark.parametrize("value", [0, -1, 601])
    def test_lock_timeout_bounds(self, value: float) -> None:
        with pytest.raises(ValidationError):
            Settings(lock_timeout_seconds=value)
