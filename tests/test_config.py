"""Tests for db.toml loading and profile resolution."""

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from db_migrator.config import DatabaseProfile, MigrationSettings, load_db_config
from db_migrator.migrator import ProfileNotFoundError, get_active_profile_name, resolve_url


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "db.toml"
    path.write_text(textwrap.dedent(content))
    return path


class TestLoadDbConfig:
    """Parsing of [profiles.*] and [migration]."""

    def test_profiles_and_defaults(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            """
            [profiles.local]
            url = "postgresql://localhost/app"
            description = "Local dev"

            [profiles.prod]
            url = "postgresql://app:[YOUR-PASSWORD]@db/app"
            db_password = "secret"
            """,
        )

        config = load_db_config(path)

        assert list(config.profiles) == ["local", "prod"]
        assert config.profiles["local"].description == "Local dev"
        assert config.profiles["prod"].db_password == "secret"
        assert config.migration == MigrationSettings()
        assert config.migration.allow_drop is True

    def test_migration_section(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            """
            [profiles.local]
            url = "postgresql://localhost/app"

            [migration]
            models_file = "schema/models.toml"
            allow_drop = false
            atomic = true
            """,
        )

        settings = load_db_config(path).migration

        assert settings.models_file == "schema/models.toml"
        assert settings.allow_drop is False
        assert settings.atomic is True

    def test_defaults_to_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write(tmp_path, '[profiles.local]\nurl = "postgresql://localhost/app"\n')
        monkeypatch.chdir(tmp_path)
        assert "local" in load_db_config().profiles

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Database config not found"):
            load_db_config(tmp_path / "db.toml")

    def test_profile_without_url(self, tmp_path: Path) -> None:
        path = _write(tmp_path, '[profiles.local]\ndescription = "no url"\n')
        with pytest.raises(ValidationError):
            load_db_config(path)


class TestProfileResolution:
    """Explicit name, then environment."""

    def test_explicit_name_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PROFILE", "env")
        assert get_active_profile_name("cli") == "cli"

    def test_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PROFILE", "env")
        assert get_active_profile_name() == "env"

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DB_PROFILE", raising=False)
        monkeypatch.setenv("APP_DB_PROFILE", "staging")
        assert get_active_profile_name(env_prefix="APP_") == "staging"

    def test_nothing_configured(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DB_PROFILE", raising=False)
        with pytest.raises(ProfileNotFoundError, match="DB_PROFILE"):
            get_active_profile_name()

    def test_password_substitution_is_quoted(self) -> None:
        profile = DatabaseProfile(
            url="postgresql://app:[YOUR-PASSWORD]@db/app", db_password="p@ss/word"
        )
        assert resolve_url(profile) == "postgresql://app:p%40ss%2Fword@db/app"

    def test_url_without_placeholder(self) -> None:
        profile = DatabaseProfile(url="postgresql://localhost/app", db_password="x")
        assert resolve_url(profile) == "postgresql://localhost/app"
