"""Pydantic models for database and migration configuration."""

from pydantic import BaseModel, Field


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class MigrationSettings(BaseModel):
    """``[migration]`` section of db.toml."""

    models_file: str = "models.toml"
    allow_drop: bool = True
    atomic: bool = False


class DatabaseConfig(BaseModel):
    """Complete configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
