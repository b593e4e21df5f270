"""Configuration settings for blob-meta."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BLOB_META_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database (any SQLAlchemy async URL, e.g. postgresql+asyncpg://...)
    database_url: str = "sqlite+aiosqlite:///./blob_meta.db"
    database_echo: bool = False

    # Reject add_owner when the blob row does not exist yet
    strict_ownership: bool = False


settings = Settings()
