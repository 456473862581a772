"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "ICD-10 Lookup Service"
    debug: bool = False

    # ICD-10 catalog
    # Defaults to fixtures/icd10_codes.json when unset
    icd10_catalog_path: str | None = None
    icd10_load_timeout_seconds: float = 30.0
    icd10_default_search_limit: int = 10
    icd10_similar_limit: int = 5
    icd10_context_max_entries: int = 15

    # API
    cors_origins: list[str] = ["http://localhost:3000"]


settings = Settings()
