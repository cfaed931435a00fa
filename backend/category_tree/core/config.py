from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Category Tree API"
    app_version: str = "0.1.0"
    environment: str = "local"

    database_url: str = "sqlite+aiosqlite:///./category_tree.db"
    log_json: bool = False

    cors_origins: list[str] = ["http://localhost:4200"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    search_limit: int = 10
    default_page_size: int = 20
    max_page_size: int = 100

    import_encoding: str = "utf-8"
    import_match_scope: Literal["global", "parent"] = "global"
    # Directory the API import reads from; unset disables POST /categories/import.
    # The CLI import is not restricted by it.
    import_root: str | None = None


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
