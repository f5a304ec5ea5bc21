"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


HOME_CACHE_FILENAME = "home-merged.json"
CACHE_RESOURCE_PATH = "/posters/video_info"


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Home Feed", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    upstream_origin: HttpUrl | None = Field(default=None, alias="UPSTREAM_ORIGIN")
    feed_timeout_seconds: float = Field(
        default=10.0, alias="FEED_TIMEOUT", gt=0, le=60
    )

    config_json_url: str | None = Field(
        default=None,
        alias="CONFIGJSON",
        validation_alias=AliasChoices("CONFIGJSON", "CONFIG_JSON_URL"),
    )
    home_cache_url: str | None = Field(default=None, alias="HOME_CACHE_URL")
    home_cache_token: str | None = Field(default=None, alias="HOME_CACHE_TOKEN")
    home_cache_enabled: bool = Field(default=True, alias="HOME_CACHE_ENABLED")
    home_cache_ttl_seconds: int = Field(
        default=600, alias="HOME_CACHE_TTL", ge=0
    )

    omdb_api_key: str | None = Field(default=None, alias="OMDB_API_KEY")
    omdb_api_url: HttpUrl = Field(
        default="https://www.omdbapi.com/", alias="OMDB_API_URL"
    )
    omdb_enrich_limit: int = Field(
        default=10, alias="OMDB_ENRICH_LIMIT", ge=0, le=50
    )
    omdb_cache_ttl_seconds: int = Field(
        default=14 * 24 * 3600, alias="OMDB_CACHE_TTL", ge=0
    )
    enrichment_timeout_seconds: float = Field(
        default=8.0, alias="ENRICHMENT_TIMEOUT", gt=0, le=60
    )

    tvmaze_api_url: HttpUrl = Field(
        default="https://api.tvmaze.com", alias="TVMAZE_API_URL"
    )
    tvmaze_cache_ttl_seconds: int = Field(
        default=12 * 3600, alias="TVMAZE_CACHE_TTL", ge=0
    )
    bangumi_api_url: HttpUrl = Field(
        default="https://api.bgm.tv", alias="BANGUMI_API_URL"
    )

    airing_candidate_limit: int = Field(
        default=12, alias="AIRING_CANDIDATE_LIMIT", ge=1, le=50
    )
    airing_rail_size: int = Field(default=18, alias="AIRING_RAIL_SIZE", ge=1, le=100)

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator(
        "config_json_url",
        "home_cache_url",
        "home_cache_token",
        "omdb_api_key",
        mode="before",
    )
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @property
    def cache_base_url(self) -> str | None:
        """Return the remote store root derived from ``CONFIGJSON``."""

        raw = self.config_json_url
        if not raw:
            return None
        base = raw
        if base.lower().endswith("config.json"):
            base = base[: -len("config.json")]
        return base.rstrip("/") or None

    def cache_url_for(self, filename: str) -> str | None:
        """Return the remote store URL for a cache file under the base path."""

        base = self.cache_base_url
        if not base:
            return None
        return f"{base}{CACHE_RESOURCE_PATH}/{filename}"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
