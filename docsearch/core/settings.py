from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Docsearch API"
    environment: Literal["dev", "test", "prod"] = "dev"
    log_level: str = "INFO"

    typesense_host: str = "localhost"
    typesense_port: int = 8108
    typesense_protocol: Literal["http", "https"] = "http"
    typesense_api_key: str = "xyz"
    typesense_connection_timeout_seconds: float = 2.0
    typesense_max_retries: int = Field(default=3, ge=1)

    collection_name: str = "articles"

    default_per_page: int = Field(default=50, ge=1)
    # typesense refuses anything above 250 per page
    max_per_page: int = Field(default=250, ge=1, le=250)
    highlight_affix_num_tokens: int = Field(default=4, ge=0)

    ingest_mode: Literal["single", "batch"] = "single"
    ingest_concurrency: int = Field(default=8, ge=1, le=256)
    ingest_error_preview: int = Field(default=5, ge=0)

    rate_limit_per_minute: int = 120
    ingest_rate_limit_per_minute: int = 6

    @property
    def typesense_base_url(self) -> str:
        return f"{self.typesense_protocol}://{self.typesense_host}:{self.typesense_port}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
