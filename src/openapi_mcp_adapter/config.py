"""Configuration for the OpenAPI MCP Adapter."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_BASE_URL = "http://localhost/api"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False, populate_by_name=True)

    service_name: str = Field(default="openapi-mcp-adapter")

    openapi_schema_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("openapi_schema_path", "openapi_url"),
    )
    api_base_url: Optional[str] = Field(default=None)
    # Fallback bearer credential for outbound API calls.
    api_key: Optional[str] = Field(default=None)
    # Bearer token sent when fetching a remote schema.
    api_token: Optional[str] = Field(default=None)
    api_timeout_seconds: float = Field(default=30)
    api_verify_ssl: bool = Field(default=True)

    adapter_transport: str = Field(default="stdio")
    adapter_host: str = Field(default="0.0.0.0")
    adapter_port: int = Field(default=8000)

    adapter_max_concurrency: int = Field(default=20)
    adapter_argument_cache_size: int = Field(default=1024)
    adapter_argument_cache_seconds: int = Field(default=300)
    adapter_result_format: str = Field(default="yaml")

    adapter_log_level: str = Field(default="INFO")

    def result_format(self) -> str:
        fmt = self.adapter_result_format.strip().lower()
        return fmt if fmt in {"yaml", "json"} else "yaml"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
