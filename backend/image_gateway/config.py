"""
Image gateway configuration. All settings from environment (GATEWAY_ prefix) or .env.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from image_gateway import __version__


class GatewayOptions(BaseModel):
    """Deployment variant switches consumed by the request validator.

    forced_model: when set, every request uses this model and the body's ``model`` is ignored.
    default_model: model used when the body omits ``model``.
    enforce_model_catalog: reject models missing from the capability catalog.
    include_legacy_shape: add ``data: [{url}]`` next to ``images`` in results.
    """

    model_config = ConfigDict(frozen=True)

    forced_model: str | None = None
    default_model: str = "img3"
    enforce_model_catalog: bool = True
    include_legacy_shape: bool = True
    default_size: str = "1024x1024"
    default_image_count: int = 1


class GatewaySettings(BaseSettings):
    """Image generation gateway settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Upstream
    api_key: str = Field(default="", description="Bearer credential for the upstream generation API.")
    api_base_url: str = Field(default="https://api.infip.pro")
    user_agent: str = Field(default=f"image-gateway/{__version__}")
    require_api_key: bool = Field(
        default=True,
        description="Refuse to start when api_key is empty.",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    frontend_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:5500",
        description="Comma-separated CORS allowlist. '*' allows any origin.",
    )
    environment: Literal["development", "staging", "production"] = Field(default="production")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    # Timeouts (image generation is slow)
    generation_timeout_seconds: float = Field(default=180.0, ge=10.0, le=600.0)
    models_timeout_seconds: float = Field(default=10.0, ge=1.0, le=120.0)
    download_timeout_seconds: float = Field(default=60.0, ge=1.0, le=600.0)

    # Variant switches
    forced_model: str | None = Field(default=None, description="Pin every request to this model.")
    default_model: str = Field(default="img3", description="Model used when the request omits one.")
    enforce_model_catalog: bool = Field(default=True)
    include_legacy_shape: bool = Field(default=True, description="Also return data: [{url}] for older clients.")
    default_size: str = Field(default="1024x1024")
    default_image_count: int = Field(default=1, ge=1, le=4)

    # Live model listing cache; 0 disables caching.
    catalog_cache_ttl_seconds: float = Field(default=300.0, ge=0.0, le=86400.0)

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.frontend_origins.split(",") if o.strip()]
        if "*" in origins:
            origins = ["*"]
        return origins

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def api_configured(self) -> bool:
        return bool(self.api_key.strip())

    @property
    def options(self) -> GatewayOptions:
        return GatewayOptions(
            forced_model=(self.forced_model or "").strip() or None,
            default_model=self.default_model,
            enforce_model_catalog=self.enforce_model_catalog,
            include_legacy_shape=self.include_legacy_shape,
            default_size=self.default_size,
            default_image_count=self.default_image_count,
        )


@lru_cache
def get_settings() -> GatewaySettings:
    return GatewaySettings()
