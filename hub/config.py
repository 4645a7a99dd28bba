# hub/config.py
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from HUB_* environment variables and .env."""

    model_config = SettingsConfigDict(
        env_prefix="HUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"

    # data tier
    baas_backend: Literal["memory", "rest"] = "memory"
    baas_url: Optional[str] = None
    baas_key: Optional[str] = None
    baas_timeout: float = 10.0
    storage_public_prefix: str = "/storage/v1/object/public/"
    # memory backend only: new sign-ups are confirmed immediately
    auth_auto_confirm: bool = False

    # geocoding (Nominatim)
    geocoder_url: str = "https://nominatim.openstreetmap.org"
    geocoder_user_agent: str = "distributor-hub/0.1"
    geocoder_country: str = "br"
    geocoder_timeout: float = 10.0
    geocode_interval: float = Field(default=1.0, ge=0)

    # locator / panel
    default_radius_km: int = Field(default=100, gt=0)
    admin_role: str = "Administrador"

    cors_origins: List[str] = ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def reset_settings() -> None:
    get_settings.cache_clear()
