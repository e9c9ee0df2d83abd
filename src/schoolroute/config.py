"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SCHOOLROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "School Route Dispatch API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the application factory.")
    data_root: Path = Field(default=Path("data"), description="Root directory for route snapshots.")
    persist_snapshots: bool = Field(
        default=False,
        description="Mirror committed route instances as JSON files under data_root/outputs.",
    )
    maps_base_url: str = Field(
        default="https://maps.googleapis.com/maps/api",
        description="Base URL for the Google Maps web services.",
    )
    maps_api_key: Optional[str] = Field(default=None, description="Google Maps API key.")
    maps_mode: Literal["driving", "walking", "bicycling"] = Field(
        default="driving",
        description="Travel mode used for distance matrix and directions requests.",
    )
    maps_timeout_seconds: float = Field(default=10.0, gt=0.0)
    maps_max_retries: int = Field(default=0, ge=0)
    maps_backoff_seconds: float = Field(default=0.5, ge=0.0)
    small_route_threshold: int = Field(
        default=10,
        ge=0,
        description="Stop counts up to this value use the provider's waypoint optimizer.",
    )
    fallback_speed_kmh: float = Field(
        default=36.0,
        gt=0.0,
        description="Average speed assumed when a hop falls back to haversine distance.",
    )
    default_geofence_radius_m: int = Field(default=50, ge=1)
    approach_radius_factor: float = Field(default=2.0, ge=1.0)
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("data_root", mode="before")
    @classmethod
    def _resolve_data_root(cls, value: Any) -> Path:
        return Path(str(value)).expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> tuple[str, ...]:
        """Accept a JSON array or a comma-separated string of origins."""
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                value = json.loads(text)
            else:
                value = text.split(",")
        return tuple(str(origin).strip() for origin in value if str(origin).strip())


settings = Settings()
