"""Application configuration and settings management."""

from typing import Any

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FLOORIT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Floor-It Loop Planner API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level applied by the app factory.")
    user_agent: str = Field(default="floorit/0.1 (loop planner)", description="User-Agent sent to public backends.")

    # Routing backend
    osrm_servers: tuple[str, ...] = Field(
        default=(
            "https://router.project-osrm.org",
            "https://routing.openstreetmap.de/routed-car",
        ),
        description="OSRM base URLs in failover order; the first entry is the primary.",
    )
    osrm_profile: str = Field(default="driving", description="OSRM profile used for route and trip calls.")
    osrm_timeout_seconds: float = Field(default=8.0, gt=0.0)
    osrm_failover_reset_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description="Cool-down after which a failed-over client retries the primary server.",
    )

    # Road attribute backend
    overpass_url: str = Field(default="https://overpass-api.de/api/interpreter")
    overpass_timeout_seconds: float = Field(default=15.0, gt=0.0)
    overpass_sample_interval: int = Field(default=20, ge=1)
    overpass_max_samples: int = Field(default=40, ge=2)

    # Loop generation
    loop_batch_size: int = Field(default=4, ge=1)
    loop_max_scored_candidates: int = Field(default=6, ge=1)
    loop_max_results: int = Field(default=5, ge=1)
    loop_attribute_delay_seconds: float = Field(default=1.0, ge=0.0)
    loop_min_duration_factor: float = Field(default=0.4, ge=0.0)
    loop_max_duration_factor: float = Field(default=2.2, ge=0.0)
    loop_max_overlap_penalty: float = Field(default=0.5, ge=0.0, le=1.0)
    loop_min_circularity: float = Field(default=0.05, ge=0.0, le=1.0)
    min_floorability_score: int = Field(default=25, ge=0, le=100)

    # Floorability weights and normalizers
    weight_speed_delta: float = Field(default=0.35, ge=0.0)
    weight_signal_launch: float = Field(default=0.25, ge=0.0)
    weight_ramp_merge: float = Field(default=0.20, ge=0.0)
    weight_runway: float = Field(default=0.10, ge=0.0)
    weight_road_quality: float = Field(default=0.10, ge=0.0)
    total_score_normalizer: float = Field(default=150.0, gt=0.0)
    subscore_denominators: tuple[float, ...] = Field(
        default=(50.0, 40.0, 30.0, 30.0, 20.0),
        description="Speed delta, signal launch, ramp merge, runway and road quality denominators.",
    )

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("osrm_servers", "frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            # Try comma-separated
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            # Single value
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("subscore_denominators", mode="before")
    @classmethod
    def _parse_float_tuple_from_env(cls, value: Any) -> tuple[float, ...]:
        """Parse float tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(float(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(float(item) for item in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            return tuple(float(item.strip()) for item in value.split(",") if item.strip())
        return tuple()

    @field_validator("subscore_denominators")
    @classmethod
    def _check_denominators(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if len(value) != 5 or any(item <= 0 for item in value):
            raise ValueError("subscore_denominators needs five positive values.")
        return value


settings = Settings()
