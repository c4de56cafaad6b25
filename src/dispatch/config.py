"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Bodega Dispatch Engine API"
    api_prefix: str = "/api"
    product_catalog_file: Path = Field(
        default=Path("data/productos_volumen.xlsx"),
        description="Fallback product catalog workbook (unit volume and weight per product).",
    )

    default_city: str = Field(default="Medellín", description="City used when an address cannot be resolved.")
    default_warehouse_capacity_m3: float = Field(
        default=1000.0,
        ge=0.0,
        description="Capacity assumed for a warehouse record without capacidad_total_m3.",
    )

    critical_priority_probability: float = Field(default=0.1, ge=0.0, le=1.0)
    priority_seed: Optional[int] = Field(
        default=None,
        description="Seed for the random priority policy. Leave unset in production.",
    )

    operating_start: str = Field(default="08:00", pattern=r"^\d{2}:\d{2}$")
    operating_end: str = Field(default="18:00", pattern=r"^\d{2}:\d{2}$")
    eta_dispatch_buffer_minutes: int = Field(default=30, ge=0)
    eta_service_minutes: int = Field(default=45, ge=1)

    optimizer_provider: Literal["gemini", "http"] = Field(
        default="gemini",
        description="gemini calls generateContent directly; http posts the request to a JSON service.",
    )
    optimizer_base_url: Optional[str] = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the external route optimizer.",
    )
    optimizer_api_key: Optional[str] = Field(default=None, description="API key for the optimizer service.")
    optimizer_model: str = Field(default="gemini-pro")
    optimizer_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    optimizer_max_output_tokens: int = Field(default=2048, ge=1)
    optimizer_timeout_seconds: float = Field(default=60.0, gt=0.0)
    optimizer_max_retries: int = Field(default=3, ge=0)
    optimizer_backoff_seconds: float = Field(default=1.0, ge=0.0)

    dispatch_max_workers: int = Field(default=4, ge=1)
    low_punctuality_threshold: float = Field(default=90.0, ge=0.0, le=100.0)
    low_utilization_threshold: float = Field(default=50.0, ge=0.0, le=100.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:8080",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("product_catalog_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
