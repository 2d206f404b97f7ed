"""Netflow configuration via environment / .env file."""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NETFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Graph building ---
    MIN_STRENGTH: int = 3
    DEPTH: int = 2
    MAX_NODES: int = 500
    MAX_EDGES: int = 1000

    # --- Layout ---
    LAYOUT_ENABLED: bool = True
    LAYOUT_WIDTH: float = 800.0
    LAYOUT_HEIGHT: float = 600.0
    LAYOUT_ITERATIONS: int = 50
    LAYOUT_TIMEOUT: float = 5.0
    LAYOUT_SEED: int | None = None
    GRID_THRESHOLD: int = 200

    # --- Record store ---
    STORE_URL: str = ""
    STORE_API_KEY: str = ""
    STORE_TIMEOUT: float = 30.0
    SNAPSHOT_PATH: str = ""

    # --- Observability ---
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("MIN_STRENGTH")
    @classmethod
    def _strength_in_range(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError("MIN_STRENGTH must be between 1 and 10")
        return v

    @field_validator("LAYOUT_WIDTH", "LAYOUT_HEIGHT")
    @classmethod
    def _canvas_fits_margin(cls, v: float) -> float:
        # Positions are clamped 50 units from each edge.
        if v <= 100:
            raise ValueError("layout dimensions must exceed 100 units")
        return v

    @model_validator(mode="after")
    def _caps_positive(self) -> "Settings":
        if self.MAX_NODES < 1 or self.MAX_EDGES < 0:
            raise ValueError("MAX_NODES must be >= 1 and MAX_EDGES >= 0")
        return self


settings = Settings()
