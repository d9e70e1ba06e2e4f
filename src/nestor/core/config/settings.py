"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Nestor insights server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; there is no auth layer in front of the tools.
    nestor_host: str = "127.0.0.1"
    nestor_port: int = 8001
    nestor_log_level: str = "info"
    # Binding to a non-loopback host is refused unless this is set.
    nestor_allow_insecure_bind: bool = False

    # Feature extraction
    feature_window_size: int = 24
    feature_step_size: int = 12

    # Insights engine
    insights_time_frame: Literal["day", "week", "month", "year"] = "week"
    recommendation_policy: Literal["static", "prioritized"] = "static"

    # Pattern detection
    pattern_lookback_days: int = 7

    # Storage (assessment history). Empty disables the storage-backed tools.
    db_path: str = "~/.nestor/assessments.db"
    encryption_key: str = ""
    default_user_id: str = "local"


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
