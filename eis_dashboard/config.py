"""Application configuration from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    eis_env: str = "development"
    eis_log_level: str = "info"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Model routing
    model_cheap: str = "claude-haiku-4-5-20251001"
    model_mid: str = "claude-sonnet-4-5-20250929"
    eis_max_tokens: int = 4096

    # Completion retry envelope (seconds)
    eis_completion_max_attempts: int = 3
    eis_completion_backoff_seconds: float = 1.0

    # Saved runs
    eis_data_dir: Path = Path("data")
    eis_owner: str = "local"
    eis_history_limit: int = 5

    # Boundary between the low-F and high-F magnitude calibration bands
    eis_calibration_crossover_hz: float = 1000.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
