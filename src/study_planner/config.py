"""Runtime settings loaded from the environment."""
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STUDY_PLANNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    db_path: str = str(Path.home() / ".study_planner" / "planner.db")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Per-user schedule lock
    lock_timeout_seconds: float = Field(300.0, gt=0)
    lock_sweep_interval_seconds: float = Field(60.0, gt=0)

    # Daily target persistence
    target_write_retries: int = Field(3, ge=1)
    target_retry_delay_seconds: float = Field(0.1, ge=0)

    # Schedule write-back
    schedule_batch_size: int = Field(100, ge=1)
    default_schedule_days: int = Field(30, ge=1, le=365)


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid planner configuration: {exc}") from exc
