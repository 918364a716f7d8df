import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    remote_url: str = Field(
        "https://medical-backend-3eek.onrender.com/api/ai-planner",
        alias="STUDYPLAN_REMOTE_URL",
    )
    remote_timeout_ms: int = Field(12000, alias="STUDYPLAN_REMOTE_TIMEOUT_MS")
    database_url: Optional[str] = Field(None, alias="STUDYPLAN_DATABASE_URL")
    database_pool_size: int = Field(10, alias="STUDYPLAN_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="STUDYPLAN_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="STUDYPLAN_DATABASE_ECHO")
    persistence_mode: Literal["memory", "file", "database", "remote"] = Field(
        "memory",
        alias="STUDYPLAN_PERSISTENCE_MODE",
    )
    data_dir: Optional[str] = Field(None, alias="STUDYPLAN_DATA_DIR")
    default_days_per_week: int = Field(5, ge=1, le=7, alias="STUDYPLAN_DEFAULT_DAYS_PER_WEEK")
    sticky_replanning: bool = Field(True, alias="STUDYPLAN_STICKY_REPLANNING")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
