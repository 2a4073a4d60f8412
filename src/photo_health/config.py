"""Application configuration."""

import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from photo_health.services.quality import QualityPolicy

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    admin_token: str
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str = "high"
    openai_store: bool = False
    openai_image_detail: Literal["low", "high", "auto"] = "high"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    allowed_scene_ids: str | None = None
    min_quality_score: int = 60
    strict_min_quality_score: int = 70
    block_threshold: int = 50
    strict_block_threshold: int = 80
    analyze_timeout_seconds: float = 30.0
    image_fetch_timeout_seconds: float = 15.0
    history_max_records: int = 100
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def quality_policy(self) -> QualityPolicy:
        """Return the deployment-wide quality thresholds."""
        return QualityPolicy(
            min_quality_score=self.min_quality_score,
            strict_min_quality_score=self.strict_min_quality_score,
            block_threshold=self.block_threshold,
            strict_block_threshold=self.strict_block_threshold,
        )


def parse_scene_allowlist(raw: str | None) -> set[str] | None:
    """Parse the comma-separated scene ids callers may use."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return None
    scene_ids = {chunk.strip() for chunk in cleaned.split(",") if chunk.strip()}
    return scene_ids or None
