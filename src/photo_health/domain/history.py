"""Domain models for analysis history."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from photo_health.domain.analysis import DetectedFeature, RiskLevel


class HistoryRecord(BaseModel):
    """Summary of a finished analysis."""

    id: UUID
    analysis_id: UUID
    scene_id: str
    scene_name: str
    timestamp: datetime
    summary: str
    risk_level: RiskLevel
    requires_manual_review: bool = False
    has_followup: bool = False
    observation_count: int = Field(default=0, ge=0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    features: list[DetectedFeature] = Field(default_factory=list)


class HistoryExport(BaseModel):
    """Portable history document."""

    version: str = "1.0"
    exported_at: datetime
    records: list[HistoryRecord]
