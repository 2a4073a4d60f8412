"""Domain models for comparing analyses of one scene over time."""

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from photo_health.domain.history import HistoryRecord

ChangeDirection = Literal["improved", "worsened", "unchanged"]
ChangeSignificance = Literal["minor", "moderate", "significant"]
TrendDirection = Literal["improving", "stable", "worsening"]
ComparisonMetric = Literal["risk", "observations", "confidence"]


class DetectedChange(BaseModel):
    """Difference between the earliest and the latest analysis."""

    feature: str
    from_value: str
    to_value: str
    direction: ChangeDirection
    significance: ChangeSignificance


class TrendAnalysis(BaseModel):
    """Overall direction across the compared analyses."""

    overall: TrendDirection = "stable"
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    factors: list[str] = Field(default_factory=list)


class ComparisonResult(BaseModel):
    """Outcome of comparing several analyses, oldest first."""

    records: list[HistoryRecord]
    changes: list[DetectedChange] = Field(default_factory=list)
    trend: TrendAnalysis = Field(default_factory=TrendAnalysis)
    summary: str


class TimelinePoint(BaseModel):
    """One analysis plotted on a timeline."""

    date: date
    risk_level: int = Field(ge=1, le=4)
    observation_count: int
    confidence: float
