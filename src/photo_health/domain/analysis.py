"""Scene-agnostic analysis result envelope."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

RiskLevel = Literal["low", "medium", "high", "critical"]
Urgency = Literal["routine", "urgent", "emergency"]
Priority = Literal["low", "medium", "high"]
RecommendationType = Literal[
    "immediate_action", "lifestyle", "followup", "referral", "education"
]


class DetectedFeature(BaseModel):
    """Feature detected in an image."""

    model_config = ConfigDict(frozen=True)

    type: str
    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    description: str = ""


class Measurement(BaseModel):
    """Quantity measured from an image."""

    model_config = ConfigDict(frozen=True)

    type: str
    value: float
    unit: str
    method: Literal["auto", "manual", "estimated"] = "auto"


class ImageAnalysis(BaseModel):
    """Image-level findings."""

    model_config = ConfigDict(frozen=True)

    features: tuple[DetectedFeature, ...] = ()
    measurements: tuple[Measurement, ...] = ()
    observations: tuple[str, ...] = ()


class RiskFactor(BaseModel):
    """Contributing risk factor."""

    model_config = ConfigDict(frozen=True)

    type: str
    description: str
    weight: float = Field(default=0.5, ge=0.0, le=1.0)


class RedFlag(BaseModel):
    """Finding that needs attention."""

    model_config = ConfigDict(frozen=True)

    type: str
    description: str
    urgency: Urgency
    action_required: str


class RiskAssessment(BaseModel):
    """Overall risk with its factors and flags."""

    model_config = ConfigDict(frozen=True)

    level: RiskLevel
    score: float | None = None
    factors: tuple[RiskFactor, ...] = ()
    flags: tuple[RedFlag, ...] = ()


class Recommendation(BaseModel):
    """Actionable advice attached to a result."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: RecommendationType
    priority: Priority
    title: str
    content: str
    target_audience: str = "general_public"
    evidence_source: str | None = None
    disclaimers: tuple[str, ...] = ()


class AnalysisResult(BaseModel):
    """Result produced once per session by a scene handler."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    scene_id: str
    timestamp: datetime
    image_analysis: ImageAnalysis
    risk_assessment: RiskAssessment
    recommendations: tuple[Recommendation, ...] = ()
    requires_manual_review: bool
    confidence: float = Field(ge=0.0, le=1.0)
