"""Models for vision model findings."""

from typing import Literal

from pydantic import BaseModel, Field


class FindingFeature(BaseModel):
    """Feature reported by the vision model."""

    type: str
    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    description: str


class FindingMeasurement(BaseModel):
    """Measurement reported by the vision model."""

    type: str
    value: float
    unit: str


class FindingRiskFactor(BaseModel):
    """Risk factor reported by the vision model."""

    type: str
    description: str


class FindingRedFlag(BaseModel):
    """Red flag reported by the vision model."""

    type: str
    description: str
    urgency: Literal["routine", "urgent", "emergency"]
    action_required: str


class SceneFindings(BaseModel):
    """Structured output for scene analysis."""

    features: list[FindingFeature]
    measurements: list[FindingMeasurement]
    observations: list[str]
    risk_level: Literal["low", "medium", "high", "critical"]
    risk_factors: list[FindingRiskFactor]
    red_flags: list[FindingRedFlag]
    confidence: float = Field(ge=0.0, le=1.0)
