"""Models describing scenes and their capture requirements."""

from typing import Literal

from pydantic import BaseModel, Field

SceneType = Literal["professional", "consumer"]
TargetAudience = Literal[
    "wound_ostomy_specialist",
    "nurse",
    "patient",
    "general_public",
    "caregiver",
]
StepType = Literal[
    "image_capture",
    "image_qa",
    "analysis",
    "assessment",
    "recommendation",
    "confirmation",
    "report",
]


class Resolution(BaseModel):
    """Image dimensions in pixels."""

    width: int = Field(ge=0)
    height: int = Field(ge=0)


class CaptureRequirements(BaseModel):
    """Per-scene capture requirements.

    Threshold fields left as ``None`` fall back to the deployment-wide
    quality policy.
    """

    min_resolution: Resolution
    lighting: Literal["natural", "artificial", "flash", "any"] = "any"
    background: str = ""
    distance: str = ""
    angle: str = ""
    avoid: list[str] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    strict: bool = False
    requires_scale_reference: bool = False
    min_quality_score: int | None = Field(default=None, ge=0, le=100)
    block_threshold: int | None = Field(default=None, ge=0, le=100)
    strict_block_threshold: int | None = Field(default=None, ge=0, le=100)


class WorkflowStep(BaseModel):
    """One step of a scene workflow."""

    id: str
    name: str
    type: StepType
    required: bool = True


class WorkflowConfig(BaseModel):
    """Workflow settings for a scene."""

    steps: list[WorkflowStep]
    require_manual_confirm: bool = False
    auto_generate_report: bool = False
    enable_followup: bool = False


class SceneConfiguration(BaseModel):
    """Static configuration registered for a scene."""

    id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    scene_type: SceneType
    target_audience: TargetAudience
    workflow: WorkflowConfig
    required_fields: list[str] = Field(default_factory=lambda: ["image"])
    capture_requirements: CaptureRequirements | None = None


class InputValidation(BaseModel):
    """Result of a handler's input validation."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
