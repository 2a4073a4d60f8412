"""Models for image quality assessment."""

from enum import StrEnum

from pydantic import BaseModel, Field


class DefectType(StrEnum):
    """Closed taxonomy of image defects."""

    BLUR = "blur"
    POOR_LIGHTING = "poor_lighting"
    OVEREXPOSURE = "overexposure"
    UNDEREXPOSURE = "underexposure"
    OCCLUSION = "occlusion"
    INSUFFICIENT_ROI = "insufficient_roi"
    NO_SCALE_REFERENCE = "no_scale_reference"
    COLOR_DISTORTION = "color_distortion"
    MOTION_BLUR = "motion_blur"
    OUT_OF_FOCUS = "out_of_focus"


class Severity(StrEnum):
    """Defect severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Defect(BaseModel):
    """Single detected image defect."""

    type: DefectType
    severity: Severity
    description: str


class ImageSignals(BaseModel):
    """Per-dimension signals extracted from an image, normalized to [0, 1].

    ``noise`` is the only dimension where higher is worse. ``width`` and
    ``height`` are zero when the extractor could not determine them.
    """

    sharpness: float = Field(ge=0.0, le=1.0)
    lighting: float = Field(ge=0.0, le=1.0)
    brightness: float = Field(ge=0.0, le=1.0)
    color_accuracy: float = Field(ge=0.0, le=1.0)
    roi_coverage: float = Field(ge=0.0, le=1.0)
    noise: float = Field(ge=0.0, le=1.0)
    stability: float = Field(ge=0.0, le=1.0)
    composition: float = Field(ge=0.0, le=1.0)
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    has_scale_reference: bool | None = None


class QualityResult(BaseModel):
    """Outcome of one quality assessment."""

    quality_score: int = Field(ge=0, le=100)
    defects: list[Defect]
    blocking: bool
    passed: bool
    retake_guidance: list[str]
    minimum_score: int = Field(ge=0, le=100)
    signals: ImageSignals | None = None

    def defect_types(self) -> list[DefectType]:
        """Return defect types in detection order."""
        return [defect.type for defect in self.defects]


class QuickCheck(BaseModel):
    """Condensed quality summary for live previews."""

    passed: bool
    score: int
    issues: list[str]


class BatchAssessment(BaseModel):
    """Quality results for several candidate images."""

    results: list[QualityResult]
    overall_passed: bool
    best_index: int
