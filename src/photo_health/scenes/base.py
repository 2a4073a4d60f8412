"""Shared vision-backed scene handler."""

import logging
from datetime import UTC, datetime
from typing import ClassVar
from uuid import uuid4

from photo_health.domain.analysis import (
    AnalysisResult,
    DetectedFeature,
    ImageAnalysis,
    Measurement,
    Recommendation,
    RedFlag,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
)
from photo_health.domain.quality import DefectType
from photo_health.domain.scenes import InputValidation
from photo_health.domain.sessions import CapturedImage, CaptureSession
from photo_health.domain.vision import SceneFindings
from photo_health.services.vision import VisionService

logger = logging.getLogger(__name__)

RISK_SCORES: dict[RiskLevel, float] = {
    "low": 0.2,
    "medium": 0.5,
    "high": 0.75,
    "critical": 0.95,
}
BASE_CAPTURE_CONFIDENCE = 0.65
LIGHTING_DEFECT_PENALTY = 0.05
_LIGHTING_DEFECTS = {
    DefectType.POOR_LIGHTING,
    DefectType.OVEREXPOSURE,
    DefectType.UNDEREXPOSURE,
}
_ESCALATING_URGENCIES = {"urgent", "emergency"}
DISCLAIMER = (
    "This result is for reference only and does not replace a diagnosis "
    "by a qualified professional."
)


class VisionSceneHandler:
    """Scene handler that sends the best accepted image to a vision model.

    Subclasses set the scene id, the scene prompt, the intake fields they need
    and a static recommendation table, and decide when a result needs manual
    review.
    """

    scene_id: ClassVar[str]
    prompt: ClassVar[str]
    required_fields: ClassVar[tuple[str, ...]] = ("image",)
    recommendations: ClassVar[tuple[Recommendation, ...]] = ()

    def __init__(self, vision: VisionService) -> None:
        self.vision = vision

    def validate_input(self, session: CaptureSession) -> InputValidation:
        """Check images and intake fields before analysis."""
        errors = []
        if not session.images:
            errors.append("Upload at least one photo.")
        elif not session.has_accepted_image:
            errors.append("No photo passed the quality check, retake the photo.")
        for name in self.required_fields:
            if name == "image":
                continue
            value = session.fields.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"Missing required field: {name}")
        errors.extend(self.scene_errors(session))
        return InputValidation(valid=not errors, errors=errors)

    def get_required_fields(self) -> list[str]:
        """Return the inputs this scene needs."""
        return list(self.required_fields)

    async def analyze(self, session: CaptureSession) -> AnalysisResult:
        """Analyze the session's best accepted image."""
        image = best_image(session)
        logger.info("Running %s analysis for session %s", self.scene_id, session.id)
        findings = await self.vision.extract_findings(
            image.url, self.prompt, context=format_fields(session.fields)
        )
        risk = build_risk_assessment(findings)
        return AnalysisResult(
            id=uuid4(),
            scene_id=self.scene_id,
            timestamp=datetime.now(tz=UTC),
            image_analysis=build_image_analysis(findings),
            risk_assessment=risk,
            recommendations=(*escalations(risk), *self.recommendations),
            requires_manual_review=self.requires_manual_review(risk),
            confidence=combined_confidence(findings.confidence, image),
        )

    def scene_errors(self, session: CaptureSession) -> list[str]:
        """Return scene-specific validation errors."""
        return []

    def requires_manual_review(self, risk: RiskAssessment) -> bool:
        """Decide whether a professional must confirm the result."""
        return False


def best_image(session: CaptureSession) -> CapturedImage:
    """Return the highest scoring accepted image."""
    accepted = [image for image in session.images if image.qa_result.passed]
    candidates = accepted or list(session.images)
    if not candidates:
        raise ValueError(f"Session {session.id} has no images")
    return max(candidates, key=lambda image: image.qa_result.quality_score)


def format_fields(fields: dict[str, object]) -> str | None:
    if not fields:
        return None
    return "; ".join(f"{key}: {value}" for key, value in sorted(fields.items()))


def build_image_analysis(findings: SceneFindings) -> ImageAnalysis:
    return ImageAnalysis(
        features=tuple(
            DetectedFeature(
                type=feature.type,
                label=feature.label,
                confidence=feature.confidence,
                description=feature.description,
            )
            for feature in findings.features
        ),
        measurements=tuple(
            Measurement(
                type=measurement.type,
                value=measurement.value,
                unit=measurement.unit,
                method="estimated",
            )
            for measurement in findings.measurements
        ),
        observations=tuple(findings.observations),
    )


def build_risk_assessment(findings: SceneFindings) -> RiskAssessment:
    return RiskAssessment(
        level=findings.risk_level,
        score=RISK_SCORES[findings.risk_level],
        factors=tuple(
            RiskFactor(type=factor.type, description=factor.description)
            for factor in findings.risk_factors
        ),
        flags=tuple(
            RedFlag(
                type=flag.type,
                description=flag.description,
                urgency=flag.urgency,
                action_required=flag.action_required,
            )
            for flag in findings.red_flags
        ),
    )


def has_urgent_flag(risk: RiskAssessment) -> bool:
    return any(flag.urgency in _ESCALATING_URGENCIES for flag in risk.flags)


def escalations(risk: RiskAssessment) -> list[Recommendation]:
    """Turn urgent red flags into immediate-action recommendations."""
    return [
        Recommendation(
            id=f"red_flag_{index}",
            type="immediate_action",
            priority="high",
            title=flag.description,
            content=flag.action_required,
            disclaimers=(DISCLAIMER,),
        )
        for index, flag in enumerate(risk.flags, start=1)
        if flag.urgency in _ESCALATING_URGENCIES
    ]


def combined_confidence(model_confidence: float, image: CapturedImage) -> float:
    """Cap the model's confidence by how good the capture was."""
    quality = image.qa_result
    lighting_defects = sum(
        1 for defect in quality.defects if defect.type in _LIGHTING_DEFECTS
    )
    capture = (
        BASE_CAPTURE_CONFIDENCE
        + quality.quality_score / 100 * 0.2
        - lighting_defects * LIGHTING_DEFECT_PENALTY
    )
    return round(max(0.0, min(model_confidence, capture, 1.0)), 2)
