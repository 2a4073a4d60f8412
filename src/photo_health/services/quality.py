"""Image quality gate deciding whether a captured image is usable."""

import asyncio
from dataclasses import dataclass, field
from typing import Protocol

from photo_health.domain.quality import (
    BatchAssessment,
    Defect,
    ImageSignals,
    QualityResult,
    QuickCheck,
    Severity,
)
from photo_health.domain.scenes import CaptureRequirements
from photo_health.domain.sessions import CaptureMetadata
from photo_health.services.requirements import (
    UNIVERSAL_TIPS,
    CaptureRequirementRegistry,
)
from photo_health.services.scoring import (
    DEFECT_LABELS,
    apply_resolution_penalty,
    compute_quality_score,
    defect_guidance,
    detect_defects,
)

ImageInput = bytes | str

PASSED_GUIDANCE = "Image quality looks good, you can continue."
BELOW_THRESHOLD_GUIDANCE = (
    "Overall image quality is too low, retake the photo following the tips above."
)
HIGH_SEVERITY_BLOCK_COUNT = 2


class UnreadableImageError(ValueError):
    """Raised when image bytes cannot be fetched or decoded."""


class ImageSource(Protocol):
    """Interface for resolving image references to bytes."""

    async def load(self, reference: str) -> bytes:
        """Return the bytes behind an image reference."""


class SignalExtractor(Protocol):
    """Interface for extracting normalized quality signals from an image."""

    async def extract(self, image_bytes: bytes) -> ImageSignals:
        """Return quality signals for the given image bytes."""


@dataclass(frozen=True)
class QualityThresholds:
    """Thresholds in force for one scene."""

    min_quality_score: int
    block_threshold: int
    strict_block_threshold: int | None


@dataclass(frozen=True)
class QualityPolicy:
    """Deployment-wide quality thresholds, overridable per scene."""

    min_quality_score: int = 60
    strict_min_quality_score: int = 70
    block_threshold: int = 50
    strict_block_threshold: int = 80

    def thresholds_for(self, requirements: CaptureRequirements) -> QualityThresholds:
        """Resolve the thresholds for a scene's requirements."""
        default_minimum = (
            self.strict_min_quality_score
            if requirements.strict
            else self.min_quality_score
        )
        strict_floor: int | None = None
        if requirements.strict:
            strict_floor = _first_set(
                requirements.strict_block_threshold, self.strict_block_threshold
            )
        return QualityThresholds(
            min_quality_score=_first_set(
                requirements.min_quality_score, default_minimum
            ),
            block_threshold=_first_set(
                requirements.block_threshold, self.block_threshold
            ),
            strict_block_threshold=strict_floor,
        )


@dataclass
class ImageQualityGate:
    """Runs extraction, scoring, defect detection and the blocking policy."""

    extractor: SignalExtractor
    requirements: CaptureRequirementRegistry
    image_source: ImageSource | None = None
    policy: QualityPolicy = field(default_factory=QualityPolicy)

    async def assess(
        self,
        image: ImageInput,
        scene_id: str,
        metadata: CaptureMetadata | None = None,
    ) -> QualityResult:
        """Assess an image for a scene.

        Raises SceneNotRegisteredError for unknown scenes before any image
        work is done, and UnreadableImageError when the image cannot be read.
        """
        self.requirements.get(scene_id)
        image_bytes = await self._load(image)
        signals = await self.extractor.extract(image_bytes)
        return self.evaluate(signals, scene_id, metadata)

    def evaluate(
        self,
        signals: ImageSignals,
        scene_id: str,
        metadata: CaptureMetadata | None = None,
    ) -> QualityResult:
        """Score already extracted signals against a scene's requirements."""
        requirements = self.requirements.get(scene_id)
        merged = _merge_metadata(signals, metadata)
        effective = apply_resolution_penalty(merged, requirements.min_resolution)
        score = compute_quality_score(effective)
        defects = detect_defects(effective, requirements.requires_scale_reference)
        thresholds = self.policy.thresholds_for(requirements)
        blocking = should_block(score, defects, thresholds)
        passed = not blocking and score >= thresholds.min_quality_score
        return QualityResult(
            quality_score=score,
            defects=defects,
            blocking=blocking,
            passed=passed,
            retake_guidance=build_retake_guidance(requirements, defects, passed),
            minimum_score=thresholds.min_quality_score,
            signals=effective,
        )

    async def assess_batch(
        self, images: list[ImageInput], scene_id: str
    ) -> BatchAssessment:
        """Assess several candidates and point at the best one."""
        self.requirements.get(scene_id)
        results = await asyncio.gather(
            *(self.assess(image, scene_id) for image in images)
        )
        best_index = 0
        for index, result in enumerate(results):
            if result.quality_score > results[best_index].quality_score:
                best_index = index
        return BatchAssessment(
            results=list(results),
            overall_passed=any(result.passed for result in results),
            best_index=best_index,
        )

    async def quick_check(
        self,
        image: ImageInput,
        scene_id: str,
        metadata: CaptureMetadata | None = None,
    ) -> QuickCheck:
        """Return a condensed result for live previews."""
        result = await self.assess(image, scene_id, metadata)
        return QuickCheck(
            passed=result.passed,
            score=result.quality_score,
            issues=[DEFECT_LABELS[defect.type] for defect in result.defects],
        )

    def capture_requirements(self, scene_id: str) -> CaptureRequirements:
        """Return capture requirements for UI guidance."""
        return self.requirements.get(scene_id)

    @staticmethod
    def universal_tips() -> list[str]:
        """Return capture tips that apply to every scene."""
        return list(UNIVERSAL_TIPS)

    async def _load(self, image: ImageInput) -> bytes:
        if isinstance(image, bytes):
            return image
        if self.image_source is None:
            raise UnreadableImageError("No image source configured for references")
        return await self.image_source.load(image)


def should_block(
    score: int, defects: list[Defect], thresholds: QualityThresholds
) -> bool:
    """Apply the blocking policy independently of the pass threshold."""
    if score < thresholds.block_threshold:
        return True
    high_severity = sum(1 for defect in defects if defect.severity == Severity.HIGH)
    if high_severity >= HIGH_SEVERITY_BLOCK_COUNT:
        return True
    return (
        thresholds.strict_block_threshold is not None
        and score < thresholds.strict_block_threshold
    )


def build_retake_guidance(
    requirements: CaptureRequirements, defects: list[Defect], passed: bool
) -> list[str]:
    """Build ordered, de-duplicated retake instructions."""
    if not defects and passed:
        return [PASSED_GUIDANCE]

    guidance = _scene_guidance(requirements)
    seen_types = set()
    for defect in defects:
        if defect.type in seen_types:
            continue
        seen_types.add(defect.type)
        guidance.append(defect_guidance(defect.type))
    if not defects:
        guidance.append(BELOW_THRESHOLD_GUIDANCE)
    return list(dict.fromkeys(guidance))


def _scene_guidance(requirements: CaptureRequirements) -> list[str]:
    guidance = []
    if requirements.distance:
        guidance.append(f"Shoot from a distance of {requirements.distance}.")
    if requirements.angle:
        guidance.append(f"Angle: {requirements.angle}.")
    if requirements.tips:
        guidance.append(f"Tip: {requirements.tips[0]}.")
    return guidance


def _merge_metadata(
    signals: ImageSignals, metadata: CaptureMetadata | None
) -> ImageSignals:
    """Fill signals with capture metadata the extractor could not determine."""
    if metadata is None:
        return signals
    update: dict[str, object] = {}
    if metadata.has_scale_reference is not None:
        update["has_scale_reference"] = metadata.has_scale_reference
    if metadata.resolution is not None and not (signals.width and signals.height):
        update["width"] = metadata.resolution.width
        update["height"] = metadata.resolution.height
    return signals.model_copy(update=update) if update else signals


def _first_set(value: int | None, default: int) -> int:
    return default if value is None else value
