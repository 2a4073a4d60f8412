"""Quality scoring and defect classification for extracted image signals."""

from photo_health.domain.quality import Defect, DefectType, ImageSignals, Severity
from photo_health.domain.scenes import Resolution

WEIGHTS: dict[str, float] = {
    "sharpness": 0.20,
    "lighting": 0.20,
    "color_accuracy": 0.15,
    "roi_coverage": 0.15,
    "composition": 0.10,
    "noise": 0.10,
    "stability": 0.10,
}

# (minimum ratio to the required resolution, sharpness multiplier), best band first.
RESOLUTION_BANDS: tuple[tuple[float, float], ...] = (
    (1.5, 1.0),
    (1.0, 0.9),
    (0.8, 0.7),
    (0.6, 0.5),
)
RESOLUTION_FLOOR_FACTOR = 0.3

BLUR_THRESHOLD = 0.6
FOCUS_THRESHOLD = 0.75
UNDEREXPOSURE_THRESHOLD = 0.3
OVEREXPOSURE_THRESHOLD = 0.8
POOR_LIGHTING_THRESHOLD = 0.5
ROI_THRESHOLD = 0.4
COLOR_THRESHOLD = 0.5
NOISE_THRESHOLD = 0.3

DEFECT_LABELS: dict[DefectType, str] = {
    DefectType.BLUR: "Blurry image",
    DefectType.POOR_LIGHTING: "Poor lighting",
    DefectType.OVEREXPOSURE: "Overexposed",
    DefectType.UNDEREXPOSURE: "Underexposed",
    DefectType.OCCLUSION: "Subject occluded",
    DefectType.INSUFFICIENT_ROI: "Subject too small in frame",
    DefectType.NO_SCALE_REFERENCE: "No scale reference",
    DefectType.COLOR_DISTORTION: "Color distortion",
    DefectType.MOTION_BLUR: "Noise or camera shake",
    DefectType.OUT_OF_FOCUS: "Slightly out of focus",
}

DEFECT_GUIDANCE: dict[DefectType, str] = {
    DefectType.BLUR: (
        "Hold the phone steady with both hands and tap to focus before shooting."
    ),
    DefectType.MOTION_BLUR: (
        "Keep both the phone and the subject still, then tap to focus."
    ),
    DefectType.OUT_OF_FOCUS: (
        "Tap the subject on screen to focus and wait until it is sharp."
    ),
    DefectType.UNDEREXPOSURE: "Move somewhere brighter or turn on the flash.",
    DefectType.OVEREXPOSURE: (
        "Avoid direct strong light and pick softer, even lighting."
    ),
    DefectType.POOR_LIGHTING: (
        "Use even light from the front and avoid shadows on the subject."
    ),
    DefectType.OCCLUSION: (
        "Remove anything covering the subject so it is fully visible."
    ),
    DefectType.INSUFFICIENT_ROI: (
        "Center the subject and move closer so it fills more of the frame."
    ),
    DefectType.COLOR_DISTORTION: (
        "Shoot under natural light and avoid colored light sources."
    ),
    DefectType.NO_SCALE_REFERENCE: (
        "Place a ruler or coin next to the subject as a size reference."
    ),
}


def resolution_factor(width: int, height: int, minimum: Resolution | None) -> float:
    """Return the sharpness multiplier for a resolution against a scene floor."""
    if minimum is None or minimum.width == 0 or minimum.height == 0:
        return 1.0
    ratio = min(width / minimum.width, height / minimum.height)
    for band_ratio, factor in RESOLUTION_BANDS:
        if ratio >= band_ratio:
            return factor
    return RESOLUTION_FLOOR_FACTOR


def apply_resolution_penalty(
    signals: ImageSignals, minimum: Resolution | None
) -> ImageSignals:
    """Fold the resolution band into the sharpness signal."""
    factor = resolution_factor(signals.width, signals.height, minimum)
    if factor == 1.0:
        return signals
    return signals.model_copy(
        update={"sharpness": min(1.0, signals.sharpness * factor)}
    )


def compute_quality_score(signals: ImageSignals) -> int:
    """Return the weighted 0-100 quality score."""
    total = (
        signals.sharpness * WEIGHTS["sharpness"]
        + signals.lighting * WEIGHTS["lighting"]
        + signals.color_accuracy * WEIGHTS["color_accuracy"]
        + signals.roi_coverage * WEIGHTS["roi_coverage"]
        + signals.composition * WEIGHTS["composition"]
        + (1.0 - signals.noise) * WEIGHTS["noise"]
        + signals.stability * WEIGHTS["stability"]
    )
    return max(0, min(100, round(total * 100)))


def detect_defects(
    signals: ImageSignals, requires_scale_reference: bool = False
) -> list[Defect]:
    """Classify defects with independent per-dimension thresholds."""
    defects: list[Defect] = []

    if signals.sharpness < BLUR_THRESHOLD:
        defects.append(
            _defect(DefectType.BLUR, Severity.HIGH, "Image is blurry, detail is lost.")
        )
    elif signals.sharpness < FOCUS_THRESHOLD:
        defects.append(
            _defect(
                DefectType.OUT_OF_FOCUS, Severity.MEDIUM, "Focus is not sharp enough."
            )
        )

    if signals.brightness < UNDEREXPOSURE_THRESHOLD:
        defects.append(
            _defect(
                DefectType.UNDEREXPOSURE, Severity.HIGH, "Image is too dark."
            )
        )
    elif signals.brightness > OVEREXPOSURE_THRESHOLD:
        defects.append(
            _defect(
                DefectType.OVEREXPOSURE, Severity.HIGH, "Image is washed out."
            )
        )
    elif signals.lighting < POOR_LIGHTING_THRESHOLD:
        defects.append(
            _defect(
                DefectType.POOR_LIGHTING, Severity.MEDIUM, "Lighting is uneven or weak."
            )
        )

    if signals.roi_coverage < ROI_THRESHOLD:
        defects.append(
            _defect(
                DefectType.INSUFFICIENT_ROI,
                Severity.HIGH,
                "Subject covers too little of the frame.",
            )
        )

    if signals.color_accuracy < COLOR_THRESHOLD:
        defects.append(
            _defect(
                DefectType.COLOR_DISTORTION,
                Severity.MEDIUM,
                "Colors look distorted and may skew the analysis.",
            )
        )

    if signals.noise > NOISE_THRESHOLD:
        defects.append(
            _defect(
                DefectType.MOTION_BLUR, Severity.MEDIUM, "Image shows noise or shake."
            )
        )

    if requires_scale_reference and not signals.has_scale_reference:
        defects.append(
            _defect(
                DefectType.NO_SCALE_REFERENCE,
                Severity.MEDIUM,
                "No scale reference, measurements cannot be calibrated.",
            )
        )

    return defects


def defect_guidance(defect_type: DefectType) -> str:
    """Return the retake instruction for a defect type."""
    return DEFECT_GUIDANCE[defect_type]


def _defect(defect_type: DefectType, severity: Severity, description: str) -> Defect:
    return Defect(type=defect_type, severity=severity, description=description)
