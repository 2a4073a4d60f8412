"""Per-scene capture requirements."""

import logging
from dataclasses import dataclass, field

from photo_health.domain.scenes import CaptureRequirements, Resolution
from photo_health.services.scenes import SceneNotRegisteredError

logger = logging.getLogger(__name__)

SKIN_SCENE_ID = "scene_skin_analysis"
WOUND_SCENE_ID = "scene_wound_ostomy"
STOOL_SCENE_ID = "scene_stool_analysis"
LAB_REPORT_SCENE_ID = "scene_lab_report"
NAIL_SCENE_ID = "scene_nail_analysis"
ORAL_SCENE_ID = "scene_oral_analysis"
TONGUE_SCENE_ID = "scene_tongue_analysis"

DEFAULT_CAPTURE_REQUIREMENTS: dict[str, CaptureRequirements] = {
    STOOL_SCENE_ID: CaptureRequirements(
        min_resolution=Resolution(width=640, height=480),
        lighting="natural",
        background="White or light-colored background",
        distance="20-30cm",
        angle="Shoot straight down from above",
        avoid=["shadows", "glare", "blur", "overexposure"],
        tips=[
            "Use a white tissue or plate as the background",
            "Shoot in natural light and avoid shadows",
            "Hold the phone steady",
            "Keep the whole sample inside the frame",
        ],
    ),
    SKIN_SCENE_ID: CaptureRequirements(
        min_resolution=Resolution(width=720, height=720),
        lighting="natural",
        background="Plain or natural background",
        distance="30-40cm",
        angle="Face the camera straight on",
        avoid=["makeup", "filters", "backlight", "side light"],
        tips=[
            "Remove makeup and wait 30 minutes before shooting",
            "Shoot near a window in natural light",
            "Look straight into the lens, not up or down",
            "Keep the whole face inside the frame",
        ],
    ),
    WOUND_SCENE_ID: CaptureRequirements(
        min_resolution=Resolution(width=1024, height=768),
        lighting="natural",
        background="Sterile drape or clean background",
        distance="15-25cm",
        angle="Perpendicular to the wound surface",
        avoid=["glare", "shadows", "blur", "missing scale reference"],
        tips=[
            "Photograph before changing the dressing",
            "Place a measuring ruler next to the wound",
            "Make sure the light is bright and shadow free",
            "Capture several angles",
        ],
        strict=True,
        requires_scale_reference=True,
    ),
    NAIL_SCENE_ID: CaptureRequirements(
        min_resolution=Resolution(width=640, height=480),
        lighting="natural",
        background="Plain white or black background",
        distance="10-15cm",
        angle="Perpendicular to the nail surface",
        avoid=["nail polish", "nail art", "glare", "shadows"],
        tips=[
            "Remove nail polish and clean the nails",
            "Shoot against a plain background",
            "Photograph each nail separately",
            "Focus on the nail surface",
        ],
    ),
    ORAL_SCENE_ID: CaptureRequirements(
        min_resolution=Resolution(width=720, height=720),
        lighting="artificial",
        background="Inside of the mouth",
        distance="5-10cm",
        angle="Adjust to the area being photographed",
        avoid=["right after brushing", "right after eating", "low light"],
        tips=[
            "Shoot before brushing or two hours after",
            "Use a flashlight to light the mouth",
            "Open wide to show the teeth and gums",
            "Photograph the upper teeth, lower teeth and tongue separately",
        ],
    ),
    TONGUE_SCENE_ID: CaptureRequirements(
        min_resolution=Resolution(width=640, height=480),
        lighting="natural",
        background="Natural background",
        distance="10-15cm",
        angle="Face the tongue straight on",
        avoid=["right after eating", "right after brushing", "staining foods"],
        tips=[
            "Shoot after waking up or before eating",
            "Stick the tongue out naturally without straining",
            "Shoot in natural light",
            "Avoid shooting after eating foods that stain",
        ],
    ),
    LAB_REPORT_SCENE_ID: CaptureRequirements(
        min_resolution=Resolution(width=1024, height=768),
        lighting="any",
        background="Flat surface, report fully unfolded",
        distance="25-35cm",
        angle="Parallel to the page",
        avoid=["folds", "glare", "cropped edges"],
        tips=[
            "Lay the report flat and capture the whole page",
            "Avoid reflections from overhead lights",
            "Make sure every value and unit is legible",
        ],
    ),
}

UNIVERSAL_TIPS: tuple[str, ...] = (
    "Clean the camera lens before shooting",
    "Hold the phone steady with both hands or a stand",
    "Make sure the light is bright and even without harsh shadows",
    "Place the subject in the center of the frame",
    "Tap the screen to focus on the subject",
    "Check the photo after shooting and retake it if needed",
)


@dataclass
class CaptureRequirementRegistry:
    """Registry of capture requirements keyed by scene id."""

    _entries: dict[str, CaptureRequirements] = field(default_factory=dict)

    @classmethod
    def with_defaults(cls) -> "CaptureRequirementRegistry":
        """Create a registry seeded with the built-in scene table."""
        return cls(dict(DEFAULT_CAPTURE_REQUIREMENTS))

    def register(self, scene_id: str, requirements: CaptureRequirements) -> None:
        """Register requirements for a scene, replacing any previous entry."""
        if scene_id in self._entries:
            logger.warning("Capture requirements for %s overwritten", scene_id)
        self._entries[scene_id] = requirements

    def get(self, scene_id: str) -> CaptureRequirements:
        """Return requirements for a scene or raise if it is unknown."""
        requirements = self._entries.get(scene_id)
        if requirements is None:
            raise SceneNotRegisteredError(scene_id)
        return requirements
