"""Wound and ostomy assessment scene for care professionals."""

from photo_health.domain.analysis import Recommendation, RiskAssessment
from photo_health.scenes.base import DISCLAIMER, VisionSceneHandler
from photo_health.services.requirements import WOUND_SCENE_ID

WOUND_PROMPT = (
    "Scene: wound or ostomy assessment for a wound care specialist. Report the "
    "tissue types (granulation, slough, necrosis, epithelial) with their share "
    "of the wound bed, exudate amount, periwound skin condition and signs of "
    "infection. Estimate length, width and area in centimetres only from the "
    "ruler in the image. Raise a red flag for spreading redness, necrosis, "
    "heavy bleeding or stoma discoloration."
)


class WoundOstomyHandler(VisionSceneHandler):
    """Professional scene; every result goes to manual review."""

    scene_id = WOUND_SCENE_ID
    prompt = WOUND_PROMPT
    required_fields = ("image", "patient_id", "wound_location")
    recommendations = (
        Recommendation(
            id="wound_cleansing",
            type="immediate_action",
            priority="high",
            title="Wound cleansing",
            content="Irrigate gently with saline or warm water without damaging "
            "new tissue.",
            target_audience="wound_ostomy_specialist",
            evidence_source="International wound care guidelines",
            disclaimers=(DISCLAIMER,),
        ),
        Recommendation(
            id="wound_dressing",
            type="immediate_action",
            priority="high",
            title="Dressing selection",
            content="Prefer foam or hydrocolloid dressings that keep the wound "
            "moderately moist.",
            target_audience="wound_ostomy_specialist",
            disclaimers=(DISCLAIMER,),
        ),
        Recommendation(
            id="wound_nutrition",
            type="lifestyle",
            priority="medium",
            title="Nutrition support",
            content="Increase protein intake and supplement vitamin C and zinc.",
            target_audience="wound_ostomy_specialist",
        ),
        Recommendation(
            id="wound_offloading",
            type="lifestyle",
            priority="medium",
            title="Pressure relief",
            content="Reposition every two hours and use a pressure-relieving "
            "cushion.",
            target_audience="wound_ostomy_specialist",
        ),
    )

    def requires_manual_review(self, risk: RiskAssessment) -> bool:
        return True
