"""Stool analysis scene based on the Bristol stool scale."""

from photo_health.domain.analysis import Recommendation, RiskAssessment
from photo_health.scenes.base import DISCLAIMER, VisionSceneHandler, has_urgent_flag
from photo_health.services.requirements import STOOL_SCENE_ID

STOOL_PROMPT = (
    "Scene: stool check for a consumer. Classify the Bristol stool type (1-7) "
    "as a feature of type 'bristol_type' with the number in the label, and "
    "report color and consistency as features. Raise an urgent red flag for "
    "black, tarry or red stool, visible blood, or pale clay-colored stool."
)

_REVIEW_LEVELS = {"high", "critical"}


class StoolAnalysisHandler(VisionSceneHandler):
    """Consumer stool check escalated on high risk or an urgent flag."""

    scene_id = STOOL_SCENE_ID
    prompt = STOOL_PROMPT
    recommendations = (
        Recommendation(
            id="stool_hydration",
            type="lifestyle",
            priority="medium",
            title="Hydration",
            content="Drink 1.5 to 2 litres of water a day unless advised otherwise.",
            disclaimers=(DISCLAIMER,),
        ),
        Recommendation(
            id="stool_fiber",
            type="lifestyle",
            priority="medium",
            title="Dietary fiber",
            content="Eat vegetables, fruit and whole grains to reach 25-30 g of "
            "fiber a day.",
        ),
        Recommendation(
            id="stool_education",
            type="education",
            priority="low",
            title="About the Bristol scale",
            content="Types 3 and 4 are considered normal; persistent types 1-2 or "
            "6-7 are worth discussing with a doctor.",
            evidence_source="Bristol Stool Form Scale",
        ),
    )

    def requires_manual_review(self, risk: RiskAssessment) -> bool:
        return risk.level in _REVIEW_LEVELS or has_urgent_flag(risk)
