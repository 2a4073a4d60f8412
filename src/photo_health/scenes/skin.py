"""Skin analysis scene."""

from photo_health.domain.analysis import Recommendation, RiskAssessment
from photo_health.domain.sessions import CaptureSession
from photo_health.scenes.base import DISCLAIMER, VisionSceneHandler, has_urgent_flag
from photo_health.services.requirements import SKIN_SCENE_ID

SKIN_PROMPT = (
    "Scene: facial skin check for a consumer. Estimate the skin type "
    "(dry, oily, combination, normal, sensitive) as a feature of type "
    "'skin_type', and report visible concerns such as acne, redness, "
    "pigmentation, wrinkles or enlarged pores as features. Raise a red flag "
    "for lesions with irregular borders, bleeding or rapid change."
)


class SkinAnalysisHandler(VisionSceneHandler):
    """Consumer skin check; results never wait for a professional unless flagged."""

    scene_id = SKIN_SCENE_ID
    prompt = SKIN_PROMPT
    recommendations = (
        Recommendation(
            id="skin_cleansing",
            type="lifestyle",
            priority="medium",
            title="Gentle cleansing",
            content="Wash with a mild cleanser morning and evening and avoid "
            "scrubbing.",
            disclaimers=(DISCLAIMER,),
        ),
        Recommendation(
            id="skin_sun_protection",
            type="lifestyle",
            priority="medium",
            title="Sun protection",
            content="Use a broad-spectrum sunscreen of SPF 30 or higher every day.",
            disclaimers=(DISCLAIMER,),
        ),
        Recommendation(
            id="skin_followup",
            type="followup",
            priority="low",
            title="Track changes",
            content="Repeat the check in four weeks under the same lighting to "
            "compare results.",
        ),
    )

    def scene_errors(self, session: CaptureSession) -> list[str]:
        """Reject photos taken through a beauty filter."""
        for image in session.images:
            device = image.metadata.device or ""
            if "filter" in device.lower():
                return ["Turn off camera filters and retake the photo."]
        return []

    def requires_manual_review(self, risk: RiskAssessment) -> bool:
        return has_urgent_flag(risk)
