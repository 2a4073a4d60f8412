"""Lab report reading scene."""

from photo_health.domain.analysis import Recommendation, RiskAssessment
from photo_health.scenes.base import DISCLAIMER, VisionSceneHandler
from photo_health.services.requirements import LAB_REPORT_SCENE_ID

LAB_REPORT_PROMPT = (
    "Scene: photo of a printed lab or checkup report. Transcribe every test item "
    "as a measurement with its value and unit, and add a feature of type "
    "'abnormal_item' for each value outside its printed reference range. "
    "Explain the abnormal items in plain language in the observations."
)

_REVIEW_LEVELS = {"high", "critical"}


class LabReportHandler(VisionSceneHandler):
    """Reads lab reports; high-risk results go to manual review."""

    scene_id = LAB_REPORT_SCENE_ID
    prompt = LAB_REPORT_PROMPT
    recommendations = (
        Recommendation(
            id="lab_report_followup",
            type="followup",
            priority="medium",
            title="Discuss the report",
            content="Bring the original report to your doctor, especially for "
            "values outside the reference range.",
            disclaimers=(DISCLAIMER,),
        ),
        Recommendation(
            id="lab_report_retest",
            type="followup",
            priority="low",
            title="Retest when advised",
            content="Slightly abnormal values are often rechecked after a few "
            "weeks before any treatment.",
        ),
    )

    def requires_manual_review(self, risk: RiskAssessment) -> bool:
        return risk.level in _REVIEW_LEVELS
