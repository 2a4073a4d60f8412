"""Built-in scene configurations and their registration."""

from photo_health.domain.scenes import SceneConfiguration, WorkflowConfig, WorkflowStep
from photo_health.scenes.base import VisionSceneHandler
from photo_health.scenes.lab_report import LabReportHandler
from photo_health.scenes.skin import SkinAnalysisHandler
from photo_health.scenes.stool import StoolAnalysisHandler
from photo_health.scenes.wound import WoundOstomyHandler
from photo_health.services.requirements import (
    LAB_REPORT_SCENE_ID,
    SKIN_SCENE_ID,
    STOOL_SCENE_ID,
    WOUND_SCENE_ID,
    CaptureRequirementRegistry,
)
from photo_health.services.scenes import SceneRegistry
from photo_health.services.vision import VisionService


def _consumer_workflow() -> WorkflowConfig:
    return WorkflowConfig(
        steps=[
            WorkflowStep(id="capture", name="Capture photo", type="image_capture"),
            WorkflowStep(id="qa", name="Quality check", type="image_qa"),
            WorkflowStep(id="analysis", name="Analysis", type="analysis"),
            WorkflowStep(
                id="recommendation", name="Recommendations", type="recommendation"
            ),
        ],
        enable_followup=True,
    )


SCENE_CONFIGURATIONS: tuple[SceneConfiguration, ...] = (
    SceneConfiguration(
        id=STOOL_SCENE_ID,
        name="Stool check",
        description="Bristol scale classification of stool photos.",
        scene_type="consumer",
        target_audience="general_public",
        workflow=_consumer_workflow(),
    ),
    SceneConfiguration(
        id=SKIN_SCENE_ID,
        name="Skin check",
        description="Skin type and visible skin concerns from a face photo.",
        scene_type="consumer",
        target_audience="general_public",
        workflow=_consumer_workflow(),
    ),
    SceneConfiguration(
        id=WOUND_SCENE_ID,
        name="Wound and ostomy assessment",
        description="Tissue, size and infection signs for wound care teams.",
        scene_type="professional",
        target_audience="wound_ostomy_specialist",
        workflow=WorkflowConfig(
            steps=[
                WorkflowStep(id="capture", name="Capture photo", type="image_capture"),
                WorkflowStep(id="qa", name="Quality check", type="image_qa"),
                WorkflowStep(id="analysis", name="Analysis", type="analysis"),
                WorkflowStep(id="assessment", name="Assessment", type="assessment"),
                WorkflowStep(
                    id="confirmation", name="Specialist review", type="confirmation"
                ),
                WorkflowStep(id="report", name="Care report", type="report"),
            ],
            require_manual_confirm=True,
            auto_generate_report=True,
            enable_followup=True,
        ),
        required_fields=["image", "patient_id", "wound_location"],
    ),
    SceneConfiguration(
        id=LAB_REPORT_SCENE_ID,
        name="Lab report reader",
        description="Reads printed lab reports and explains abnormal values.",
        scene_type="consumer",
        target_audience="patient",
        workflow=WorkflowConfig(
            steps=[
                WorkflowStep(id="capture", name="Capture report", type="image_capture"),
                WorkflowStep(id="qa", name="Quality check", type="image_qa"),
                WorkflowStep(id="analysis", name="Read values", type="analysis"),
                WorkflowStep(
                    id="recommendation",
                    name="Recommendations",
                    type="recommendation",
                    required=False,
                ),
            ],
        ),
    ),
)

HANDLER_TYPES: dict[str, type[VisionSceneHandler]] = {
    STOOL_SCENE_ID: StoolAnalysisHandler,
    SKIN_SCENE_ID: SkinAnalysisHandler,
    WOUND_SCENE_ID: WoundOstomyHandler,
    LAB_REPORT_SCENE_ID: LabReportHandler,
}


def register_default_scenes(
    registry: SceneRegistry,
    requirements: CaptureRequirementRegistry,
    vision: VisionService,
) -> None:
    """Register the built-in scenes with their handlers.

    Each configuration carries the capture requirements registered for its
    scene so callers can render capture guidance from the scene list.
    """
    for configuration in SCENE_CONFIGURATIONS:
        scene = configuration.model_copy(
            update={"capture_requirements": requirements.get(configuration.id)}
        )
        registry.register(scene.id, scene)
        registry.register_handler(scene.id, HANDLER_TYPES[scene.id](vision))
