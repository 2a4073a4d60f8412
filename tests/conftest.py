"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from photo_health.config import Settings
from photo_health.containers import AppContainer
from photo_health.domain.analysis import (
    AnalysisResult,
    ImageAnalysis,
    Recommendation,
    RiskAssessment,
    RiskLevel,
)
from photo_health.domain.quality import ImageSignals
from photo_health.scenes.catalog import register_default_scenes
from photo_health.services.history import HistoryService, InMemoryHistoryRepository
from photo_health.services.quality import (
    ImageQualityGate,
    ImageSource,
    SignalExtractor,
    UnreadableImageError,
)
from photo_health.services.requirements import CaptureRequirementRegistry
from photo_health.services.scenes import SceneRegistry
from photo_health.services.sessions import SessionService
from photo_health.services.vision import VisionClient, VisionService

GOOD_SIGNALS = ImageSignals(
    sharpness=0.9,
    lighting=0.9,
    brightness=0.55,
    color_accuracy=0.9,
    roi_coverage=0.9,
    noise=0.1,
    stability=0.9,
    composition=0.9,
    width=4000,
    height=3000,
    has_scale_reference=True,
)

LOW_RISK_FINDINGS: dict[str, object] = {
    "features": [
        {
            "type": "skin_type",
            "label": "combination",
            "confidence": 0.8,
            "description": "Oily T-zone with dry cheeks",
        }
    ],
    "measurements": [],
    "observations": ["Skin tone is even", "Mild redness on the cheeks"],
    "risk_level": "low",
    "risk_factors": [],
    "red_flags": [],
    "confidence": 0.9,
}


def make_signals(**overrides: object) -> ImageSignals:
    """Return good signals with some dimensions replaced."""
    return GOOD_SIGNALS.model_copy(update=overrides)


def make_findings(**overrides: object) -> dict[str, object]:
    """Return low-risk vision findings with some keys replaced."""
    return {**LOW_RISK_FINDINGS, **overrides}


def make_result(
    scene_id: str,
    requires_manual_review: bool = False,
    risk_level: RiskLevel = "low",
    followup: bool = False,
) -> AnalysisResult:
    """Build a minimal analysis result."""
    recommendations = ()
    if followup:
        recommendations = (
            Recommendation(
                id="followup",
                type="followup",
                priority="low",
                title="Check again",
                content="Repeat in four weeks.",
            ),
        )
    return AnalysisResult(
        id=uuid4(),
        scene_id=scene_id,
        timestamp=datetime.now(tz=UTC),
        image_analysis=ImageAnalysis(observations=("Looks fine", "No concerns")),
        risk_assessment=RiskAssessment(level=risk_level),
        recommendations=recommendations,
        requires_manual_review=requires_manual_review,
        confidence=0.8,
    )


@dataclass
class FixedSignalExtractor(SignalExtractor):
    """Extractor that returns preset signals."""

    signals: ImageSignals = field(default_factory=make_signals)
    calls: int = 0

    async def extract(self, image_bytes: bytes) -> ImageSignals:
        self.calls += 1
        return self.signals


@dataclass
class InMemoryImageSource(ImageSource):
    """Image source serving bytes registered by URL."""

    images: dict[str, bytes] = field(default_factory=dict)

    async def load(self, reference: str) -> bytes:
        if reference not in self.images:
            raise UnreadableImageError(f"Unknown image: {reference}")
        return self.images[reference]


@dataclass
class FakeVisionClient(VisionClient):
    """Vision client returning canned findings."""

    findings: dict[str, object] = field(default_factory=make_findings)
    calls: list[dict[str, object]] = field(default_factory=list)

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        self.calls.append({"model": model, "image_url": image_url, "prompt": prompt})
        return self.findings


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_token="admin-token",
        openai_api_key="openai-key",
        supabase_url=None,
        supabase_service_key=None,
        allowed_scene_ids=None,
    )


@pytest.fixture
def requirements() -> CaptureRequirementRegistry:
    return CaptureRequirementRegistry.with_defaults()


@pytest.fixture
def extractor() -> FixedSignalExtractor:
    return FixedSignalExtractor()


@pytest.fixture
def image_source() -> InMemoryImageSource:
    return InMemoryImageSource({"https://img.example/photo.jpg": b"remote-image"})


@pytest.fixture
def quality_gate(
    extractor: FixedSignalExtractor,
    requirements: CaptureRequirementRegistry,
    image_source: InMemoryImageSource,
) -> ImageQualityGate:
    return ImageQualityGate(
        extractor=extractor, requirements=requirements, image_source=image_source
    )


@pytest.fixture
def vision_client() -> FakeVisionClient:
    return FakeVisionClient()


@pytest.fixture
def vision_service(vision_client: FakeVisionClient) -> VisionService:
    return VisionService(
        client=vision_client, model="gpt-5.2", reasoning_effort="high", store=False
    )


@pytest.fixture
def scene_registry(
    requirements: CaptureRequirementRegistry, vision_service: VisionService
) -> SceneRegistry:
    registry = SceneRegistry()
    register_default_scenes(registry, requirements, vision_service)
    return registry


@pytest.fixture
def history_service() -> HistoryService:
    return HistoryService(InMemoryHistoryRepository(), max_records=100)


@pytest.fixture
def session_service(
    scene_registry: SceneRegistry,
    quality_gate: ImageQualityGate,
    history_service: HistoryService,
) -> SessionService:
    return SessionService(
        registry=scene_registry,
        quality_gate=quality_gate,
        history=history_service,
        analyze_timeout_seconds=5.0,
    )


@pytest.fixture
def container(
    settings: Settings,
    scene_registry: SceneRegistry,
    quality_gate: ImageQualityGate,
    vision_service: VisionService,
    session_service: SessionService,
    history_service: HistoryService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        scene_registry=scene_registry,
        quality_gate=quality_gate,
        vision_service=vision_service,
        session_service=session_service,
        history_service=history_service,
        close_resources=close_resources,
    )
