"""Tests for the capture session state machine."""

import asyncio
from dataclasses import dataclass, field
from uuid import uuid4

import pytest

from photo_health.adapters.httpx_image_source import HttpxImageSource
from photo_health.domain.analysis import AnalysisResult
from photo_health.domain.quality import ImageSignals
from photo_health.domain.scenes import (
    InputValidation,
    SceneConfiguration,
    WorkflowConfig,
    WorkflowStep,
)
from photo_health.domain.sessions import CaptureSession, SessionStatus
from photo_health.services.history import HistoryService
from photo_health.services.quality import ImageQualityGate
from photo_health.services.requirements import (
    SKIN_SCENE_ID,
    WOUND_SCENE_ID,
    CaptureRequirementRegistry,
)
from photo_health.services.scenes import SceneRegistry
from photo_health.services.sessions import ErrorKind, SessionService
from tests.conftest import (
    FakeVisionClient,
    FixedSignalExtractor,
    make_findings,
    make_result,
    make_signals,
)

BLOCKED_SIGNALS = make_signals(sharpness=0.2, brightness=0.1, roi_coverage=0.2)
WOUND_FIELDS = {"patient_id": "P-001", "wound_location": "left heel"}


@dataclass
class StubHandler:
    """Handler with scripted behaviour."""

    requires_manual_review: bool = False
    failures: int = 0
    delay: float = 0.0
    calls: int = 0

    async def analyze(self, session: CaptureSession) -> AnalysisResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            self.failures -= 1
            raise RuntimeError("model unavailable")
        return make_result(session.scene_id, self.requires_manual_review)

    def validate_input(self, session: CaptureSession) -> InputValidation:
        return InputValidation(valid=True)

    def get_required_fields(self) -> list[str]:
        return ["image"]


@dataclass
class GatedSignalExtractor:
    """Extractor that holds every call until released."""

    signals: ImageSignals = field(default_factory=make_signals)
    started: asyncio.Event = field(default_factory=asyncio.Event)
    release: asyncio.Event = field(default_factory=asyncio.Event)

    async def extract(self, image_bytes: bytes) -> ImageSignals:
        self.started.set()
        await self.release.wait()
        return self.signals


@dataclass
class ExplodingSignalExtractor:
    """Extractor that fails with an unexpected error."""

    async def extract(self, image_bytes: bytes) -> ImageSignals:
        raise RuntimeError("decoder crashed")


class RaisingValidationHandler(StubHandler):
    def validate_input(self, session: CaptureSession) -> InputValidation:
        raise KeyError("patient_id")


class FailingHistory:
    def record(self, result: AnalysisResult, scene_name: str) -> None:
        raise RuntimeError("history unavailable")


def _skin_configuration() -> SceneConfiguration:
    return SceneConfiguration(
        id=SKIN_SCENE_ID,
        name="Skin check",
        scene_type="consumer",
        target_audience="general_public",
        workflow=WorkflowConfig(
            steps=[WorkflowStep(id="capture", name="Capture", type="image_capture")]
        ),
    )


def _service_with_handler(
    handler: StubHandler | None,
    quality_gate: ImageQualityGate,
    timeout: float = 5.0,
) -> SessionService:
    registry = SceneRegistry()
    registry.register(SKIN_SCENE_ID, _skin_configuration())
    if handler is not None:
        registry.register_handler(SKIN_SCENE_ID, handler)
    return SessionService(
        registry=registry, quality_gate=quality_gate, analyze_timeout_seconds=timeout
    )


def _captured_session(service: SessionService, **fields: object) -> CaptureSession:
    scene_id = WOUND_SCENE_ID if fields else SKIN_SCENE_ID
    created = service.create_session(scene_id, fields=fields)
    assert created.session is not None
    added = asyncio.run(service.add_image(created.session.id, b"\xff\xd8\xffphoto"))
    assert added.success
    assert added.session is not None
    return added.session


def test_create_session_starts_capturing(session_service: SessionService) -> None:
    outcome = session_service.create_session(
        WOUND_SCENE_ID, fields={"patient_id": "P-001"}
    )

    assert outcome.success is True
    assert outcome.session is not None
    assert outcome.session.status == SessionStatus.CAPTURING
    assert outcome.session.images == ()
    assert outcome.session.result is None
    assert outcome.session.fields == {"patient_id": "P-001"}
    assert session_service.get_session(outcome.session.id) == outcome.session


def test_create_session_for_unknown_scene_fails_closed(
    session_service: SessionService,
) -> None:
    outcome = session_service.create_session("scene_unknown")

    assert outcome.success is False
    assert outcome.session is None
    assert outcome.error_kind == ErrorKind.CONFIGURATION
    assert outcome.guidance
    assert session_service.store.list_sessions() == []


def test_create_session_outside_allow_list_is_forbidden(
    session_service: SessionService,
) -> None:
    outcome = session_service.create_session(
        WOUND_SCENE_ID, allowed_scenes={SKIN_SCENE_ID}
    )

    assert outcome.success is False
    assert outcome.error_kind == ErrorKind.FORBIDDEN
    assert session_service.store.list_sessions() == []


def test_add_image_accepts_passing_photo(session_service: SessionService) -> None:
    created = session_service.create_session(SKIN_SCENE_ID)
    assert created.session is not None

    outcome = asyncio.run(
        session_service.add_image(created.session.id, b"\xff\xd8\xffphoto")
    )

    assert outcome.success is True
    assert outcome.session is not None
    assert outcome.session.status == SessionStatus.QA
    assert len(outcome.session.images) == 1
    image = outcome.session.images[0]
    assert image.url.startswith("data:image/jpeg;base64,")
    assert image.qa_result.passed is True
    assert image.metadata.resolution is not None
    assert image.metadata.resolution.width == 4000
    assert outcome.session.updated_at >= outcome.session.created_at


def test_add_image_keeps_url_references(session_service: SessionService) -> None:
    created = session_service.create_session(SKIN_SCENE_ID)
    assert created.session is not None

    outcome = asyncio.run(
        session_service.add_image(created.session.id, "https://img.example/photo.jpg")
    )

    assert outcome.image is not None
    assert outcome.image.url == "https://img.example/photo.jpg"


def test_rejected_images_never_enter_the_session(
    session_service: SessionService, extractor: FixedSignalExtractor
) -> None:
    created = session_service.create_session(SKIN_SCENE_ID)
    assert created.session is not None
    session_id = created.session.id

    sequence = [BLOCKED_SIGNALS, make_signals(), BLOCKED_SIGNALS, make_signals()]
    counts = []
    for signals in sequence:
        extractor.signals = signals
        outcome = asyncio.run(session_service.add_image(session_id, b"photo"))
        if not outcome.success:
            assert outcome.error_kind == ErrorKind.QUALITY_REJECTED
            assert outcome.quality is not None
            assert outcome.quality.passed is False
            assert outcome.guidance
        session = session_service.get_session(session_id)
        assert session is not None
        counts.append(len(session.images))

    assert counts == [0, 1, 1, 2]
    session = session_service.get_session(session_id)
    assert session is not None
    assert all(image.qa_result.passed for image in session.images)


def test_rejected_first_image_keeps_session_capturing(
    session_service: SessionService, extractor: FixedSignalExtractor
) -> None:
    extractor.signals = BLOCKED_SIGNALS
    created = session_service.create_session(SKIN_SCENE_ID)
    assert created.session is not None

    outcome = asyncio.run(session_service.add_image(created.session.id, b"photo"))

    assert outcome.success is False
    assert outcome.session is not None
    assert outcome.session.status == SessionStatus.CAPTURING
    assert outcome.session.images == ()


def test_unreadable_reference_is_rejected_with_tips(
    session_service: SessionService,
) -> None:
    created = session_service.create_session(SKIN_SCENE_ID)
    assert created.session is not None

    outcome = asyncio.run(
        session_service.add_image(created.session.id, "https://img.example/404.jpg")
    )

    assert outcome.success is False
    assert outcome.error_kind == ErrorKind.QUALITY_REJECTED
    assert outcome.guidance == tuple(session_service.quality_gate.universal_tips())


def test_operations_on_unknown_session(session_service: SessionService) -> None:
    session_id = uuid4()

    added = asyncio.run(session_service.add_image(session_id, b"photo"))
    analyzed = asyncio.run(session_service.analyze(session_id))
    completed = session_service.complete_session(session_id)

    for outcome in (added, analyzed, completed):
        assert outcome.success is False
        assert outcome.error_kind == ErrorKind.NOT_FOUND
        assert outcome.guidance


def test_concurrent_add_image_on_same_session_is_rejected(
    scene_registry: SceneRegistry, requirements: CaptureRequirementRegistry
) -> None:
    async def scenario():  # type: ignore[no-untyped-def]
        extractor = GatedSignalExtractor()
        gate = ImageQualityGate(extractor=extractor, requirements=requirements)
        service = SessionService(registry=scene_registry, quality_gate=gate)
        created = service.create_session(SKIN_SCENE_ID)
        assert created.session is not None
        session_id = created.session.id

        first = asyncio.create_task(service.add_image(session_id, b"first"))
        await extractor.started.wait()
        second = await service.add_image(session_id, b"second")
        analysis = await service.analyze(session_id)
        completion = service.complete_session(session_id)
        extractor.release.set()
        session = service.get_session(session_id)
        return await first, second, analysis, completion, session

    first, second, analysis, completion, session = asyncio.run(scenario())

    assert first.success is True
    assert second.success is False
    assert second.error_kind == ErrorKind.BUSY
    assert second.guidance
    assert analysis.error_kind == ErrorKind.BUSY
    assert completion.error_kind == ErrorKind.BUSY
    assert session is not None
    assert len(session.images) == 1


def test_different_sessions_do_not_block_each_other(
    scene_registry: SceneRegistry, requirements: CaptureRequirementRegistry
) -> None:
    async def scenario():  # type: ignore[no-untyped-def]
        extractor = GatedSignalExtractor()
        gate = ImageQualityGate(extractor=extractor, requirements=requirements)
        service = SessionService(registry=scene_registry, quality_gate=gate)
        first_session = service.create_session(SKIN_SCENE_ID).session
        second_session = service.create_session(SKIN_SCENE_ID).session
        assert first_session is not None
        assert second_session is not None

        tasks = [
            asyncio.create_task(service.add_image(first_session.id, b"a")),
            asyncio.create_task(service.add_image(second_session.id, b"b")),
        ]
        await asyncio.sleep(0)
        extractor.release.set()
        return await asyncio.gather(*tasks)

    outcomes = asyncio.run(scenario())

    assert [outcome.success for outcome in outcomes] == [True, True]


def test_analyze_without_images_fails_validation(
    session_service: SessionService,
) -> None:
    created = session_service.create_session(SKIN_SCENE_ID)
    assert created.session is not None

    outcome = asyncio.run(session_service.analyze(created.session.id))

    assert outcome.success is False
    assert outcome.error_kind == ErrorKind.VALIDATION
    assert outcome.guidance


def test_consumer_analysis_completes_and_records_history(
    session_service: SessionService, history_service: HistoryService
) -> None:
    session = _captured_session(session_service)

    outcome = asyncio.run(session_service.analyze(session.id))

    assert outcome.success is True
    assert outcome.result is not None
    assert outcome.session is not None
    assert outcome.session.status == SessionStatus.COMPLETED
    assert outcome.session.result == outcome.result
    records = history_service.recent()
    assert len(records) == 1
    assert records[0].analysis_id == outcome.result.id
    assert records[0].scene_name == "Skin check"


def test_professional_analysis_waits_for_review(
    session_service: SessionService, history_service: HistoryService
) -> None:
    session = _captured_session(session_service, **WOUND_FIELDS)

    analyzed = asyncio.run(session_service.analyze(session.id))

    assert analyzed.session is not None
    assert analyzed.session.status == SessionStatus.REVIEWING
    assert history_service.recent() == []

    completed = session_service.complete_session(session.id)
    again = session_service.complete_session(session.id)

    assert completed.session is not None
    assert completed.session.status == SessionStatus.COMPLETED
    assert again.success is True
    assert len(history_service.recent()) == 1


def test_missing_intake_fields_fail_validation(
    session_service: SessionService,
) -> None:
    created = session_service.create_session(WOUND_SCENE_ID)
    assert created.session is not None
    asyncio.run(session_service.add_image(created.session.id, b"photo"))

    outcome = asyncio.run(session_service.analyze(created.session.id))

    assert outcome.error_kind == ErrorKind.VALIDATION
    assert "Missing required field: patient_id" in outcome.guidance
    session = session_service.get_session(created.session.id)
    assert session is not None
    assert session.status == SessionStatus.QA


def test_second_analysis_is_rejected(session_service: SessionService) -> None:
    session = _captured_session(session_service)
    first = asyncio.run(session_service.analyze(session.id))

    second = asyncio.run(session_service.analyze(session.id))

    assert second.success is False
    assert second.error_kind == ErrorKind.INVALID_STATE
    stored = session_service.get_session(session.id)
    assert stored is not None
    assert stored.result == first.result


def test_images_cannot_be_added_after_analysis(
    session_service: SessionService,
) -> None:
    session = _captured_session(session_service)
    asyncio.run(session_service.analyze(session.id))

    outcome = asyncio.run(session_service.add_image(session.id, b"photo"))

    assert outcome.error_kind == ErrorKind.INVALID_STATE
    stored = session_service.get_session(session.id)
    assert stored is not None
    assert len(stored.images) == 1


def test_handler_failure_reverts_to_capturing(quality_gate: ImageQualityGate) -> None:
    handler = StubHandler(failures=1)
    service = _service_with_handler(handler, quality_gate)
    session = _captured_session(service)

    failed = asyncio.run(service.analyze(session.id))

    assert failed.success is False
    assert failed.error_kind == ErrorKind.ANALYSIS_FAILED
    assert failed.error is not None
    assert "model unavailable" in failed.error
    assert failed.session is not None
    assert failed.session.status == SessionStatus.CAPTURING
    assert failed.session.result is None

    retried = asyncio.run(service.analyze(session.id))

    assert retried.success is True
    assert handler.calls == 2


def test_handler_timeout_is_retryable(quality_gate: ImageQualityGate) -> None:
    service = _service_with_handler(StubHandler(delay=1.0), quality_gate, timeout=0.01)
    session = _captured_session(service)

    outcome = asyncio.run(service.analyze(session.id))

    assert outcome.error_kind == ErrorKind.TIMEOUT
    assert outcome.retryable is True
    stored = service.get_session(session.id)
    assert stored is not None
    assert stored.status == SessionStatus.CAPTURING
    assert stored.result is None


def test_scene_without_handler_is_a_configuration_error(
    quality_gate: ImageQualityGate,
) -> None:
    service = _service_with_handler(None, quality_gate)
    session = _captured_session(service)

    outcome = asyncio.run(service.analyze(session.id))

    assert outcome.error_kind == ErrorKind.CONFIGURATION
    stored = service.get_session(session.id)
    assert stored is not None
    assert stored.result is None


def test_complete_requires_review_state(session_service: SessionService) -> None:
    created = session_service.create_session(SKIN_SCENE_ID)
    assert created.session is not None

    outcome = session_service.complete_session(created.session.id)

    assert outcome.error_kind == ErrorKind.INVALID_STATE


def test_history_failure_does_not_break_completion(
    quality_gate: ImageQualityGate,
) -> None:
    service = _service_with_handler(StubHandler(), quality_gate)
    service.history = FailingHistory()
    session = _captured_session(service)

    outcome = asyncio.run(service.analyze(session.id))

    assert outcome.success is True
    assert outcome.session is not None
    assert outcome.session.status == SessionStatus.COMPLETED


def test_dispose_releases_session(session_service: SessionService) -> None:
    created = session_service.create_session(SKIN_SCENE_ID)
    assert created.session is not None

    assert session_service.dispose(created.session.id) is True
    assert session_service.dispose(created.session.id) is False
    assert session_service.get_session(created.session.id) is None


def test_handler_receives_scene_findings(
    session_service: SessionService, vision_client: FakeVisionClient
) -> None:
    vision_client.findings = make_findings(risk_level="medium")
    session = _captured_session(session_service)

    outcome = asyncio.run(session_service.analyze(session.id))

    assert outcome.result is not None
    assert outcome.result.risk_assessment.level == "medium"
    assert vision_client.calls[0]["image_url"] == session.images[0].url


def test_unexpected_quality_errors_become_rejections(
    scene_registry: SceneRegistry, requirements: CaptureRequirementRegistry
) -> None:
    gate = ImageQualityGate(
        extractor=ExplodingSignalExtractor(), requirements=requirements
    )
    service = SessionService(registry=scene_registry, quality_gate=gate)
    created = service.create_session(SKIN_SCENE_ID)
    assert created.session is not None

    outcome = asyncio.run(service.add_image(created.session.id, b"photo"))

    assert outcome.success is False
    assert outcome.error_kind == ErrorKind.QUALITY_REJECTED
    assert outcome.error is not None
    assert "decoder crashed" in outcome.error
    assert outcome.guidance
    assert outcome.session is not None
    assert outcome.session.images == ()
    retried = asyncio.run(service.add_image(created.session.id, b"photo"))
    assert retried.error_kind == ErrorKind.QUALITY_REJECTED


@pytest.mark.parametrize("reference", ["http://[::1", "https://", "ftp:/photo"])
def test_malformed_image_urls_are_rejected(
    scene_registry: SceneRegistry,
    requirements: CaptureRequirementRegistry,
    reference: str,
) -> None:
    async def scenario():  # type: ignore[no-untyped-def]
        source = HttpxImageSource.create(timeout=1.0)
        gate = ImageQualityGate(
            extractor=FixedSignalExtractor(),
            requirements=requirements,
            image_source=source,
        )
        service = SessionService(registry=scene_registry, quality_gate=gate)
        created = service.create_session(SKIN_SCENE_ID)
        assert created.session is not None
        try:
            return await service.add_image(created.session.id, reference)
        finally:
            await source.close()

    outcome = asyncio.run(scenario())

    assert outcome.success is False
    assert outcome.error_kind == ErrorKind.QUALITY_REJECTED
    assert outcome.guidance


def test_raising_input_validation_is_reported(quality_gate: ImageQualityGate) -> None:
    handler = RaisingValidationHandler()
    service = _service_with_handler(handler, quality_gate)
    session = _captured_session(service)

    outcome = asyncio.run(service.analyze(session.id))

    assert outcome.success is False
    assert outcome.error_kind == ErrorKind.VALIDATION
    assert outcome.guidance
    assert handler.calls == 0
    stored = service.get_session(session.id)
    assert stored is not None
    assert stored.status == SessionStatus.QA
    assert stored.result is None
