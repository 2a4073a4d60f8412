"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from photo_health.api.admin import router as admin_router
from photo_health.api.models import (
    CaptureMetadataPayload,
    CreateSessionRequest,
    ImageUrlRequest,
    image_payload,
    session_payload,
)
from photo_health.app_logging import configure_logging
from photo_health.config import parse_scene_allowlist
from photo_health.containers import AppContainer
from photo_health.services.scenes import SceneNotRegisteredError
from photo_health.services.sessions import (
    AddImageOutcome,
    AnalysisOutcome,
    ErrorKind,
    SessionOutcome,
)

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFIGURATION: 422,
    ErrorKind.VALIDATION: 422,
    ErrorKind.QUALITY_REJECTED: 422,
    ErrorKind.BUSY: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.ANALYSIS_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}

Outcome = SessionOutcome | AddImageOutcome | AnalysisOutcome


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)
    allowed_scenes = parse_scene_allowlist(container.settings.allowed_scene_ids)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/scenes")
    async def list_scenes(request: Request) -> dict[str, object]:
        """Return the scenes available to callers."""
        state_container: AppContainer = request.app.state.container
        scenes = state_container.scene_registry.accessible_scenes(allowed_scenes)
        return {"scenes": [scene.model_dump(mode="json") for scene in scenes]}

    @app.get("/scenes/{scene_id}/requirements")
    async def scene_requirements(scene_id: str, request: Request) -> dict[str, object]:
        """Return capture requirements and universal tips for a scene."""
        state_container: AppContainer = request.app.state.container
        gate = state_container.quality_gate
        try:
            requirements = gate.capture_requirements(scene_id)
        except SceneNotRegisteredError as exc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
            ) from exc
        return {
            "requirements": requirements.model_dump(mode="json"),
            "universal_tips": gate.universal_tips(),
        }

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def create_session(
        body: CreateSessionRequest, request: Request
    ) -> dict[str, object]:
        """Start a capture session for a scene."""
        state_container: AppContainer = request.app.state.container
        outcome = state_container.session_service.create_session(
            body.scene_id, fields=body.fields, allowed_scenes=allowed_scenes
        )
        if not outcome.success or outcome.session is None:
            return _failure(outcome)
        return {"session": session_payload(outcome.session)}

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: UUID, request: Request) -> dict[str, object]:
        """Return the current state of a session."""
        state_container: AppContainer = request.app.state.container
        session = state_container.session_service.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {"session": session_payload(session)}

    @app.post("/sessions/{session_id}/images")
    async def upload_image(  # noqa: PLR0913
        session_id: UUID,
        request: Request,
        device: str | None = None,
        width: int | None = None,
        height: int | None = None,
        has_scale_reference: bool | None = None,
    ) -> dict[str, object]:
        """Submit raw image bytes to a session."""
        state_container: AppContainer = request.app.state.container
        image_bytes = await request.body()
        if not image_bytes:
            raise HTTPException(status_code=422, detail="Empty image body")
        metadata = CaptureMetadataPayload(
            device=device,
            width=width,
            height=height,
            has_scale_reference=has_scale_reference,
        ).to_metadata()
        outcome = await state_container.session_service.add_image(
            session_id, image_bytes, metadata
        )
        return _image_response(outcome)

    @app.post("/sessions/{session_id}/images/url")
    async def submit_image_url(
        session_id: UUID, body: ImageUrlRequest, request: Request
    ) -> dict[str, object]:
        """Submit an image by URL or data URL."""
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.session_service.add_image(
            session_id, body.url, body.to_metadata()
        )
        return _image_response(outcome)

    @app.post("/sessions/{session_id}/analyze")
    async def analyze_session(session_id: UUID, request: Request) -> dict[str, object]:
        """Run the scene analysis for a session."""
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.session_service.analyze(session_id)
        if not outcome.success or outcome.session is None:
            if outcome.error_kind == ErrorKind.ANALYSIS_FAILED:
                logger.warning("Analysis failed for session %s", session_id)
            return _failure(outcome)
        return {"session": session_payload(outcome.session)}

    @app.post("/sessions/{session_id}/complete")
    async def complete_session(
        session_id: UUID, request: Request
    ) -> dict[str, object]:
        """Confirm a reviewed session."""
        state_container: AppContainer = request.app.state.container
        outcome = state_container.session_service.complete_session(session_id)
        if not outcome.success or outcome.session is None:
            return _failure(outcome)
        return {"session": session_payload(outcome.session)}

    @app.delete("/sessions/{session_id}")
    async def dispose_session(session_id: UUID, request: Request) -> dict[str, str]:
        """Release a session."""
        state_container: AppContainer = request.app.state.container
        if not state_container.session_service.dispose(session_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {"status": "disposed"}

    return app


def _image_response(outcome: AddImageOutcome) -> dict[str, object] | JSONResponse:
    if not outcome.success or outcome.session is None or outcome.image is None:
        return _failure(outcome)
    return {
        "session": session_payload(outcome.session),
        "image": image_payload(outcome.image),
        "guidance": list(outcome.guidance),
    }


def _failure(outcome: Outcome) -> JSONResponse:
    error_kind = outcome.error_kind or ErrorKind.VALIDATION
    content: dict[str, object] = {
        "error": outcome.error,
        "error_kind": error_kind.value,
        "guidance": list(outcome.guidance),
        "session": session_payload(outcome.session) if outcome.session else None,
    }
    if isinstance(outcome, AddImageOutcome) and outcome.quality is not None:
        content["quality"] = outcome.quality.model_dump(mode="json")
    if isinstance(outcome, AnalysisOutcome):
        content["retryable"] = outcome.retryable
    return JSONResponse(status_code=ERROR_STATUS[error_kind], content=content)
