"""Session state machine for photo capture and analysis."""

import asyncio
import logging
from collections.abc import Collection, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol
from uuid import UUID, uuid4

from photo_health.domain.analysis import AnalysisResult
from photo_health.domain.quality import QualityResult
from photo_health.domain.scenes import Resolution
from photo_health.domain.sessions import (
    CapturedImage,
    CaptureMetadata,
    CaptureSession,
    SessionStatus,
)
from photo_health.services.quality import (
    ImageInput,
    ImageQualityGate,
    UnreadableImageError,
)
from photo_health.services.scenes import (
    HandlerNotRegisteredError,
    SceneNotRegisteredError,
    SceneRegistry,
)
from photo_health.services.session_store import InMemorySessionStore, SessionStore
from photo_health.services.vision import to_data_url

logger = logging.getLogger(__name__)

_IMAGE_STATUSES = {SessionStatus.CAPTURING, SessionStatus.QA}


class ErrorKind(StrEnum):
    """Failure categories reported by session operations."""

    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    QUALITY_REJECTED = "quality_rejected"
    BUSY = "busy"
    INVALID_STATE = "invalid_state"
    ANALYSIS_FAILED = "analysis_failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class SessionOutcome:
    """Outcome of creating or completing a session."""

    success: bool
    session: CaptureSession | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    guidance: tuple[str, ...] = ()


@dataclass(frozen=True)
class AddImageOutcome:
    """Outcome of submitting an image to a session."""

    success: bool
    session: CaptureSession | None = None
    image: CapturedImage | None = None
    quality: QualityResult | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    guidance: tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisOutcome:
    """Outcome of running scene analysis on a session."""

    success: bool
    session: CaptureSession | None = None
    result: AnalysisResult | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    guidance: tuple[str, ...] = ()
    retryable: bool = False


class HistoryRecorder(Protocol):
    """Receives finished analysis results."""

    def record(self, result: AnalysisResult, scene_name: str) -> object:
        """Store a finished analysis result."""


@dataclass
class SessionService:
    """Moves capture sessions from capturing through QA to analysis and review.

    Operations on one session must not overlap: a call issued while another
    call on the same session is still running is rejected with
    ``ErrorKind.BUSY`` instead of being queued.
    """

    registry: SceneRegistry
    quality_gate: ImageQualityGate
    store: SessionStore = field(default_factory=InMemorySessionStore)
    history: HistoryRecorder | None = None
    analyze_timeout_seconds: float = 30.0
    _in_flight: set[UUID] = field(default_factory=set, init=False, repr=False)

    def create_session(
        self,
        scene_id: str,
        fields: dict[str, object] | None = None,
        allowed_scenes: Collection[str] | None = None,
    ) -> SessionOutcome:
        """Create a session in ``capturing`` for a registered scene."""
        if not self.registry.is_registered(scene_id):
            logger.info("Rejected session for unknown scene %s", scene_id)
            return SessionOutcome(
                success=False,
                error=f"Scene is not registered: {scene_id}",
                error_kind=ErrorKind.CONFIGURATION,
                guidance=("Choose one of the available scenes.",),
            )
        if allowed_scenes is not None and scene_id not in allowed_scenes:
            return SessionOutcome(
                success=False,
                error=f"Scene is not available to this caller: {scene_id}",
                error_kind=ErrorKind.FORBIDDEN,
                guidance=("Choose a scene you have access to.",),
            )

        now = _now()
        session = CaptureSession(
            id=uuid4(),
            scene_id=scene_id,
            status=SessionStatus.CAPTURING,
            created_at=now,
            updated_at=now,
            fields=dict(fields or {}),
        )
        self.store.add(session)
        logger.info("Created session %s for scene %s", session.id, scene_id)
        return SessionOutcome(success=True, session=session)

    def get_session(self, session_id: UUID) -> CaptureSession | None:
        """Return a session by id, if present."""
        return self.store.get(session_id)

    async def add_image(
        self,
        session_id: UUID,
        image: ImageInput,
        metadata: CaptureMetadata | None = None,
    ) -> AddImageOutcome:
        """Run the quality gate and append the image only if it passes."""
        session = self.store.get(session_id)
        if session is None:
            return AddImageOutcome(success=False, **_not_found(session_id))

        with self._claim(session_id) as claimed:
            if not claimed:
                return AddImageOutcome(success=False, session=session, **_busy())
            if session.status not in _IMAGE_STATUSES:
                return AddImageOutcome(
                    success=False,
                    session=session,
                    error=f"Cannot add images while session is {session.status}",
                    error_kind=ErrorKind.INVALID_STATE,
                    guidance=("Start a new session to capture more images.",),
                )

            try:
                quality = await self.quality_gate.assess(
                    image, session.scene_id, metadata
                )
            except SceneNotRegisteredError as exc:
                return AddImageOutcome(
                    success=False,
                    session=session,
                    error=str(exc),
                    error_kind=ErrorKind.CONFIGURATION,
                    guidance=("This scene has no capture requirements configured.",),
                )
            except UnreadableImageError as exc:
                logger.info("Unreadable image for session %s: %s", session_id, exc)
                return AddImageOutcome(
                    success=False,
                    session=session,
                    error=f"Image could not be read: {exc}",
                    error_kind=ErrorKind.QUALITY_REJECTED,
                    guidance=tuple(self.quality_gate.universal_tips()),
                )
            except Exception as exc:
                logger.exception("Quality check failed for session %s", session_id)
                return AddImageOutcome(
                    success=False,
                    session=session,
                    error=f"Quality check failed: {exc}",
                    error_kind=ErrorKind.QUALITY_REJECTED,
                    guidance=(
                        "Retake the photo and try again.",
                        *self.quality_gate.universal_tips(),
                    ),
                )

            current = self.store.get(session_id)
            if current is None:
                return AddImageOutcome(success=False, **_not_found(session_id))

            if not quality.passed:
                logger.info(
                    "Rejected image for session %s (score=%s, blocking=%s)",
                    session_id,
                    quality.quality_score,
                    quality.blocking,
                )
                return AddImageOutcome(
                    success=False,
                    session=current,
                    quality=quality,
                    error=_rejection_message(quality),
                    error_kind=ErrorKind.QUALITY_REJECTED,
                    guidance=tuple(quality.retake_guidance),
                )

            now = _now()
            captured = CapturedImage(
                id=uuid4(),
                url=_image_url(image),
                timestamp=now,
                qa_result=quality,
                metadata=_image_metadata(metadata, quality),
            )
            updated = replace(
                current,
                images=(*current.images, captured),
                status=SessionStatus.QA,
                updated_at=now,
            )
            self.store.save(updated)
            return AddImageOutcome(
                success=True,
                session=updated,
                image=captured,
                quality=quality,
                guidance=tuple(quality.retake_guidance),
            )

    async def analyze(self, session_id: UUID) -> AnalysisOutcome:  # noqa: PLR0911
        """Validate the session and run its scene handler."""
        session = self.store.get(session_id)
        if session is None:
            return AnalysisOutcome(success=False, **_not_found(session_id))

        with self._claim(session_id) as claimed:
            if not claimed:
                return AnalysisOutcome(success=False, session=session, **_busy())
            if session.result is not None:
                return AnalysisOutcome(
                    success=False,
                    session=session,
                    error="Session has already been analyzed",
                    error_kind=ErrorKind.INVALID_STATE,
                    guidance=("Start a new session for another analysis.",),
                )
            if not session.images:
                return AnalysisOutcome(
                    success=False,
                    session=session,
                    error="No accepted images in session",
                    error_kind=ErrorKind.VALIDATION,
                    guidance=("Capture a photo that passes the quality checks.",),
                )

            try:
                handler = self.registry.handler_for(session.scene_id)
            except (SceneNotRegisteredError, HandlerNotRegisteredError) as exc:
                return AnalysisOutcome(
                    success=False,
                    session=session,
                    error=str(exc),
                    error_kind=ErrorKind.CONFIGURATION,
                    guidance=("Analysis is not available for this scene.",),
                )

            try:
                validation = handler.validate_input(session)
            except Exception as exc:
                logger.exception("Input validation failed for session %s", session_id)
                return AnalysisOutcome(
                    success=False,
                    session=session,
                    error=f"Input validation failed: {exc}",
                    error_kind=ErrorKind.VALIDATION,
                    guidance=("Check the session inputs and try again.",),
                )
            if not validation.valid:
                return AnalysisOutcome(
                    success=False,
                    session=session,
                    error="Input validation failed: " + ", ".join(validation.errors),
                    error_kind=ErrorKind.VALIDATION,
                    guidance=tuple(validation.errors)
                    or ("Provide the missing input and try again.",),
                )

            analyzing = replace(
                session, status=SessionStatus.ANALYZING, updated_at=_now()
            )
            self.store.save(analyzing)
            try:
                result = await asyncio.wait_for(
                    handler.analyze(analyzing), timeout=self.analyze_timeout_seconds
                )
            except TimeoutError:
                logger.warning(
                    "Analysis timed out for session %s after %ss",
                    session_id,
                    self.analyze_timeout_seconds,
                )
                return AnalysisOutcome(
                    success=False,
                    session=self._revert_to_capturing(analyzing),
                    error="Analysis timed out",
                    error_kind=ErrorKind.TIMEOUT,
                    guidance=("Analysis took too long, please try again.",),
                    retryable=True,
                )
            except Exception as exc:
                logger.exception("Analysis failed for session %s", session_id)
                return AnalysisOutcome(
                    success=False,
                    session=self._revert_to_capturing(analyzing),
                    error=f"Analysis failed: {exc}",
                    error_kind=ErrorKind.ANALYSIS_FAILED,
                    guidance=(
                        "Retry the analysis, or retake the photo if it keeps failing.",
                    ),
                )

            current = self.store.get(session_id)
            if current is None:
                return AnalysisOutcome(success=False, **_not_found(session_id))
            status = (
                SessionStatus.REVIEWING
                if result.requires_manual_review
                else SessionStatus.COMPLETED
            )
            finished = replace(current, result=result, status=status, updated_at=_now())
            self.store.save(finished)
            logger.info("Analysis for session %s finished as %s", session_id, status)
            if status == SessionStatus.COMPLETED:
                self._record_history(finished)
            return AnalysisOutcome(success=True, session=finished, result=result)

    def complete_session(self, session_id: UUID) -> SessionOutcome:
        """Move a reviewed session to ``completed``; no-op if already completed."""
        session = self.store.get(session_id)
        if session is None:
            return SessionOutcome(success=False, **_not_found(session_id))
        with self._claim(session_id) as claimed:
            if not claimed:
                return SessionOutcome(success=False, session=session, **_busy())
            if session.status == SessionStatus.COMPLETED:
                return SessionOutcome(success=True, session=session)
            if session.status != SessionStatus.REVIEWING:
                return SessionOutcome(
                    success=False,
                    session=session,
                    error=f"Session cannot be completed while {session.status}",
                    error_kind=ErrorKind.INVALID_STATE,
                    guidance=("Run the analysis before completing the session.",),
                )

            completed = replace(
                session, status=SessionStatus.COMPLETED, updated_at=_now()
            )
            self.store.save(completed)
            logger.info("Session %s completed", session_id)
            self._record_history(completed)
            return SessionOutcome(success=True, session=completed)

    def dispose(self, session_id: UUID) -> bool:
        """Release a session; return True if it existed."""
        disposed = self.store.dispose(session_id)
        if disposed:
            logger.info("Disposed session %s", session_id)
        return disposed

    @contextmanager
    def _claim(self, session_id: UUID) -> Iterator[bool]:
        if session_id in self._in_flight:
            yield False
            return
        self._in_flight.add(session_id)
        try:
            yield True
        finally:
            self._in_flight.discard(session_id)

    def _revert_to_capturing(self, session: CaptureSession) -> CaptureSession | None:
        current = self.store.get(session.id)
        if current is None:
            return None
        reverted = replace(current, status=SessionStatus.CAPTURING, updated_at=_now())
        self.store.save(reverted)
        return reverted

    def _record_history(self, session: CaptureSession) -> None:
        if self.history is None or session.result is None:
            return
        configuration = self.registry.get(session.scene_id)
        scene_name = configuration.name if configuration else session.scene_id
        try:
            self.history.record(session.result, scene_name)
        except Exception:
            logger.exception("Failed to record history for session %s", session.id)


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _not_found(session_id: UUID) -> dict[str, object]:
    return {
        "error": f"Session not found or expired: {session_id}",
        "error_kind": ErrorKind.NOT_FOUND,
        "guidance": ("Start a new session.",),
    }


def _busy() -> dict[str, object]:
    return {
        "error": "Another operation is in progress for this session",
        "error_kind": ErrorKind.BUSY,
        "guidance": ("Wait for the current step to finish, then try again.",),
    }


def _rejection_message(quality: QualityResult) -> str:
    if quality.blocking:
        return "Image quality is unacceptable, please retake the photo"
    return (
        f"Image quality score {quality.quality_score} is below the required "
        f"{quality.minimum_score}, please retake the photo"
    )


def _image_url(image: ImageInput) -> str:
    if isinstance(image, bytes):
        return to_data_url(image)
    return image


def _image_metadata(
    metadata: CaptureMetadata | None, quality: QualityResult
) -> CaptureMetadata:
    signals = quality.signals
    resolution = metadata.resolution if metadata else None
    if resolution is None and signals is not None and signals.width and signals.height:
        resolution = Resolution(width=signals.width, height=signals.height)
    return CaptureMetadata(
        device=metadata.device if metadata else None,
        resolution=resolution,
        has_scale_reference=bool(signals.has_scale_reference) if signals else None,
    )
