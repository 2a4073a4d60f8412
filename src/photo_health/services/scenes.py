"""Scene registry and the handler capability contract."""

import inspect
import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from photo_health.domain.analysis import AnalysisResult
from photo_health.domain.scenes import (
    InputValidation,
    SceneConfiguration,
    SceneType,
    TargetAudience,
)
from photo_health.domain.sessions import CaptureSession

logger = logging.getLogger(__name__)

_HANDLER_OPERATIONS = ("analyze", "validate_input", "get_required_fields")


class SceneNotRegisteredError(LookupError):
    """Raised when a scene id has no registered configuration."""

    def __init__(self, scene_id: str) -> None:
        super().__init__(f"Scene is not registered: {scene_id}")
        self.scene_id = scene_id


class HandlerNotRegisteredError(LookupError):
    """Raised when a registered scene has no analysis handler."""

    def __init__(self, scene_id: str) -> None:
        super().__init__(f"No handler registered for scene: {scene_id}")
        self.scene_id = scene_id


class InvalidHandlerError(TypeError):
    """Raised when a handler does not implement the full capability contract."""


@runtime_checkable
class SceneHandler(Protocol):
    """Capability contract every scene plugin implements."""

    async def analyze(self, session: CaptureSession) -> AnalysisResult:
        """Produce the analysis result for a session."""

    def validate_input(self, session: CaptureSession) -> InputValidation:
        """Check that the session holds everything the analysis needs."""

    def get_required_fields(self) -> list[str]:
        """Return the input fields the scene requires."""


@dataclass
class SceneRegistry:
    """Maps scene ids to configurations and handlers.

    Registration happens at startup; afterwards the registry is only read,
    so sessions share it without locking.
    """

    _scenes: dict[str, SceneConfiguration] = field(default_factory=dict)
    _handlers: dict[str, SceneHandler] = field(default_factory=dict)

    def register(self, scene_id: str, configuration: SceneConfiguration) -> None:
        """Register a scene configuration; re-registration replaces it."""
        if configuration.id != scene_id:
            raise ValueError(
                f"Configuration id {configuration.id!r} does not match {scene_id!r}"
            )
        if scene_id in self._scenes:
            logger.warning(
                "Scene %s registered again, previous configuration replaced", scene_id
            )
        self._scenes[scene_id] = configuration
        logger.info("Registered scene %s (%s)", configuration.name, scene_id)

    def register_handler(self, scene_id: str, handler: SceneHandler) -> None:
        """Register the analysis handler for a scene."""
        _ensure_handler_contract(scene_id, handler)
        if scene_id in self._handlers:
            logger.warning(
                "Handler for scene %s registered again, previous handler replaced",
                scene_id,
            )
        self._handlers[scene_id] = handler
        logger.info("Registered handler for scene %s", scene_id)

    def get(self, scene_id: str) -> SceneConfiguration | None:
        """Return a scene configuration, if present."""
        return self._scenes.get(scene_id)

    def require(self, scene_id: str) -> SceneConfiguration:
        """Return a scene configuration or raise if it is unknown."""
        configuration = self._scenes.get(scene_id)
        if configuration is None:
            raise SceneNotRegisteredError(scene_id)
        return configuration

    def handler_for(self, scene_id: str) -> SceneHandler:
        """Return the handler for a registered scene."""
        self.require(scene_id)
        handler = self._handlers.get(scene_id)
        if handler is None:
            raise HandlerNotRegisteredError(scene_id)
        return handler

    def is_registered(self, scene_id: str) -> bool:
        """Return True if the scene has a configuration."""
        return scene_id in self._scenes

    def list_scenes(self) -> list[SceneConfiguration]:
        """Return all scene configurations in registration order."""
        return list(self._scenes.values())

    def scenes_by_type(self, scene_type: SceneType) -> list[SceneConfiguration]:
        """Return scenes of a given type."""
        return [
            scene for scene in self._scenes.values() if scene.scene_type == scene_type
        ]

    def scenes_by_audience(self, audience: TargetAudience) -> list[SceneConfiguration]:
        """Return scenes targeting an audience.

        General-public callers also see every consumer scene.
        """
        return [
            scene
            for scene in self._scenes.values()
            if scene.target_audience == audience
            or (audience == "general_public" and scene.scene_type == "consumer")
        ]

    def accessible_scenes(
        self, allowed_scene_ids: Collection[str] | None
    ) -> list[SceneConfiguration]:
        """Return scenes a caller may use; ``None`` means unrestricted."""
        if allowed_scene_ids is None:
            return self.list_scenes()
        return [
            scene for scene in self._scenes.values() if scene.id in allowed_scene_ids
        ]


def _ensure_handler_contract(scene_id: str, handler: object) -> None:
    """Reject handlers that miss any operation of the contract."""
    missing = [
        name
        for name in _HANDLER_OPERATIONS
        if not callable(getattr(handler, name, None))
    ]
    if missing:
        raise InvalidHandlerError(
            f"Handler for {scene_id} is missing: {', '.join(missing)}"
        )
    if not inspect.iscoroutinefunction(handler.analyze):  # type: ignore[attr-defined]
        raise InvalidHandlerError(f"Handler for {scene_id} must define async analyze")
