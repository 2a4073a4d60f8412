"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from photo_health.adapters.httpx_image_source import HttpxImageSource
from photo_health.adapters.openai_vision_client import OpenAIVisionClient
from photo_health.adapters.pillow_signal_extractor import PillowSignalExtractor
from photo_health.adapters.supabase_history_repository import (
    SupabaseHistoryRepository,
)
from photo_health.config import Settings
from photo_health.scenes.catalog import register_default_scenes
from photo_health.services.history import (
    HistoryRepository,
    HistoryService,
    InMemoryHistoryRepository,
)
from photo_health.services.quality import ImageQualityGate
from photo_health.services.requirements import CaptureRequirementRegistry
from photo_health.services.scenes import SceneRegistry
from photo_health.services.sessions import SessionService
from photo_health.services.vision import VisionService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    scene_registry: SceneRegistry
    quality_gate: ImageQualityGate
    vision_service: VisionService
    session_service: SessionService
    history_service: HistoryService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    history_repository: HistoryRepository
    if resolved_settings.supabase_url and resolved_settings.supabase_service_key:
        supabase_client = create_client(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )
        history_repository = SupabaseHistoryRepository(supabase_client)
    else:
        history_repository = InMemoryHistoryRepository()
    history_service = HistoryService(
        history_repository, max_records=resolved_settings.history_max_records
    )

    image_source = HttpxImageSource.create(
        timeout=resolved_settings.image_fetch_timeout_seconds
    )
    requirements = CaptureRequirementRegistry.with_defaults()
    quality_gate = ImageQualityGate(
        extractor=PillowSignalExtractor(),
        requirements=requirements,
        image_source=image_source,
        policy=resolved_settings.quality_policy(),
    )
    openai_client = OpenAIVisionClient.create(
        resolved_settings.openai_api_key,
        timeout=resolved_settings.analyze_timeout_seconds,
        image_detail=resolved_settings.openai_image_detail,
    )
    vision_service = VisionService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    scene_registry = SceneRegistry()
    register_default_scenes(scene_registry, requirements, vision_service)
    session_service = SessionService(
        registry=scene_registry,
        quality_gate=quality_gate,
        history=history_service,
        analyze_timeout_seconds=resolved_settings.analyze_timeout_seconds,
    )

    async def close_resources() -> None:
        await image_source.close()

    return AppContainer(
        settings=resolved_settings,
        scene_registry=scene_registry,
        quality_gate=quality_gate,
        vision_service=vision_service,
        session_service=session_service,
        history_service=history_service,
        close_resources=close_resources,
    )
