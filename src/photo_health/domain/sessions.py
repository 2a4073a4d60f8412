"""Domain models for capture sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from photo_health.domain.analysis import AnalysisResult
from photo_health.domain.quality import QualityResult
from photo_health.domain.scenes import Resolution


class SessionStatus(StrEnum):
    """Lifecycle states of a capture session."""

    CAPTURING = "capturing"
    QA = "qa"
    ANALYZING = "analyzing"
    REVIEWING = "reviewing"
    COMPLETED = "completed"


@dataclass(frozen=True)
class CaptureMetadata:
    """Capture-time context supplied with an image."""

    device: str | None = None
    resolution: Resolution | None = None
    has_scale_reference: bool | None = None


@dataclass(frozen=True)
class CapturedImage:
    """An image accepted by the quality gate."""

    id: UUID
    url: str
    timestamp: datetime
    qa_result: QualityResult
    metadata: CaptureMetadata


@dataclass(frozen=True)
class CaptureSession:
    """Represents one in-flight unit of capture work."""

    id: UUID
    scene_id: str
    status: SessionStatus
    created_at: datetime
    updated_at: datetime
    images: tuple[CapturedImage, ...] = ()
    result: AnalysisResult | None = None
    fields: dict[str, object] = field(default_factory=dict)

    @property
    def has_accepted_image(self) -> bool:
        """Return True if any image passed quality assessment."""
        return any(image.qa_result.passed for image in self.images)
