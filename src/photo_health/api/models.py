"""Request and response models for the HTTP API."""

from pydantic import BaseModel, Field

from photo_health.domain.scenes import Resolution
from photo_health.domain.sessions import CapturedImage, CaptureMetadata, CaptureSession


class CreateSessionRequest(BaseModel):
    """Body for starting a capture session."""

    scene_id: str
    fields: dict[str, object] = Field(default_factory=dict)


class CaptureMetadataPayload(BaseModel):
    """Optional capture context sent with an image."""

    device: str | None = None
    width: int | None = Field(default=None, ge=1)
    height: int | None = Field(default=None, ge=1)
    has_scale_reference: bool | None = None

    def to_metadata(self) -> CaptureMetadata:
        """Convert to the domain metadata object."""
        resolution = None
        if self.width and self.height:
            resolution = Resolution(width=self.width, height=self.height)
        return CaptureMetadata(
            device=self.device,
            resolution=resolution,
            has_scale_reference=self.has_scale_reference,
        )


class ImageUrlRequest(CaptureMetadataPayload):
    """Body for submitting an image by URL or data URL."""

    url: str = Field(min_length=1)


def image_payload(image: CapturedImage) -> dict[str, object]:
    """Serialize a captured image without repeating inline image data."""
    url = image.url if not image.url.startswith("data:") else None
    metadata = image.metadata
    return {
        "id": str(image.id),
        "url": url,
        "timestamp": image.timestamp.isoformat(),
        "qa_result": image.qa_result.model_dump(mode="json"),
        "metadata": {
            "device": metadata.device,
            "resolution": (
                metadata.resolution.model_dump() if metadata.resolution else None
            ),
            "has_scale_reference": metadata.has_scale_reference,
        },
    }


def session_payload(session: CaptureSession) -> dict[str, object]:
    """Serialize a session for API responses."""
    return {
        "id": str(session.id),
        "scene_id": session.scene_id,
        "status": session.status.value,
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
        "images": [image_payload(image) for image in session.images],
        "result": session.result.model_dump(mode="json") if session.result else None,
        "fields": session.fields,
    }
