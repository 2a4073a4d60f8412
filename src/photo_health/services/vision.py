"""Vision findings service backed by multimodal LLMs."""

import base64
from dataclasses import dataclass
from typing import Protocol

from photo_health.domain.vision import SceneFindings

FINDINGS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "features": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "label": {"type": "string"},
                    "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
                    "description": {"type": "string"},
                },
                "required": ["type", "label", "confidence", "description"],
                "additionalProperties": False,
            },
        },
        "measurements": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "value": {"type": "number"},
                    "unit": {"type": "string"},
                },
                "required": ["type", "value", "unit"],
                "additionalProperties": False,
            },
        },
        "observations": {"type": "array", "items": {"type": "string"}},
        "risk_level": {
            "type": "string",
            "enum": ["low", "medium", "high", "critical"],
        },
        "risk_factors": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "description": {"type": "string"},
                },
                "required": ["type", "description"],
                "additionalProperties": False,
            },
        },
        "red_flags": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "description": {"type": "string"},
                    "urgency": {
                        "type": "string",
                        "enum": ["routine", "urgent", "emergency"],
                    },
                    "action_required": {"type": "string"},
                },
                "required": ["type", "description", "urgency", "action_required"],
                "additionalProperties": False,
            },
        },
        "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
    },
    "required": [
        "features",
        "measurements",
        "observations",
        "risk_level",
        "risk_factors",
        "red_flags",
        "confidence",
    ],
    "additionalProperties": False,
}

_BASE_PROMPT = (
    "You support a health self-check app. Describe only what is visible in the "
    "image, never give a diagnosis, and flag anything that needs a professional. "
    "Report features with confidence (0-1), measurements only when a scale "
    "reference makes them reliable, short observations, an overall risk level, "
    "risk factors and red flags."
)


class VisionClient(Protocol):
    """Interface for LLM vision extraction."""

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
        """Return structured vision extraction data."""


@dataclass
class VisionService:
    """Service that prepares vision prompts and validates results."""

    client: VisionClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def extract_findings(
        self, image_url: str, scene_prompt: str, context: str | None = None
    ) -> SceneFindings:
        """Extract scene findings from an image URL or data URL."""
        prompt = f"{_BASE_PROMPT}\n\n{scene_prompt}"
        if context:
            prompt = f"{prompt}\n\nContext provided by the user: {context}"
        raw = await self.client.extract(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            image_url=image_url,
            schema=FINDINGS_SCHEMA,
            prompt=prompt,
        )
        return SceneFindings.model_validate(raw)


def to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
