"""OpenAI Responses API client for scene findings."""

import json
import logging
from dataclasses import dataclass
from typing import Literal

from openai import AsyncOpenAI

from photo_health.services.vision import VisionClient

logger = logging.getLogger(__name__)

ImageDetail = Literal["low", "high", "auto"]


class VisionResponseError(RuntimeError):
    """Raised when the model returns no usable findings document."""


@dataclass
class OpenAIVisionClient(VisionClient):
    """Sends one image plus a scene prompt and expects schema-shaped JSON.

    Clinical photos lose the details that matter when downscaled, so images
    are sent at ``high`` detail unless configured otherwise.
    """

    client: AsyncOpenAI
    image_detail: ImageDetail = "high"

    @classmethod
    def create(
        cls,
        api_key: str,
        timeout: float | None = None,
        image_detail: ImageDetail = "high",
    ) -> "OpenAIVisionClient":
        """Create a client; ``timeout`` bounds each API request in seconds."""
        return cls(
            client=AsyncOpenAI(api_key=api_key, timeout=timeout),
            image_detail=image_detail,
        )

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
        """Return the findings document for one image."""
        request_payload: dict[str, object] = {
            "model": model,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {
                            "type": "input_image",
                            "image_url": image_url,
                            "detail": self.image_detail,
                        },
                    ],
                }
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "scene_findings",
                    "strict": True,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise VisionResponseError("Vision model returned an empty response")
        try:
            findings = json.loads(output_text)
        except json.JSONDecodeError as exc:
            logger.warning(
                "Vision model returned malformed JSON (%s chars)", len(output_text)
            )
            raise VisionResponseError("Vision model returned malformed JSON") from exc
        if not isinstance(findings, dict):
            raise VisionResponseError("Vision model returned a non-object document")
        return findings
