"""Tests for HTTP-based adapters."""

import asyncio
import base64
import json

import httpx
import pytest

from photo_health.adapters.httpx_image_source import HttpxImageSource, decode_data_url
from photo_health.adapters.openai_vision_client import (
    OpenAIVisionClient,
    VisionResponseError,
)
from photo_health.services.quality import UnreadableImageError
from photo_health.services.vision import FINDINGS_SCHEMA
from tests.conftest import LOW_RISK_FINDINGS


class _FakeResponses:
    def __init__(self, output_text: str) -> None:
        self.output_text = output_text
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        return type("Resp", (), {"output_text": self.output_text})()


class _FakeOpenAI:
    def __init__(self, output_text: str = json.dumps(LOW_RISK_FINDINGS)) -> None:
        self.responses = _FakeResponses(output_text)


def test_openai_vision_client_sends_image_and_schema() -> None:
    fake = _FakeOpenAI()
    client = OpenAIVisionClient(client=fake)

    result = asyncio.run(
        client.extract(
            model="gpt-5.2",
            reasoning_effort="high",
            store=False,
            image_url="https://img.example/photo.jpg",
            schema=FINDINGS_SCHEMA,
            prompt="Describe the skin",
        )
    )

    assert result == LOW_RISK_FINDINGS
    payload = fake.responses.last_payload
    assert payload is not None
    content = payload["input"][0]["content"]  # type: ignore[index]
    assert content[1] == {
        "type": "input_image",
        "image_url": "https://img.example/photo.jpg",
        "detail": "high",
    }
    assert payload["text"]["format"]["name"] == "scene_findings"  # type: ignore[index]
    assert payload["text"]["format"]["strict"] is True  # type: ignore[index]
    assert payload["reasoning"] == {"effort": "high"}


def test_openai_vision_client_omits_empty_reasoning() -> None:
    fake = _FakeOpenAI()
    client = OpenAIVisionClient(client=fake)

    asyncio.run(
        client.extract(
            model="gpt-5.2",
            reasoning_effort=None,
            store=True,
            image_url="data:image/png;base64,ZmFrZQ==",
            schema={"type": "object"},
            prompt="Read the report",
        )
    )

    payload = fake.responses.last_payload
    assert payload is not None
    assert "reasoning" not in payload
    assert payload["store"] is True


@pytest.mark.parametrize("output_text", ["not json", "[1, 2]"])
def test_openai_vision_client_rejects_malformed_output(output_text: str) -> None:
    fake = _FakeOpenAI(output_text=output_text)
    client = OpenAIVisionClient(client=fake, image_detail="low")

    with pytest.raises(VisionResponseError):
        asyncio.run(
            client.extract(
                model="gpt-5.2",
                reasoning_effort=None,
                store=False,
                image_url="https://img.example/photo.jpg",
                schema={"type": "object"},
                prompt="Describe",
            )
        )

    content = fake.responses.last_payload["input"][0]["content"]  # type: ignore[index]
    assert content[1]["detail"] == "low"


def test_openai_vision_client_rejects_empty_output() -> None:
    client = OpenAIVisionClient(client=_FakeOpenAI(output_text=""))

    with pytest.raises(VisionResponseError):
        asyncio.run(
            client.extract(
                model="gpt-5.2",
                reasoning_effort="high",
                store=False,
                image_url="https://img.example/photo.jpg",
                schema={"type": "object"},
                prompt="Describe",
            )
        )


def test_image_source_downloads_bytes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/photo.jpg"
        return httpx.Response(200, content=b"\xff\xd8\xffimage")

    transport = httpx.MockTransport(handler)
    source = HttpxImageSource(http_client=httpx.AsyncClient(transport=transport))

    data = asyncio.run(source.load("https://img.example/photo.jpg"))

    assert data == b"\xff\xd8\xffimage"
    asyncio.run(source.close())


def test_image_source_wraps_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    transport = httpx.MockTransport(handler)
    source = HttpxImageSource(http_client=httpx.AsyncClient(transport=transport))

    with pytest.raises(UnreadableImageError):
        asyncio.run(source.load("https://img.example/missing.jpg"))


def test_image_source_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = httpx.MockTransport(handler)
    source = HttpxImageSource(http_client=httpx.AsyncClient(transport=transport))

    with pytest.raises(UnreadableImageError):
        asyncio.run(source.load("https://img.example/photo.jpg"))


def test_image_source_decodes_data_urls_without_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("data URLs must not be fetched")

    transport = httpx.MockTransport(handler)
    source = HttpxImageSource(http_client=httpx.AsyncClient(transport=transport))
    encoded = base64.b64encode(b"png-bytes").decode()

    data = asyncio.run(source.load(f"data:image/png;base64,{encoded}"))

    assert data == b"png-bytes"


@pytest.mark.parametrize(
    "data_url",
    ["data:image/png,plain", "data:image/png;base64,", "data:image/png;base64,@@@"],
)
def test_invalid_data_urls_are_unreadable(data_url: str) -> None:
    with pytest.raises(UnreadableImageError):
        decode_data_url(data_url)


@pytest.mark.parametrize("reference", ["http://[::1", "https://", "ftp:/photo"])
def test_malformed_urls_are_unreadable(reference: str) -> None:
    async def scenario() -> None:
        source = HttpxImageSource.create(timeout=1.0)
        try:
            await source.load(reference)
        finally:
            await source.close()

    with pytest.raises(UnreadableImageError):
        asyncio.run(scenario())
