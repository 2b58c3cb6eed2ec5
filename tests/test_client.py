"""Tests for the async TTS client against a mocked vendor.

HOW: httpx.MockTransport stands in for the network; each test installs a
handler that inspects the request and returns a canned response.
"""

import asyncio
import base64
import json

import pytest
import httpx

from narration_sync.api.client import ElevenLabsClient, TTSAPIError
from narration_sync.api.models import TimestampedSpeech

from conftest import alignment_for_text


def _vendor_payload(text, audio=b"mp3-bytes"):
    alignment = alignment_for_text(text)
    return {
        "audio_base64": base64.b64encode(audio).decode("ascii"),
        "alignment": {
            "characters": alignment.characters,
            "character_start_times_seconds": alignment.start_times,
            "character_end_times_seconds": alignment.end_times,
        },
        "normalized_alignment": None,
    }


def _client(handler, **kwargs):
    return ElevenLabsClient(
        api_key="test-key",
        base_url="https://tts.example.com/v1",
        voice_id="voice-1",
        model_id="eleven_v3",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestSynthesizeWithTimestamps:

    def test_success(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=_vendor_payload("Hello world"))

        async def run():
            async with _client(handler) as client:
                return await client.synthesize_with_timestamps("Hello world")

        result = asyncio.run(run())
        assert result.audio == b"mp3-bytes"
        assert result.alignment.text == "Hello world"
        assert result.duration_s == pytest.approx(1.1)

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/text-to-speech/voice-1/with-timestamps"
        assert request.url.params["output_format"] == "mp3_44100_128"
        assert request.headers["xi-api-key"] == "test-key"
        assert json.loads(request.content) == {"text": "Hello world", "model_id": "eleven_v3"}

    def test_error_status(self):
        def handler(request):
            return httpx.Response(401, text="invalid api key")

        async def run():
            async with _client(handler) as client:
                await client.synthesize_with_timestamps("Hi")

        with pytest.raises(TTSAPIError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "TTS API error 401: invalid api key"

    def test_missing_audio(self):
        def handler(request):
            return httpx.Response(200, json={"alignment": None})

        async def run():
            async with _client(handler) as client:
                await client.synthesize_with_timestamps("Hi")

        with pytest.raises(TTSAPIError, match="Audio base64 data not found"):
            asyncio.run(run())

    def test_missing_alignment(self):
        def handler(request):
            payload = _vendor_payload("Hi")
            payload["alignment"] = None
            return httpx.Response(200, json=payload)

        async def run():
            async with _client(handler) as client:
                return await client.synthesize_with_timestamps("Hi")

        result = asyncio.run(run())
        assert result.alignment is None
        assert result.duration_s == 0.0


class TestSynthesize:

    def test_returns_audio_bytes(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"\xff\xfbaudio")

        async def run():
            async with _client(handler) as client:
                return await client.synthesize("Hi")

        assert asyncio.run(run()) == b"\xff\xfbaudio"
        assert seen[0].url.path == "/v1/text-to-speech/voice-1"

    def test_error_status(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        async def run():
            async with _client(handler) as client:
                await client.synthesize("Hi")

        with pytest.raises(TTSAPIError):
            asyncio.run(run())


class TestClientSetup:

    def test_requires_context_manager(self):
        client = _client(lambda request: httpx.Response(200))
        with pytest.raises(RuntimeError, match="async context manager"):
            asyncio.run(client.synthesize("Hi"))

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
        with pytest.raises(ValueError, match="API key not configured"):
            ElevenLabsClient()


class TestTimestampedSpeech:

    def test_invalid_base64(self):
        with pytest.raises(ValueError, match="Invalid audio_base64"):
            TimestampedSpeech.from_dict({"audio_base64": "not base64!"})
