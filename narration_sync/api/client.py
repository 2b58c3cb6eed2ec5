"""Async HTTP client for the ElevenLabs text-to-speech API.

WHY: Narration audio and its character alignment come from the vendor.
The offline generator needs timestamps; the /tts endpoint only needs
audio. This module hides the HTTP details behind one client class so
callers (CLI, server, tests) never touch httpx directly.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. ElevenLabsClient is an
async context manager: enter it to get an authenticated client, exit to
close the connection pool.

RULES:
- Always use the async context manager (async with ElevenLabsClient() as client:)
- Default model is eleven_v3, default output format mp3_44100_128
- Non-2xx responses raise TTSAPIError with the status and body text
- A transport argument may be injected (tests use httpx.MockTransport)
"""

from __future__ import annotations

import httpx

from narration_sync.api.models import SynthesisRequest, TimestampedSpeech
from narration_sync.config import (
    ELEVENLABS_BASE_URL,
    ELEVENLABS_MODEL_ID,
    ELEVENLABS_OUTPUT_FORMAT,
    ELEVENLABS_VOICE_ID,
    load_api_key,
)
from narration_sync.core.synthesis import ChunkResult


class TTSAPIError(Exception):
    """Raised when the TTS vendor returns an error response.

    WHY: Callers need a typed exception to distinguish vendor errors from
    network errors or local failures (the server maps it to 502).

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"TTS API error {status_code}: {message}")


class ElevenLabsClient:
    """Async client for the ElevenLabs text-to-speech endpoints.

    RULES:
    - api_key defaults to load_api_key() from .env
    - base_url, voice_id, model_id, output_format default to config values
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        voice_id: str | None = None,
        model_id: str | None = None,
        output_format: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self._base_url = (base_url or ELEVENLABS_BASE_URL).rstrip("/")
        self._voice_id = voice_id or ELEVENLABS_VOICE_ID
        self._model_id = model_id or ELEVENLABS_MODEL_ID
        self._output_format = output_format or ELEVENLABS_OUTPUT_FORMAT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ElevenLabsClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"xi-api-key": self._api_key},
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "ElevenLabsClient must be used as an async context manager: "
                "async with ElevenLabsClient() as client: ..."
            )
        return self._client

    def _request_body(self, text: str) -> dict:
        return SynthesisRequest(text=text, model_id=self._model_id).to_dict()

    async def synthesize_with_timestamps(self, text: str) -> ChunkResult:
        """Synthesize ``text`` and return audio plus character alignment.

        WHY: The offline generator needs the per-character time map to
        build the alignment artifact.

        HOW: POSTs to /text-to-speech/{voice_id}/with-timestamps, decodes the
        base64 audio, and parses the snake_case alignment.

        Raises:
            TTSAPIError: On non-2xx responses or an unparseable body.
        """
        client = self._ensure_client()
        resp = await client.post(
            f"/text-to-speech/{self._voice_id}/with-timestamps",
            params={"output_format": self._output_format},
            json=self._request_body(text),
        )
        if resp.status_code != 200:
            raise TTSAPIError(resp.status_code, resp.text)

        try:
            speech = TimestampedSpeech.from_dict(resp.json())
        except ValueError as exc:
            raise TTSAPIError(resp.status_code, str(exc)) from exc
        return ChunkResult.from_alignment(speech.audio, speech.alignment)

    async def synthesize(self, text: str) -> bytes:
        """Synthesize ``text`` and return the raw audio bytes.

        Raises:
            TTSAPIError: On non-2xx responses.
        """
        client = self._ensure_client()
        resp = await client.post(
            f"/text-to-speech/{self._voice_id}",
            params={"output_format": self._output_format},
            json=self._request_body(text),
        )
        if resp.status_code != 200:
            raise TTSAPIError(resp.status_code, resp.text)
        return resp.content
