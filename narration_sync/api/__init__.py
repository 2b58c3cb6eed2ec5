"""ElevenLabs API client package: async HTTP interface to the TTS vendor.

WHY: Offline narration generation and the /tts server endpoint both need
to turn text into speech. This package encapsulates all vendor
communication behind one async client class.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. ElevenLabsClient exposes
one method per endpoint. Response data is parsed into typed dataclasses
defined in models.py.

RULES:
- All HTTP calls to the vendor go through ElevenLabsClient
- Authentication is via the xi-api-key header from config
"""

from narration_sync.api.client import ElevenLabsClient, TTSAPIError
from narration_sync.api.models import TimestampedSpeech

__all__ = ["ElevenLabsClient", "TTSAPIError", "TimestampedSpeech"]
