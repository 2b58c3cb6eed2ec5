"""Tests for the FastAPI narration API.

WHY: Thin clients rely on the API for the artifacts and for word
resolution; the /tts proxy must map vendor failures to stable status
codes without leaking the API key.

HOW: Each test builds a fresh app with create_app() pointed at artifacts
in a temp directory and drives it through the FastAPI TestClient. The
client is used as a context manager so the lifespan (artifact loading)
runs. The TTS vendor is replaced with an httpx.MockTransport.

RULES:
- The real TTS vendor is never called
- Each test gets its own app instance; no shared state between tests
"""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from narration_sync import __version__
from narration_sync.api.client import ElevenLabsClient
from narration_sync.core.session import NarrationSession
from narration_sync.server.app import create_app

from conftest import SAMPLE_WORD_COUNT


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _tts_factory(handler):
    """Client factory whose clients talk to a mock transport."""

    def factory():
        return ElevenLabsClient(
            api_key="test-key",
            base_url="https://tts.example.com/v1",
            transport=httpx.MockTransport(handler),
        )

    return factory


@pytest.fixture
def make_client(artifact_dir):
    """Build a TestClient for an app over artifact_dir; kwargs override paths."""

    def _make(**kwargs):
        params = {
            "document_path": artifact_dir / "letter-document.json",
            "alignment_path": artifact_dir / "letter-alignment.json",
            "audio_path": artifact_dir / "letter-audio.mp3",
        }
        params.update(kwargs)
        return TestClient(create_app(**params))

    return _make


@pytest.fixture
def client(make_client):
    with make_client() as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


class TestArtifacts:
    """Tests for GET /document, /alignment, /audio."""

    def test_document(self, client, sample_document):
        resp = client.get("/document")
        assert resp.status_code == 200
        assert resp.json() == sample_document.to_dict()

    def test_alignment(self, client, sample_alignment):
        resp = client.get("/alignment")
        assert resp.status_code == 200
        assert resp.json()["characters"] == sample_alignment.characters

    def test_audio(self, client, artifact_dir):
        (artifact_dir / "letter-audio.mp3").write_bytes(b"\xff\xfbfake")
        resp = client.get("/audio")
        assert resp.status_code == 200
        assert resp.content == b"\xff\xfbfake"
        assert resp.headers["content-type"] == "audio/mpeg"

    def test_audio_missing(self, client):
        resp = client.get("/audio")
        assert resp.status_code == 404
        assert "letter-audio.mp3" in resp.json()["detail"]

    def test_document_missing(self, make_client, tmp_path):
        """A missing document still starts the server."""
        with make_client(document_path=tmp_path / "nope.json") as test_client:
            assert test_client.get("/document").status_code == 404
            assert test_client.get("/highlight", params={"time": 1.0}).status_code == 404
            assert test_client.get("/health").json()["synchronized"] is False

    def test_alignment_missing(self, make_client, tmp_path):
        with make_client(alignment_path=tmp_path / "nope.json") as test_client:
            assert test_client.get("/alignment").status_code == 404
            body = test_client.get("/highlight", params={"time": 1.0}).json()
            assert body["state"] == "no_alignment"
            assert body["word_index"] == -1


# ---------------------------------------------------------------------------
# Highlight
# ---------------------------------------------------------------------------


class TestHighlight:
    """Tests for GET /highlight."""

    def test_tracking(self, client):
        body = client.get("/highlight", params={"time": 0.36}).json()
        assert body == {
            "state": "tracking",
            "time": 0.36,
            "word_index": 0,
            "word": "How",
            "word_count": SAMPLE_WORD_COUNT,
        }

    def test_before_first_word(self, client):
        body = client.get("/highlight", params={"time": 0.1}).json()
        assert body["state"] == "idle"
        assert body["word_index"] == -1
        assert body["word"] is None

    def test_past_end_pins_last_word(self, client):
        body = client.get("/highlight", params={"time": 1000}).json()
        assert body["word_index"] == SAMPLE_WORD_COUNT - 1
        assert body["word"] == "line."

    def test_reports_display_token(self, client, sample_document, sample_alignment):
        spoken = NarrationSession(sample_document, sample_alignment).words[23]
        assert spoken.text == "with"
        body = client.get("/highlight", params={"time": spoken.start_time + 0.01}).json()
        assert body["word_index"] == 23
        assert body["word"] == "(with"

    def test_scrubbing(self, client):
        body = client.get("/highlight", params={"time": 0.36, "scrubbing": True}).json()
        assert body["state"] == "scrubbing"
        assert body["word_index"] == -1

    def test_time_required(self, client):
        assert client.get("/highlight").status_code == 422


# ---------------------------------------------------------------------------
# TTS
# ---------------------------------------------------------------------------


class TestTTS:
    """Tests for POST /tts."""

    def test_success(self, make_client):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"audio-bytes")

        with make_client(tts_client_factory=_tts_factory(handler)) as test_client:
            resp = test_client.post("/tts", json={"text": "Hello there"})

        assert resp.status_code == 200
        assert resp.content == b"audio-bytes"
        assert resp.headers["content-type"] == "audio/mpeg"
        assert seen[0].headers["xi-api-key"] == "test-key"

    def test_empty_text(self, client):
        resp = client.post("/tts", json={"text": "   "})
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Text is required"}

    def test_missing_text(self, client):
        assert client.post("/tts", json={}).status_code == 400

    def test_missing_api_key(self, make_client):
        def factory():
            raise ValueError("ElevenLabs API key not configured.")

        with make_client(tts_client_factory=factory) as test_client:
            resp = test_client.post("/tts", json={"text": "Hi"})
        assert resp.status_code == 500
        assert "API key" in resp.json()["detail"]

    def test_vendor_error(self, make_client):
        def handler(request):
            return httpx.Response(401, text="invalid api key")

        with make_client(tts_client_factory=_tts_factory(handler)) as test_client:
            resp = test_client.post("/tts", json={"text": "Hi"})
        assert resp.status_code == 502
        assert resp.json()["detail"].startswith("Failed to generate audio")


# ---------------------------------------------------------------------------
# Formats, health, OpenAPI
# ---------------------------------------------------------------------------


class TestFormatsAndHealth:

    def test_formats(self, client):
        formats = client.get("/formats").json()
        assert [f["key"] for f in formats] == [
            "expressive_text", "html_transcript", "plain_text", "token_document",
        ]
        suffixes = {f["key"]: f["suffix"] for f in formats}
        assert suffixes["token_document"] == "-document.json"
        assert suffixes["html_transcript"] == "-transcript.html"

    def test_health(self, client):
        assert client.get("/health").json() == {
            "status": "ok",
            "version": __version__,
            "synchronized": True,
        }

    def test_openapi_lists_endpoints(self, client):
        paths = client.get("/openapi.json").json()["paths"]
        for path in ("/document", "/alignment", "/audio", "/highlight", "/tts", "/formats", "/health"):
            assert path in paths
