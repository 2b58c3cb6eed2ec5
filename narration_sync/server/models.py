"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: Each endpoint has its own model. All models include Field
descriptions for rich OpenAPI docs.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- state values match narration_sync.core.sync.SyncState exactly
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TTSRequest(BaseModel):
    """Body of POST /tts.

    RULES:
    - text is required to be non-empty (checked in the handler, 400)
    """

    text: str = Field(default="", description="Text to synthesize.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class HighlightResponse(BaseModel):
    """Resolved word for one playback time.

    WHY: Thin clients (a plain <audio> element plus a few lines of script)
    can ask the server which word to highlight instead of shipping the
    resolution rules themselves.

    RULES:
    - word_index is -1 when no word is current
    - word is null when word_index is -1
    """

    state: str = Field(description="Sync state: no_alignment, idle, tracking, or scrubbing.")
    time: float = Field(description="Playback time the word was resolved for, in seconds.")
    word_index: int = Field(description="Global word index, or -1 when no word is current.")
    word: Optional[str] = Field(default=None, description="Display text of the current word token.")
    word_count: int = Field(description="Number of words in the loaded document.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "state": "tracking",
                "time": 0.55,
                "word_index": 0,
                "word": "Hello",
                "word_count": 2,
            }
        ]
    }}


class FormatInfo(BaseModel):
    """Description of an available output format."""

    key: str = Field(description="Format identifier used in CLI flags.")
    name: str = Field(description="Human-readable format name.")
    suffix: str = Field(description="File suffix produced (e.g. '-document.json').")


class ErrorResponse(BaseModel):
    """Standard error response body.

    WHY: All error responses use the same schema for consistent
    client-side error handling.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    synchronized: bool = Field(
        default=False,
        description="True when a document and a matching alignment are loaded.",
    )
