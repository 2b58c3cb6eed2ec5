"""Configuration constants, fixed data tables, and .env loading.

WHY: Centralizes all configurable values so they are easy to find, update,
and override. The suppression allow-list, widget markers, and stage
directions are plain data structures, not buried in logic, so both humans
and coding agents can audit them at a glance.

HOW: python-dotenv loads the .env file on import. Constants are defined as
module-level tuples, dicts, and strings. The load_api_key() function
provides a clear error when the key is missing.

RULES:
- The presentational allow-list is FIXED; never generalize it
- Stage-direction anchors are literal sentences; edits upstream are expected
  to desynchronize them and that is accepted
- API key is loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Presentational-block suppression allow-list
# ---------------------------------------------------------------------------

SUPPRESSED_LITERALS: frozenset[str] = frozenset({"DK", "KOE", "DAN KOE"})
"""Exact trimmed block texts that are byline badge fragments, never narrated."""

SUPPRESSED_MARKERS: tuple[str, ...] = ("DKDAN",)
"""Substrings produced when the badge initials and name are run together."""

SUPPRESSED_INITIALS_PATTERN = r"^D[A-Z]*\s*K[A-Z]*$"
"""Short all-caps initials ("DK", "DAN KOE"). Anchored on both ends."""

# ---------------------------------------------------------------------------
# Widget markers
# ---------------------------------------------------------------------------

WIDGET_TAGS: dict[str, str] = {
    "avatar": "avatar",
}
"""Lowercased HTML/JSX tag name → widget kind of the placeholder block."""

# ---------------------------------------------------------------------------
# Stage directions for the expressive TTS text
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageDirection:
    """An inline TTS tag inserted next to a literal sentence anchor.

    RULES:
    - anchor must match the narration text verbatim (first occurrence)
    - position is "before" or "after"
    - tag is the bare name; it is rendered as "[tag]"
    """

    anchor: str
    tag: str
    position: str = "after"


DEFAULT_STAGE_DIRECTIONS: tuple[StageDirection, ...] = (
    StageDirection("How to fix your entire life in 1 day", "calm", "before"),
    StageDirection(
        "If you're anything like me, you think new years resolutions are stupid.",
        "sighs",
    ),
    StageDirection(
        "If you're one of these people, I'm not here to talk down on you. "
        "I've quit 10x more goals than I've achieved.",
        "chuckles",
    ),
    StageDirection("So whether you want to start the business", "thoughtful", "before"),
    StageDirection("Let's begin.", "serious", "before"),
)

# ---------------------------------------------------------------------------
# TTS vendor defaults
# ---------------------------------------------------------------------------

ELEVENLABS_BASE_URL = os.getenv("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io/v1")
ELEVENLABS_VOICE_ID = os.getenv("ELEVENLABS_VOICE_ID", "c6SfcYrb2t09NHXiT80T")
ELEVENLABS_MODEL_ID = os.getenv("ELEVENLABS_MODEL_ID", "eleven_v3")
ELEVENLABS_OUTPUT_FORMAT = os.getenv("ELEVENLABS_OUTPUT_FORMAT", "mp3_44100_128")

TTS_MAX_CHARS = int(os.getenv("TTS_MAX_CHARS", "4500"))
"""Chunk ceiling for synthesis requests (vendor limit is 5000)."""

# ---------------------------------------------------------------------------
# Synchronization and rendering defaults
# ---------------------------------------------------------------------------

SYNC_MIN_INTERVAL_S = int(os.getenv("SYNC_MIN_INTERVAL_MS", "50")) / 1000.0
"""Time updates arriving faster than this are discarded by the engine."""

SCROLL_WORD_THRESHOLD = int(os.getenv("SCROLL_WORD_THRESHOLD", "3"))
"""Minimum index movement before the highlighted word is scrolled into view."""

# ---------------------------------------------------------------------------
# Artifact locations (server defaults)
# ---------------------------------------------------------------------------

NARRATION_DOCUMENT_PATH = os.getenv("NARRATION_DOCUMENT_PATH", "public/letter-document.json")
NARRATION_ALIGNMENT_PATH = os.getenv("NARRATION_ALIGNMENT_PATH", "public/letter-alignment.json")
NARRATION_AUDIO_PATH = os.getenv("NARRATION_AUDIO_PATH", "public/letter-audio.mp3")


def load_api_key() -> str:
    """Load the ElevenLabs API key from the environment.

    WHY: The API key is required for every synthesis call. Loading it
    from the environment (via .env) keeps it out of source code.

    HOW: Reads ELEVENLABS_API_KEY from os.environ (populated by python-dotenv).

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("ELEVENLABS_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "ElevenLabs API key not configured. "
            "Add ELEVENLABS_API_KEY to the .env file in the app folder."
        )
    return key
