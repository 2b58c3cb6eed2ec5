"""ElevenLabs API request and response dataclasses.

WHY: The with-timestamps endpoint returns base64 audio next to a character
alignment in the vendor's snake_case shape. A typed dataclass keeps the
decoding in one place and hands the rest of the code plain bytes and a
CharacterAlignment.

HOW: from_dict() parses the raw response. The alignment is parsed with
CharacterAlignment.from_dict, which understands the snake_case keys.

RULES:
- audio_base64 is required; a response without it is an error
- alignment is None when the vendor omits it
- normalized_alignment is ignored: it describes the normalized text, not
  the characters we sent
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Optional

from narration_sync.core.ir import CharacterAlignment


@dataclass
class SynthesisRequest:
    """Body of a text-to-speech request.

    RULES:
    - model_id defaults to config.ELEVENLABS_MODEL_ID at the client
    - output_format is sent as a query parameter, not in the body
    """

    text: str
    model_id: str

    def to_dict(self) -> dict:
        return {"text": self.text, "model_id": self.model_id}


@dataclass
class TimestampedSpeech:
    """Decoded response of POST /text-to-speech/{voice_id}/with-timestamps."""

    audio: bytes
    alignment: Optional[CharacterAlignment] = None

    @classmethod
    def from_dict(cls, data: dict) -> TimestampedSpeech:
        """Parse a with-timestamps response.

        Raises:
            ValueError: If audio_base64 is missing or not valid base64, or
                        the alignment is malformed (AlignmentFormatError).
        """
        encoded = data.get("audio_base64")
        if not encoded:
            raise ValueError("Audio base64 data not found in response")
        try:
            audio = base64.b64decode(encoded, validate=True)
        except binascii.Error as exc:
            raise ValueError("Invalid audio_base64 in response: {}".format(exc)) from exc

        raw_alignment = data.get("alignment")
        alignment = (
            CharacterAlignment.from_dict(raw_alignment) if raw_alignment else None
        )
        return cls(audio=audio, alignment=alignment)
