"""Offline narration generation: chunking, per-chunk synthesis, merging.

WHY: The TTS vendor caps each request (5000 characters for eleven_v3), but
a long document must become ONE audio file with ONE alignment whose times
run continuously from zero. Each chunk's alignment restarts at 0, so the
chunks have to be re-based onto a shared timeline.

HOW: split_text_into_chunks() packs paragraphs greedily, falling back to
sentences, then to hard cuts. generate_narration() synthesizes each chunk
in order and merge_chunks() concatenates audio and shifts every chunk's
times by the summed durations of the chunks before it.

RULES:
- No chunk exceeds max_chars; chunks are stripped, empty ones dropped
- Chunk duration = end time of its last character (0 without alignment)
- Chunk N offset = sum of durations of chunks 0..N-1, applied exactly
- Chunks are joined in the merged alignment by one separator character so
  the last word of a chunk never fuses with the first word of the next
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence

from narration_sync.config import TTS_MAX_CHARS
from narration_sync.core.ir import CharacterAlignment

if TYPE_CHECKING:
    from narration_sync.api.client import ElevenLabsClient

logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"
CHUNK_SEPARATOR = "\n"

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_TAG_RE = re.compile(r"\[[^\]]+\]")


def _hard_cut(text: str, max_chars: int) -> List[str]:
    return [text[i:i + max_chars] for i in range(0, len(text), max_chars)]


def split_text_into_chunks(text: str, max_chars: int = TTS_MAX_CHARS) -> List[str]:
    """Split narration text into request-sized chunks.

    HOW: Paragraphs ("\\n\\n") are packed greedily. A paragraph that does
    not fit on its own is split into sentences, which are packed with a
    single space. A sentence longer than max_chars is cut into max_chars
    slices.

    Raises:
        ValueError: If max_chars is not positive.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive, got {}".format(max_chars))

    chunks: List[str] = []
    current = ""

    def _flush() -> None:
        nonlocal current
        stripped = current.strip()
        if stripped:
            chunks.append(stripped)
        current = ""

    for paragraph in text.split(PARAGRAPH_SEPARATOR):
        if len(current) + len(paragraph) + len(PARAGRAPH_SEPARATOR) <= max_chars:
            current = current + PARAGRAPH_SEPARATOR + paragraph if current else paragraph
            continue

        _flush()
        if len(paragraph) <= max_chars:
            current = paragraph
            continue

        for sentence in _SENTENCE_SPLIT_RE.split(paragraph):
            if len(sentence) > max_chars:
                _flush()
                pieces = _hard_cut(sentence, max_chars)
                for piece in pieces[:-1]:
                    current = piece
                    _flush()
                current = pieces[-1]
            elif current and len(current) + len(sentence) + 1 > max_chars:
                _flush()
                current = sentence
            else:
                current = current + " " + sentence if current else sentence

    _flush()
    return chunks


def count_tags(text: str) -> int:
    """Number of bracketed stage-direction tags in ``text``."""
    return len(_TAG_RE.findall(text))


@dataclass
class ChunkResult:
    """Audio and alignment for one synthesized chunk.

    RULES:
    - duration_s is the end time of the chunk's last character
    - alignment may be None when the vendor omitted it
    """

    audio: bytes
    alignment: Optional[CharacterAlignment] = None
    duration_s: float = 0.0

    @classmethod
    def from_alignment(
        cls,
        audio: bytes,
        alignment: Optional[CharacterAlignment],
    ) -> ChunkResult:
        duration = alignment.duration_s if alignment is not None else 0.0
        return cls(audio=audio, alignment=alignment, duration_s=duration)


@dataclass
class MergedNarration:
    """The concatenated audio plus one continuous alignment."""

    audio: bytes
    alignment: CharacterAlignment
    duration_s: float
    chunk_offsets: List[float] = field(default_factory=list)


def merge_chunks(
    results: Sequence[ChunkResult],
    separator: str = CHUNK_SEPARATOR,
) -> MergedNarration:
    """Concatenate chunk audio and re-base each chunk's alignment.

    Args:
        results: Chunk results in playback order.
        separator: Character inserted between chunk alignments, timed at
                   the boundary. Pass "" to concatenate verbatim.
    """
    characters: List[str] = []
    starts: List[float] = []
    ends: List[float] = []
    offsets: List[float] = []
    offset = 0.0

    for result in results:
        offsets.append(offset)
        if result.alignment is not None and len(result.alignment):
            if characters and separator:
                characters.append(separator)
                starts.append(offset)
                ends.append(offset)
            shifted = result.alignment.shifted(offset)
            characters.extend(shifted.characters)
            starts.extend(shifted.start_times)
            ends.extend(shifted.end_times)
        offset += result.duration_s

    return MergedNarration(
        audio=b"".join(r.audio for r in results),
        alignment=CharacterAlignment(characters=characters, start_times=starts, end_times=ends),
        duration_s=offset,
        chunk_offsets=offsets,
    )


async def generate_narration(
    client: ElevenLabsClient,
    text: str,
    max_chars: int = TTS_MAX_CHARS,
    on_status: Callable[[str], None] | None = None,
) -> MergedNarration:
    """Synthesize ``text`` chunk by chunk and merge the results.

    Args:
        client: An entered ElevenLabsClient.
        text: Expressive narration text.
        max_chars: Per-request character ceiling.
        on_status: Optional callback for progress lines.

    Raises:
        TTSAPIError: Propagated from the client on any vendor failure.
    """
    chunks = split_text_into_chunks(text, max_chars)
    if on_status:
        on_status("Split text into {} chunks ({} characters, {} tags)".format(
            len(chunks), len(text), count_tags(text),
        ))

    results: List[ChunkResult] = []
    for number, chunk in enumerate(chunks, start=1):
        if on_status:
            on_status("Generating chunk {}/{} ({} chars, {} tags)...".format(
                number, len(chunks), len(chunk), count_tags(chunk),
            ))
        result = await client.synthesize_with_timestamps(chunk)
        if result.alignment is None:
            logger.warning("Chunk %d returned no alignment", number)
        if on_status:
            on_status("  Done ({:.0f} KB, {:.2f}s)".format(
                len(result.audio) / 1024, result.duration_s,
            ))
        results.append(result)

    merged = merge_chunks(results)
    logger.info(
        "Merged %d chunks: %d characters, %.2fs",
        len(results), len(merged.alignment), merged.duration_s,
    )
    return merged
