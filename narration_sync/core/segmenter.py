"""Alignment segmenter: character time map → word and gap segments.

WHY: The TTS engine reports timing per character, but highlighting works
per word. Stage-direction tags ("[sighs]") are spoken as delivery cues, not
words; they must neither appear in the transcript nor shift the word count.

HOW: A single left-to-right scan with a pending word-start cursor. The
nested _flush_word() closure emits the pending run as a WordSegment; every
whitespace character and every complete bracketed tag becomes a GapSegment.
Segment indices are handed out in emission order.

RULES:
- Whitespace → close pending word, emit one-character gap, advance cursor
- "[" with suppress_tags → if a "]" follows: close pending word, emit the
  whole "[...]" run as one gap; an unterminated "[" is an ordinary character
- End of input → close pending word
- Word times: start of first character, end of last character
- segment_index is dense, zero-based, strictly increasing across both kinds
- Whitespace is str.isspace(), the same definition the tokenizer splits on
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from narration_sync.core.ir import CharacterAlignment, GapSegment, Segment, WordSegment

SegmentComposer = Callable[[List[Segment]], List[Segment]]

_TAG_OPEN = "["
_TAG_CLOSE = "]"


def segment_alignment(
    characters: Sequence[str],
    start_times: Sequence[float],
    end_times: Sequence[float],
    suppress_tags: bool = True,
    composer: Optional[SegmentComposer] = None,
) -> List[Segment]:
    """Group aligned characters into word and gap segments.

    Args:
        characters: One entry per character of the synthesized text.
        start_times: Start time (seconds) of each character.
        end_times: End time (seconds) of each character.
        suppress_tags: Hide complete "[...]" runs as gaps.
        composer: Optional post-processing hook applied to the result.

    Returns:
        Segments in emission order. An empty or all-whitespace input yields
        no WordSegments.
    """
    segments: List[Segment] = []
    count = len(characters)
    word_start = 0
    next_index = 0

    def _flush_word(end: int) -> None:
        """Emit characters[word_start:end] as a word, if non-empty."""
        nonlocal next_index
        if word_start >= end:
            return
        segments.append(WordSegment(
            text="".join(characters[word_start:end]),
            start_time=start_times[word_start],
            end_time=end_times[end - 1],
            segment_index=next_index,
            char_start=word_start,
            char_end=end - 1,
        ))
        next_index += 1

    def _emit_gap(start: int, end: int) -> None:
        nonlocal next_index
        segments.append(GapSegment(
            text="".join(characters[start:end + 1]),
            segment_index=next_index,
            char_start=start,
            char_end=end,
        ))
        next_index += 1

    i = 0
    while i < count:
        char = characters[i]

        if suppress_tags and char == _TAG_OPEN:
            close = _find_tag_close(characters, i + 1)
            if close is not None:
                _flush_word(i)
                _emit_gap(i, close)
                i = close + 1
                word_start = i
                continue

        if char.isspace():
            _flush_word(i)
            _emit_gap(i, i)
            word_start = i + 1

        i += 1

    _flush_word(count)

    return composer(segments) if composer else segments


def _find_tag_close(characters: Sequence[str], start: int) -> Optional[int]:
    """Index of the first "]" at or after ``start``, or None."""
    for j in range(start, len(characters)):
        if characters[j] == _TAG_CLOSE:
            return j
    return None


def segment(
    alignment: CharacterAlignment,
    suppress_tags: bool = True,
    composer: Optional[SegmentComposer] = None,
) -> List[Segment]:
    """Segment a parsed CharacterAlignment (see segment_alignment)."""
    return segment_alignment(
        alignment.characters,
        alignment.start_times,
        alignment.end_times,
        suppress_tags=suppress_tags,
        composer=composer,
    )


def word_segments(segments: Sequence[Segment]) -> List[WordSegment]:
    """Filter to word segments; list position is the global word index."""
    return [s for s in segments if isinstance(s, WordSegment)]
