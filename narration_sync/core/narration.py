"""Narration-text builder: plain script and expressive TTS input.

WHY: The TTS engine needs a single script whose words line up with the
display tokens. The expressive variant additionally works around engine
quirks: parenthetical text is silently skipped, so "(x)" is rewritten as
", x,", and a few stage directions ("[sighs]") make the delivery less flat.

HOW: build_plain_text() joins the narrated units of the filtered block list.
unwrap_parentheticals() applies an ordered list of regex rewrites.
insert_stage_directions() places "[tag]" next to literal sentence anchors.

RULES:
- Plain text units: heading / paragraph / quote text, or one list item
- Units are joined with a blank line and the result is trimmed
- Anchors match verbatim (first occurrence); a miss is skipped silently
- Stage tags are bracketed so the segmenter can hide them as gaps
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence

from narration_sync.config import DEFAULT_STAGE_DIRECTIONS, StageDirection
from narration_sync.core.ir import Block

logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"

# Ordered rewrites turning "(x)" into ", x," and tidying the comma runs the
# rewrite leaves behind. Whitespace is only ever reused, never added or
# removed between words, and no word is emptied, so the word count holds.
# Order matters: later rules assume earlier ones ran.
_PARENTHETICAL_RULES = [
    (re.compile(r"(?<!\S)\((?!\S)"), ","),
    (re.compile(r"(?<=\S)([ \t]+)\((?=\S)"), r",\1"),
    (re.compile(r"\("), ""),
    (re.compile(r"\)"), ","),
    (re.compile(r",{2,}"), ","),
    (re.compile(r"([.!?;:]),([.!?;:])"), r"\1"),
    (re.compile(r"([.!?;:]),"), r"\1"),
    (re.compile(r",([.!?;:])"), r"\1"),
    (re.compile(r"(?<=\S),([\"'”’])"), r"\1"),
    (re.compile(r"(?<=\S),(?=[ \t]*(?:\n|$))"), ""),
    (re.compile(r"[ \t]+(?=\n|$)"), ""),
    (re.compile(r"[ \t]{2,}"), " "),
]


def build_plain_text(blocks: Sequence[Block]) -> str:
    """Join every narrated unit of the block list into the plain script."""
    parts: List[str] = []
    for block in blocks:
        for text in block.texts():
            if text.strip():
                parts.append(text)
    return PARAGRAPH_SEPARATOR.join(parts).strip()


def unwrap_parentheticals(text: str) -> str:
    """Rewrite parenthetical text as comma-delimited clauses.

    WHY: The target TTS engine silently skips text inside parentheses.
    Converting "(x)" to ", x," forces it to be spoken.

    HOW: The space before "(" becomes ", ", a "(" with no word before it is
    dropped, and ")" becomes ",". The comma artefacts are then collapsed:
    repeated commas, a comma touching terminal punctuation or a closing
    quote, and a comma dangling at the end of a line.

    RULES:
    - "Hello (world) there." → "Hello, world, there."
    - "(Aside.) Next" → "Aside. Next"
    - 'He said "go (now)" loudly.' → 'He said "go, now" loudly.'
    - The whitespace-separated word count never changes; the alignment is
      matched against the display tokens word for word
    """
    for pattern, replacement in _PARENTHETICAL_RULES:
        text = pattern.sub(replacement, text)
    return text


def insert_stage_directions(
    text: str,
    directions: Sequence[StageDirection],
) -> str:
    """Insert "[tag]" before or after each literal anchor sentence.

    RULES:
    - Only the first verbatim occurrence of an anchor is tagged
    - A missing anchor is skipped without error (logged at DEBUG)
    - position "before" → "[tag] anchor", "after" → "anchor [tag]"
    """
    for direction in directions:
        index = text.find(direction.anchor)
        if index < 0:
            logger.debug("Stage direction anchor not found: %r", direction.anchor)
            continue
        tag = "[{}]".format(direction.tag)
        if direction.position == "before":
            text = text[:index] + tag + " " + text[index:]
        else:
            end = index + len(direction.anchor)
            text = text[:end] + " " + tag + text[end:]
    return text


def build_expressive_text(
    plain_text: str,
    directions: Optional[Sequence[StageDirection]] = None,
) -> str:
    """Build the TTS input from the plain script.

    Args:
        plain_text: Output of build_plain_text().
        directions: Stage directions to apply after unwrapping. None selects
                    DEFAULT_STAGE_DIRECTIONS; pass () to apply none.
    """
    if directions is None:
        directions = DEFAULT_STAGE_DIRECTIONS
    return insert_stage_directions(unwrap_parentheticals(plain_text), directions)


def load_stage_directions(path: str | Path) -> List[StageDirection]:
    """Load stage directions from a JSON list of {anchor, tag, position} objects.

    Raises:
        ValueError: If an entry lacks anchor/tag or has an unknown position.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    directions: List[StageDirection] = []
    for entry in data:
        try:
            direction = StageDirection(
                anchor=entry["anchor"],
                tag=entry["tag"],
                position=entry.get("position", "after"),
            )
        except KeyError as exc:
            raise ValueError("Stage direction is missing {}".format(exc)) from exc
        if direction.position not in ("before", "after"):
            raise ValueError(
                "Stage direction position must be 'before' or 'after', "
                "got {!r}".format(direction.position)
            )
        directions.append(direction)
    return directions
