"""Shared test fixtures for the narration_sync test suite.

WHY: Most test modules need the same small, hand-checkable inputs: the
"Hello world" alignment with known character timings, a sample MDX letter
with every block kind, and word segments with explicit times.

HOW: Plain helper functions build alignments and segments; pytest fixtures
wrap them. The sample document's alignment is generated from its own
expressive text, so both sides agree on word count by construction.

RULES:
- "Hello world" uses 0.1s per character: Hello [0.0, 0.5], world [0.6, 1.1]
- SAMPLE_MDX has 33 narrated words once presentational blocks are dropped
- Helpers never touch the network or the real TTS vendor
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Sequence, Tuple

import pytest

from narration_sync.core.ir import CharacterAlignment, TokenDocument, WordSegment
from narration_sync.core.tokenizer import build_document


SAMPLE_MDX = """import { Avatar } from "@/components/ui/avatar"

# How to fix your entire life in 1 day

<Avatar src="/avatar.png" />

DK

DAN KOE

If you're anything like me, you think new years resolutions are stupid.

> A quote (with an aside) here.

- First item
- Second item

Closing line.
"""

SAMPLE_WORD_COUNT = 33


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def alignment_for_text(text: str, step: float = 0.1, start: float = 0.0) -> CharacterAlignment:
    """Uniformly timed alignment: character i spans [start + i*step, start + (i+1)*step]."""
    return CharacterAlignment(
        characters=list(text),
        start_times=[round(start + i * step, 6) for i in range(len(text))],
        end_times=[round(start + (i + 1) * step, 6) for i in range(len(text))],
    )


def make_words(spans: Sequence[Tuple[str, float, float]]) -> List[WordSegment]:
    """Word segments from (text, start, end) tuples, with gap indices between them."""
    words = []
    char = 0
    for i, (text, start, end) in enumerate(spans):
        words.append(WordSegment(
            text=text,
            start_time=start,
            end_time=end,
            segment_index=i * 2,
            char_start=char,
            char_end=char + len(text) - 1,
        ))
        char += len(text) + 1
    return words


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def hello_world_alignment() -> CharacterAlignment:
    return alignment_for_text("Hello world")


@pytest.fixture
def hello_world_words() -> List[WordSegment]:
    return make_words([("Hello", 0.0, 0.5), ("world", 0.6, 1.1)])


@pytest.fixture
def gap_words() -> List[WordSegment]:
    """A[0,1], B[3,4]: a two-second pause between the words."""
    return make_words([("A", 0.0, 1.0), ("B", 3.0, 4.0)])


@pytest.fixture
def sample_document() -> TokenDocument:
    return build_document(SAMPLE_MDX)


@pytest.fixture
def sample_alignment(sample_document) -> CharacterAlignment:
    return alignment_for_text(sample_document.expressive_text, step=0.05)


@pytest.fixture
def artifact_dir(tmp_path, sample_document, sample_alignment) -> Path:
    """A directory holding letter-document.json and letter-alignment.json."""
    (tmp_path / "letter-document.json").write_text(
        json.dumps(sample_document.to_dict()), encoding="utf-8",
    )
    (tmp_path / "letter-alignment.json").write_text(
        json.dumps(sample_alignment.to_dict()), encoding="utf-8",
    )
    return tmp_path
