"""Intermediate representation dataclasses for documents and alignments.

WHY: Two independently produced sequences must agree on word identity:
the token document (what is shown) and the alignment segments (what is
spoken). Both sides need a single, well-typed form so the sync engine and
every renderer can consume them without re-parsing artifacts.

HOW: Dataclasses form two small hierarchies:
  Token / Block / TokenDocument       — the display side (artifact 1)
  CharacterAlignment                  — the raw TTS time map (artifact 2)
  WordSegment / GapSegment            — the spoken side, built from artifact 2

RULES:
- Token.kind is "word" or "space"; joining a block's token texts reproduces
  its source text exactly
- Block.kind is "heading", "paragraph", "quote", "list", or "widget"
- Widgets carry no tokens and never count toward the word index
- All times are float seconds; char_end on segments is inclusive
- to_dict/from_dict round-trip is the artifact contract; change with care
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Union

WORD = "word"
SPACE = "space"

HEADING = "heading"
PARAGRAPH = "paragraph"
QUOTE = "quote"
LIST = "list"
WIDGET = "widget"

BLOCK_KINDS = frozenset({HEADING, PARAGRAPH, QUOTE, LIST, WIDGET})


class AlignmentFormatError(ValueError):
    """Raised when an alignment payload is structurally invalid.

    RULES:
    - The three arrays must be present and of equal length
    """


@dataclass
class Token:
    """A single word or whitespace run inside a block.

    RULES:
    - kind: "word" (non-whitespace run) or "space" (whitespace run)
    - text: the exact source characters, never normalized
    """

    kind: str
    text: str

    @property
    def is_word(self) -> bool:
        return self.kind == WORD

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> Token:
        kind = data["type"]
        if kind not in (WORD, SPACE):
            raise ValueError("Unknown token type: {!r}".format(kind))
        return cls(kind=kind, text=data["text"])


@dataclass
class Block:
    """One semantic block of the document, in document order.

    WHY: The renderer needs to know what each run of tokens is (heading,
    quote, list item) while the sync engine only cares about word order.
    A single discriminated dataclass serves both.

    HOW: ``kind`` selects which fields are meaningful:
      heading   — level, tokens
      paragraph — tokens
      quote     — tokens
      list      — ordered, items (one token sequence per item)
      widget    — widget (placeholder kind, e.g. "avatar")

    RULES:
    - Widgets have no tokens and a word_count of 0
    - For lists, word order is item order, then token order
    """

    kind: str
    tokens: List[Token] = field(default_factory=list)
    level: Optional[int] = None
    ordered: bool = False
    items: List[List[Token]] = field(default_factory=list)
    widget: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in BLOCK_KINDS:
            raise ValueError("Unknown block kind: {!r}".format(self.kind))

    @property
    def is_widget(self) -> bool:
        return self.kind == WIDGET

    def token_runs(self) -> List[List[Token]]:
        """Token sequences in reading order (one per list item, else one)."""
        if self.kind == LIST:
            return self.items
        if self.kind == WIDGET:
            return []
        return [self.tokens]

    def texts(self) -> List[str]:
        """Source text of each narrated unit in this block."""
        return ["".join(t.text for t in run) for run in self.token_runs()]

    @property
    def text(self) -> str:
        return "\n".join(self.texts())

    def words(self) -> Iterator[Token]:
        for run in self.token_runs():
            for token in run:
                if token.is_word:
                    yield token

    @property
    def word_count(self) -> int:
        return sum(1 for _ in self.words())

    def to_dict(self) -> dict[str, Any]:
        if self.kind == HEADING:
            return {
                "type": HEADING,
                "level": self.level,
                "tokens": [t.to_dict() for t in self.tokens],
            }
        if self.kind == LIST:
            return {
                "type": LIST,
                "ordered": self.ordered,
                "items": [[t.to_dict() for t in item] for item in self.items],
            }
        if self.kind == WIDGET:
            return {"type": WIDGET, "widget": self.widget}
        return {"type": self.kind, "tokens": [t.to_dict() for t in self.tokens]}

    @classmethod
    def from_dict(cls, data: dict) -> Block:
        kind = data["type"]
        if kind == LIST:
            return cls(
                kind=LIST,
                ordered=bool(data.get("ordered", False)),
                items=[[Token.from_dict(t) for t in item] for item in data["items"]],
            )
        if kind == WIDGET:
            return cls(kind=WIDGET, widget=data["widget"])
        return cls(
            kind=kind,
            level=data.get("level") if kind == HEADING else None,
            tokens=[Token.from_dict(t) for t in data["tokens"]],
        )


@dataclass
class TokenDocument:
    """The complete display-side artifact: blocks plus derived narration text.

    WHY: The renderer, the sync session, and the offline TTS step all read
    the same artifact. Keeping the plain and expressive scripts next to the
    blocks guarantees they were derived from the same filtered block list.

    RULES:
    - blocks: document order, already filtered for presentational fragments
    - plain_text: the narrated script (display words, blank-line separated)
    - expressive_text: the TTS input (unwrapped parentheticals + tags)
    """

    blocks: List[Block]
    plain_text: str = ""
    expressive_text: str = ""

    def words(self) -> List[Token]:
        """The canonical global word sequence (index 0 = first word)."""
        return [word for block in self.blocks for word in block.words()]

    @property
    def word_count(self) -> int:
        return sum(block.word_count for block in self.blocks)

    def block_offsets(self) -> List[int]:
        """Global word index of each block's first word.

        Widgets get the offset of the next word without consuming one.
        """
        offsets: List[int] = []
        index = 0
        for block in self.blocks:
            offsets.append(index)
            index += block.word_count
        return offsets

    def to_dict(self) -> dict[str, Any]:
        return {
            "blocks": [b.to_dict() for b in self.blocks],
            "plainText": self.plain_text,
            "expressiveText": self.expressive_text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TokenDocument:
        return cls(
            blocks=[Block.from_dict(b) for b in data["blocks"]],
            plain_text=data.get("plainText", ""),
            expressive_text=data.get("expressiveText", ""),
        )


@dataclass
class CharacterAlignment:
    """Character-level time map returned by the TTS engine (artifact 2).

    WHY: The vendor reports one start and end time per input character.
    This is the raw material for the segmenter and for chunk merging.

    HOW: Three parallel lists. ``from_dict`` accepts both the camelCase
    artifact keys and the vendor's snake_case response keys.

    RULES:
    - characters, start_times, end_times have equal length
    - times are float seconds, non-negative
    """

    characters: List[str]
    start_times: List[float]
    end_times: List[float]

    def __post_init__(self) -> None:
        if not (len(self.characters) == len(self.start_times) == len(self.end_times)):
            raise AlignmentFormatError(
                "Alignment arrays differ in length: {} characters, {} start "
                "times, {} end times".format(
                    len(self.characters), len(self.start_times), len(self.end_times)
                )
            )

    def __len__(self) -> int:
        return len(self.characters)

    @property
    def duration_s(self) -> float:
        """End time of the last character (0.0 when empty)."""
        return self.end_times[-1] if self.end_times else 0.0

    @property
    def text(self) -> str:
        return "".join(self.characters)

    def shifted(self, offset_s: float) -> CharacterAlignment:
        """Return a copy with every time shifted by ``offset_s``."""
        return CharacterAlignment(
            characters=list(self.characters),
            start_times=[t + offset_s for t in self.start_times],
            end_times=[t + offset_s for t in self.end_times],
        )

    def to_dict(self) -> dict[str, list]:
        return {
            "characters": list(self.characters),
            "characterStartTimesSeconds": list(self.start_times),
            "characterEndTimesSeconds": list(self.end_times),
        }

    @classmethod
    def from_dict(cls, data: dict) -> CharacterAlignment:
        """Parse either the artifact (camelCase) or vendor (snake_case) shape."""
        try:
            characters = data["characters"]
            starts = data.get("characterStartTimesSeconds")
            if starts is None:
                starts = data["character_start_times_seconds"]
            ends = data.get("characterEndTimesSeconds")
            if ends is None:
                ends = data["character_end_times_seconds"]
        except (KeyError, TypeError) as exc:
            raise AlignmentFormatError("Alignment payload is missing {}".format(exc)) from exc

        return cls(
            characters=list(characters),
            start_times=[float(t) for t in starts],
            end_times=[float(t) for t in ends],
        )


@dataclass
class WordSegment:
    """A spoken word span of the alignment character stream.

    RULES:
    - text: contiguous non-whitespace characters (tags excluded when suppressed)
    - start_time: start of the first character; end_time: end of the last
    - segment_index: position among ALL segments (words and gaps)
    - char_start / char_end: inclusive character indices
    """

    text: str
    start_time: float
    end_time: float
    segment_index: int
    char_start: int
    char_end: int

    kind = WORD


@dataclass
class GapSegment:
    """A silent span: one whitespace character or one suppressed [tag]."""

    text: str
    segment_index: int
    char_start: int
    char_end: int

    kind = "gap"


Segment = Union[WordSegment, GapSegment]
