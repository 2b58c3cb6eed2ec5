"""Rendering helpers: global word index → token position, style, scroll.

WHY: Renderers never recount words themselves. Every view asks the same
three questions: where is word N in the block tree, how should word N look
right now, and has the highlight moved far enough to scroll.

HOW: locate_word() walks the document once using block_offsets(); word_style()
is a pure decision table; ScrollTracker remembers the last index it scrolled
to and throttles by word distance.

RULES:
- Current word → highlighted
- Words after the current one → dimmed, only while playing and current >= 0
- Everything else (including all words when nothing is current) → neutral
- Scrolling happens only when the index moved >= threshold words
"""

from __future__ import annotations

import bisect
import enum
from dataclasses import dataclass
from html import escape
from typing import List, Optional, Sequence

from narration_sync.config import SCROLL_WORD_THRESHOLD
from narration_sync.core.ir import HEADING, LIST, QUOTE, WIDGET, Block, Token, TokenDocument


@dataclass(frozen=True)
class TokenLocation:
    """Position of one word token inside a TokenDocument.

    RULES:
    - block_index: index into document.blocks
    - item_index: list item index for list blocks, else None
    - token_index: index into the token run (block.tokens or the item)
    """

    word_index: int
    block_index: int
    item_index: Optional[int]
    token_index: int
    token: Token


def locate_word(document: TokenDocument, index: int) -> Optional[TokenLocation]:
    """Find the token for global word ``index``, or None if out of range."""
    if index < 0 or index >= document.word_count:
        return None

    offsets = document.block_offsets()
    # Rightmost block whose first word is <= index; widgets share the offset
    # of the next block, so skip forward past zero-word blocks.
    block_index = bisect.bisect_right(offsets, index) - 1
    while document.blocks[block_index].word_count == 0:
        block_index += 1
    block = document.blocks[block_index]

    remaining = index - offsets[block_index]
    runs = block.token_runs()
    for run_index, run in enumerate(runs):
        for token_index, token in enumerate(run):
            if not token.is_word:
                continue
            if remaining == 0:
                return TokenLocation(
                    word_index=index,
                    block_index=block_index,
                    item_index=run_index if block.kind == LIST else None,
                    token_index=token_index,
                    token=token,
                )
            remaining -= 1
    return None


class WordStyle(str, enum.Enum):
    HIGHLIGHTED = "highlighted"
    DIMMED = "dimmed"
    NEUTRAL = "neutral"


def word_style(word_index: int, current_index: int, is_playing: bool) -> WordStyle:
    """Decide how one word renders for the given sync state."""
    if current_index >= 0 and word_index == current_index:
        return WordStyle.HIGHLIGHTED
    if is_playing and current_index >= 0 and word_index > current_index:
        return WordStyle.DIMMED
    return WordStyle.NEUTRAL


class ScrollTracker:
    """Decides when the highlighted word should be scrolled into view.

    WHY: Scrolling on every word makes the page jitter; scrolling only when
    the highlight has moved a few words keeps the text readable.
    """

    def __init__(self, threshold: int = SCROLL_WORD_THRESHOLD) -> None:
        self.threshold = threshold
        self.last_index = -1

    def should_scroll(self, index: int) -> bool:
        """True (and remember ``index``) if it moved >= threshold words."""
        if index < 0:
            return False
        if abs(index - self.last_index) < self.threshold:
            return False
        self.last_index = index
        return True

    def reset(self) -> None:
        self.last_index = -1


# ---------------------------------------------------------------------------
# HTML rendering
# ---------------------------------------------------------------------------

_STYLE_CLASSES = {
    WordStyle.HIGHLIGHTED: "word word-current",
    WordStyle.DIMMED: "word word-unspoken",
    WordStyle.NEUTRAL: "word",
}


def _render_run(
    tokens: Sequence[Token],
    start_index: int,
    current_index: int,
    is_playing: bool,
    synchronized: bool,
) -> str:
    """Render one token run; words become indexed spans when synchronized."""
    if not synchronized:
        return escape("".join(t.text for t in tokens))
    parts: List[str] = []
    index = start_index
    for token in tokens:
        if token.is_word:
            style = word_style(index, current_index, is_playing)
            parts.append('<span class="{}" data-word-index="{}">{}</span>'.format(
                _STYLE_CLASSES[style], index, escape(token.text),
            ))
            index += 1
        else:
            parts.append(escape(token.text))
    return "".join(parts)


def _render_block(
    block: Block,
    start_index: int,
    current_index: int,
    is_playing: bool,
    synchronized: bool,
) -> str:
    if block.kind == WIDGET:
        return '<div class="widget" data-widget="{}"></div>'.format(escape(block.widget or ""))

    if block.kind == LIST:
        tag = "ol" if block.ordered else "ul"
        items: List[str] = []
        index = start_index
        for item in block.items:
            items.append("<li>{}</li>".format(
                _render_run(item, index, current_index, is_playing, synchronized)
            ))
            index += sum(1 for t in item if t.is_word)
        return "<{tag}>{items}</{tag}>".format(tag=tag, items="".join(items))

    if block.kind == HEADING:
        tag = "h{}".format(block.level or 1)
    elif block.kind == QUOTE:
        tag = "blockquote"
    else:
        tag = "p"
    inner = _render_run(block.tokens, start_index, current_index, is_playing, synchronized)
    return "<{tag}>{inner}</{tag}>".format(tag=tag, inner=inner)


def render_html(
    document: TokenDocument,
    current_index: int = -1,
    is_playing: bool = False,
    synchronized: bool = True,
) -> str:
    """Render the document as an HTML fragment, one element per block.

    RULES:
    - synchronized=False → static text, no word spans (NO_ALIGNMENT view)
    - synchronized=True → each word is <span data-word-index="N"> with a
      class from word_style(); whitespace tokens are emitted verbatim
    - Widgets render as an empty placeholder <div data-widget="...">
    """
    rendered = [
        _render_block(block, offset, current_index, is_playing, synchronized)
        for block, offset in zip(document.blocks, document.block_offsets())
    ]
    return "\n".join(rendered)
