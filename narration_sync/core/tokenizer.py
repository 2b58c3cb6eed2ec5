"""Document tokenizer: Markdown/MDX source → blocks of word/space tokens.

WHY: The rendering layer highlights words by their ordinal position, so the
display side needs an exact, lossless word sequence. Presentational fragments
(an author-initials badge, a byline avatar) are part of the page but not of
the narration; counting them would shift every index after them.

HOW: Three layers, each independently testable:
  tokenize()              — whitespace split that keeps every whitespace run
  is_presentational()     — narrow allow-list predicate for badge fragments
  parse_document()        — Python-Markdown renders the source to HTML, a
                            small HTMLParser walks the top-level elements and
                            classifies each into a Block

RULES:
- tokenize() never merges or drops whitespace: join(tokens) == input
- Word boundaries are purely whitespace; no case/punctuation normalization
- The presentational predicate is a FIXED allow-list from config.py
- filter_presentational() is idempotent
- At most one widget placeholder per document; later markers are dropped
- Text inside a widget element is never narrated
"""

from __future__ import annotations

import logging
import re
from html.parser import HTMLParser
from typing import Dict, Iterable, List, Optional, Sequence

import markdown

from narration_sync.config import (
    StageDirection,
    SUPPRESSED_INITIALS_PATTERN,
    SUPPRESSED_LITERALS,
    SUPPRESSED_MARKERS,
    WIDGET_TAGS,
)
from narration_sync.core.ir import (
    HEADING,
    LIST,
    PARAGRAPH,
    QUOTE,
    SPACE,
    WIDGET,
    WORD,
    Block,
    Token,
    TokenDocument,
)
from narration_sync.core.narration import build_expressive_text, build_plain_text

logger = logging.getLogger(__name__)

_WHITESPACE_SPLIT_RE = re.compile(r"(\s+)")
_INITIALS_RE = re.compile(SUPPRESSED_INITIALS_PATTERN)

# Top-level MDX module statements (imports/exports) preceding the content.
_ESM_LINE_RE = re.compile(r"^(import|export)\s")

_HEADING_TAGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}
_LIST_TAGS = frozenset({"ul", "ol"})
_VOID_TAGS = frozenset({"br", "hr", "img", "input", "meta", "link", "source", "wbr"})
# Elements whose text is never narrated.
_SILENT_TAGS = frozenset({"pre", "script", "style", "svg"})


def tokenize(text: str) -> List[Token]:
    """Split text into word and space tokens, losslessly.

    WHY: The renderer must reproduce the source text byte-for-byte while
    still wrapping each word individually for highlighting.

    HOW: ``re.split`` with a capturing group keeps the whitespace runs as
    separators. Empty strings (at the edges) are skipped.

    RULES:
    - Each whitespace run → exactly one "space" token
    - Each non-whitespace run → exactly one "word" token
    - "".join(t.text for t in tokenize(s)) == s
    """
    tokens: List[Token] = []
    for part in _WHITESPACE_SPLIT_RE.split(text):
        if not part:
            continue
        if part.isspace():
            tokens.append(Token(kind=SPACE, text=part))
        else:
            tokens.append(Token(kind=WORD, text=part))
    return tokens


def is_presentational(text: str) -> bool:
    """Return True if a block's text is a presentational badge fragment.

    WHY: The byline badge renders initials and a name ("DK", "DAN KOE") as
    separate text runs that Markdown parsing surfaces as paragraphs. They
    are visual only and must not be read aloud or counted.

    HOW: Trim, then check the fixed allow-list in order: exact literal,
    marker substring, short all-caps initials pattern.

    RULES:
    - Never generalize: over-matching silently deletes real content
    - Empty text is not presentational (it is simply dropped elsewhere)
    """
    trimmed = text.strip()
    if not trimmed:
        return False
    if trimmed in SUPPRESSED_LITERALS:
        return True
    if any(marker in trimmed for marker in SUPPRESSED_MARKERS):
        return True
    return _INITIALS_RE.match(trimmed) is not None


def filter_presentational(blocks: Iterable[Block]) -> List[Block]:
    """Drop paragraph blocks whose text is presentational.

    Idempotent: filtering already-filtered output removes nothing further.
    """
    kept: List[Block] = []
    for block in blocks:
        if block.kind == PARAGRAPH and is_presentational(block.text):
            logger.debug("Suppressed presentational block: %r", block.text.strip())
            continue
        kept.append(block)
    return kept


def _strip_esm(source: str) -> str:
    """Remove MDX import/export lines that precede the content."""
    lines = source.splitlines(keepends=True)
    index = 0
    while index < len(lines):
        line = lines[index]
        if line.strip() and not _ESM_LINE_RE.match(line):
            break
        index += 1
    return "".join(lines[index:])


class _BlockCollector(HTMLParser):
    """Walk rendered HTML and emit one Block per top-level element.

    HOW: Tracks the stack of open tags below the current top-level element.
    Text is accumulated per element (per top-level <li> for lists) and the
    block is classified when the top-level element closes.
    """

    def __init__(self, widget_tags: Dict[str, str]) -> None:
        super().__init__(convert_charrefs=True)
        self.blocks: List[Block] = []
        self._widget_tags = widget_tags
        self._widget_added = False
        self._stack: List[str] = []
        self._text: List[str] = []
        self._items: List[str] = []
        self._item: Optional[List[str]] = None
        self._widget: Optional[str] = None
        self._silent_depth = 0

    # -- HTMLParser hooks ------------------------------------------------

    def handle_starttag(self, tag, attrs):  # noqa: ANN001
        if tag in _VOID_TAGS:
            self._void(tag)
            return

        if tag in self._widget_tags:
            if not self._stack:
                self._widget = self._widget_tags[tag]
                self._stack.append(tag)
                return
            self._widget = self._widget or self._widget_tags[tag]

        if tag in _SILENT_TAGS:
            self._silent_depth += 1

        if tag == "li" and len(self._stack) == 1 and self._stack[0] in _LIST_TAGS:
            self._item = []

        self._stack.append(tag)

    def handle_startendtag(self, tag, attrs):  # noqa: ANN001
        if tag in self._widget_tags:
            if not self._stack:
                self._widget = self._widget_tags[tag]
                self._finish_element(tag)
            else:
                self._widget = self._widget or self._widget_tags[tag]
            return
        self._void(tag)

    def handle_endtag(self, tag):  # noqa: ANN001
        if tag not in self._stack:
            return
        while self._stack:
            closed = self._stack.pop()
            if closed in _SILENT_TAGS:
                self._silent_depth -= 1
            if closed == "li" and len(self._stack) == 1 and self._stack[0] in _LIST_TAGS:
                self._finish_item()
            if not self._stack:
                self._finish_element(closed)
            if closed == tag:
                break

    def handle_data(self, data):  # noqa: ANN001
        if not self._stack:
            if data.strip():
                self._emit_text_block(PARAGRAPH, data)
            return
        if self._silent_depth:
            return
        if self._stack[0] in _LIST_TAGS:
            if self._item is not None:
                self._item.append(data)
            return
        self._text.append(data)

    # -- helpers -----------------------------------------------------------

    def _void(self, tag: str) -> None:
        if tag == "br" and self._stack and not self._silent_depth:
            self.handle_data("\n")

    def _finish_item(self) -> None:
        if self._item is not None:
            text = "".join(self._item).strip()
            if text:
                self._items.append(text)
        self._item = None

    def _finish_element(self, tag: str) -> None:
        text = "".join(self._text)
        items = self._items
        widget = self._widget
        self._text = []
        self._items = []
        self._item = None
        self._widget = None
        self._silent_depth = 0

        if widget is not None:
            if not self._widget_added:
                self.blocks.append(Block(kind=WIDGET, widget=widget))
                self._widget_added = True
            else:
                logger.debug("Dropped repeated %s widget marker", widget)
            return

        if tag in _SILENT_TAGS:
            return

        if tag in _HEADING_TAGS:
            stripped = text.strip()
            if stripped:
                self.blocks.append(
                    Block(kind=HEADING, level=_HEADING_TAGS[tag], tokens=tokenize(stripped))
                )
        elif tag in _LIST_TAGS:
            if items:
                self.blocks.append(Block(
                    kind=LIST,
                    ordered=tag == "ol",
                    items=[tokenize(item) for item in items],
                ))
        elif tag == "blockquote":
            self._emit_text_block(QUOTE, text)
        else:
            self._emit_text_block(PARAGRAPH, text)

    def _emit_text_block(self, kind: str, text: str) -> None:
        stripped = text.strip()
        if stripped:
            self.blocks.append(Block(kind=kind, tokens=tokenize(stripped)))

    def close(self) -> None:
        super().close()
        # Unclosed top-level element at end of input.
        if self._stack:
            top = self._stack[0]
            if top in _LIST_TAGS and self._item is not None:
                self._finish_item()
            self._stack = []
            self._finish_element(top)


def parse_document(
    source: str,
    widget_tags: Optional[Dict[str, str]] = None,
) -> List[Block]:
    """Parse Markdown/MDX source into the filtered block list.

    WHY: Content is authored as Markdown with a sprinkling of JSX (the
    avatar byline). The renderer needs semantic blocks; the sync engine
    needs the exact word order those blocks produce.

    HOW: Strip leading MDX imports, render with Python-Markdown (raw HTML
    and JSX pass through untouched), then classify every top-level element
    with _BlockCollector and apply filter_presentational().

    RULES:
    - h1..h6 → heading, p → paragraph, blockquote → quote, ul/ol → list
    - other containers with text → paragraph; pre/script/style → dropped
    - the first element holding a widget tag → one widget block
    - block text is trimmed before tokenizing

    Args:
        source: Markdown or MDX document text.
        widget_tags: Lowercased tag → widget kind. Defaults to config.WIDGET_TAGS.

    Returns:
        Blocks in document order with presentational fragments removed.
    """
    html = markdown.markdown(_strip_esm(source))
    collector = _BlockCollector(widget_tags if widget_tags is not None else WIDGET_TAGS)
    collector.feed(html)
    collector.close()
    return filter_presentational(collector.blocks)


def build_document(
    source: str,
    directions: Optional[Sequence[StageDirection]] = None,
    widget_tags: Optional[Dict[str, str]] = None,
) -> TokenDocument:
    """Build the complete token document (blocks + plain + expressive text).

    Args:
        source: Markdown or MDX document text.
        directions: Stage directions for the expressive text. None selects
                    config.DEFAULT_STAGE_DIRECTIONS; pass () for none.
        widget_tags: Optional override of the widget marker tags.

    Returns:
        TokenDocument ready to serialize as the display artifact.
    """
    blocks = parse_document(source, widget_tags=widget_tags)
    plain_text = build_plain_text(blocks)
    expressive_text = build_expressive_text(plain_text, directions)
    document = TokenDocument(
        blocks=blocks,
        plain_text=plain_text,
        expressive_text=expressive_text,
    )
    logger.info(
        "Built document: %d blocks, %d words", len(document.blocks), document.word_count
    )
    return document
