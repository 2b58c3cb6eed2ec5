"""Narration session: artifact loading, validation, and engine wiring.

WHY: The token document and the alignment payload are produced by separate
offline steps and can drift apart (an edited document, a stale recording).
A silent mismatch highlights the wrong words for the rest of the document,
which is worse than no highlighting at all. Loading therefore validates
word counts and degrades to static text instead of guessing.

HOW: load_token_document() raises ArtifactLoadError on any failure, since
there is nothing to show without it. load_alignment() accepts a path or an
http(s) URL (fetched with httpx) and returns None on failure.
NarrationSession segments the alignment, runs check_word_counts(), and owns
the SyncEngine that renderers subscribe to.

RULES:
- Missing or malformed alignment → NO_ALIGNMENT, logged at WARNING
- Word-count mismatch → NO_ALIGNMENT, diagnostic kept on the session
- Words are matched by position only; texts are never compared
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import httpx

from narration_sync.config import SYNC_MIN_INTERVAL_S
from narration_sync.core.highlight import TokenLocation, locate_word, render_html
from narration_sync.core.ir import (
    AlignmentFormatError,
    CharacterAlignment,
    Segment,
    TokenDocument,
    WordSegment,
)
from narration_sync.core.segmenter import segment, word_segments
from narration_sync.core.sync import SyncEngine, SyncState

logger = logging.getLogger(__name__)

_URL_PREFIXES = ("http://", "https://")
_FETCH_TIMEOUT_S = 30.0


class ArtifactLoadError(Exception):
    """Raised when the token document cannot be read or parsed.

    RULES:
    - message names the artifact path and the underlying cause
    """


class WordCountMismatchError(Exception):
    """Raised when the document and alignment disagree on word count.

    WHY: Correspondence is positional, so any count difference means every
    index after the first divergence points at the wrong word.

    RULES:
    - document_words and alignment_words carry both counts
    """

    def __init__(self, document_words: int, alignment_words: int) -> None:
        self.document_words = document_words
        self.alignment_words = alignment_words
        super().__init__(
            "Word count mismatch: document has {} words, alignment has {}".format(
                document_words, alignment_words
            )
        )


def load_token_document(path: str | Path) -> TokenDocument:
    """Read the token document artifact (JSON) from disk.

    Raises:
        ArtifactLoadError: If the file is missing, not JSON, or malformed.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return TokenDocument.from_dict(data)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise ArtifactLoadError(
            "Failed to load token document {}: {}".format(path, exc)
        ) from exc


def _read_alignment_payload(location: str | Path) -> dict:
    text_location = str(location)
    if text_location.startswith(_URL_PREFIXES):
        resp = httpx.get(text_location, timeout=_FETCH_TIMEOUT_S)
        resp.raise_for_status()
        return resp.json()
    return json.loads(Path(location).read_text(encoding="utf-8"))


def load_alignment(location: str | Path | None) -> Optional[CharacterAlignment]:
    """Load the alignment payload from a path or URL.

    WHY: The alignment is optional at runtime; without it the document is
    still readable, just not highlighted.

    RULES:
    - Returns None (and logs a WARNING) on any read, HTTP, or parse failure
    - Returns None without logging when location is None
    """
    if location is None:
        return None
    try:
        return CharacterAlignment.from_dict(_read_alignment_payload(location))
    except (OSError, ValueError, httpx.HTTPError) as exc:
        # AlignmentFormatError and JSON decode errors are both ValueErrors.
        logger.warning("Alignment unavailable from %s: %s", location, exc)
        return None


def check_word_counts(document: TokenDocument, words: List[WordSegment]) -> None:
    """Raise WordCountMismatchError if the two word sequences differ in length."""
    if document.word_count != len(words):
        raise WordCountMismatchError(document.word_count, len(words))


class NarrationSession:
    """A loaded document plus (optionally) its synchronized word list.

    WHY: Renderers, the CLI, and the server all need the same wiring:
    segment the alignment, validate counts, feed the engine. Doing it once
    here keeps the degradation rules in one place.

    HOW: The constructor takes already-parsed artifacts; ``open`` loads
    them from disk or URL first. When validation passes the engine is
    loaded with the word segments, otherwise it stays empty and
    ``diagnostic`` explains why.

    RULES:
    - is_synchronized is True only when the engine holds a validated list
    - A supplied engine is unloaded when the alignment is missing or rejected
    - The session never raises for alignment problems
    """

    def __init__(
        self,
        document: TokenDocument,
        alignment: Optional[CharacterAlignment] = None,
        suppress_tags: bool = True,
        min_interval_s: float = SYNC_MIN_INTERVAL_S,
        engine: Optional[SyncEngine] = None,
    ) -> None:
        self.document = document
        self.alignment = alignment
        self.segments: List[Segment] = []
        self.words: List[WordSegment] = []
        self.diagnostic: Optional[str] = None
        self.engine = engine or SyncEngine(min_interval_s=min_interval_s)

        if alignment is None:
            self.diagnostic = "No alignment loaded"
            self.engine.unload()
            return

        self.segments = segment(alignment, suppress_tags=suppress_tags)
        words = word_segments(self.segments)
        try:
            check_word_counts(document, words)
        except WordCountMismatchError as exc:
            logger.warning("%s; highlighting disabled", exc)
            self.diagnostic = str(exc)
            self.engine.unload()
            return

        self.words = words
        self.engine.load(words)
        logger.info("Session synchronized: %d words", len(words))

    @classmethod
    def open(
        cls,
        document_path: str | Path,
        alignment_location: str | Path | None = None,
        suppress_tags: bool = True,
        min_interval_s: float = SYNC_MIN_INTERVAL_S,
        engine: Optional[SyncEngine] = None,
    ) -> NarrationSession:
        """Load both artifacts and build a session.

        Raises:
            ArtifactLoadError: Only for the token document.
        """
        document = load_token_document(document_path)
        alignment = load_alignment(alignment_location)
        return cls(
            document,
            alignment,
            suppress_tags=suppress_tags,
            min_interval_s=min_interval_s,
            engine=engine,
        )

    @property
    def word_count(self) -> int:
        return self.document.word_count

    @property
    def is_synchronized(self) -> bool:
        return self.engine.state is not SyncState.NO_ALIGNMENT

    def current_location(self) -> Optional[TokenLocation]:
        """Token position of the engine's current word, if any."""
        return locate_word(self.document, self.engine.current_word_index)

    def render_html(self, is_playing: bool = False) -> str:
        """Render the document for the engine's current state."""
        return render_html(
            self.document,
            current_index=self.engine.current_word_index,
            is_playing=is_playing,
            synchronized=self.is_synchronized,
        )
