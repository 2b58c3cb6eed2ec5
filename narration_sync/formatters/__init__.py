"""Output formatter registry: pluggable format hub.

WHY: The CLI and API layers need a single lookup to find the right
formatter by name. A central dict makes it trivial to add new formats:
create the formatter class, import it here, add one line.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["token_document"]()``.

RULES:
- Keys are snake_case identifiers (used in CLI flags)
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from narration_sync.formatters.expressive_text import ExpressiveTextFormatter
from narration_sync.formatters.html_transcript import HtmlTranscriptFormatter
from narration_sync.formatters.plain_text import PlainTextFormatter
from narration_sync.formatters.token_document import TokenDocumentFormatter

if TYPE_CHECKING:
    from narration_sync.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "token_document": TokenDocumentFormatter,
    "plain_text": PlainTextFormatter,
    "expressive_text": ExpressiveTextFormatter,
    "html_transcript": HtmlTranscriptFormatter,
}
