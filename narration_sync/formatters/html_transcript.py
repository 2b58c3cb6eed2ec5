"""HTML transcript formatter with per-word highlight classes.

WHY: A self-contained HTML page is the quickest way to eyeball the token
document: every block in order, and (with an alignment) every word wrapped
in an indexed span that a player script can restyle.

HOW: Builds a NarrationSession from the document and the optional
alignment, so the same validation and degradation rules apply as at
runtime, then wraps session.render_html() in a minimal page.

RULES:
- Without an alignment (or with a mismatched one) text is rendered static
- With a valid alignment each word is <span data-word-index="N">
- Output suffix: "-transcript.html"
- Media type: "text/html"
"""

from __future__ import annotations

from html import escape
from typing import List, Optional

from narration_sync.core.ir import CharacterAlignment, TokenDocument
from narration_sync.core.session import NarrationSession
from narration_sync.formatters.base import BaseFormatter, FormatterOutput

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
.word {{ transition: background-color 150ms; }}
.word-current {{ background-color: #fef08a; }}
.word-unspoken {{ opacity: 0.5; }}
</style>
</head>
<body data-synchronized="{synchronized}">
<article>
{body}
</article>
</body>
</html>
"""


class HtmlTranscriptFormatter(BaseFormatter):
    """Formatter that renders the document as a standalone HTML page.

    Args:
        alignment: Optional alignment; enables indexed word spans.
        title: Page title.
    """

    def __init__(
        self,
        alignment: Optional[CharacterAlignment] = None,
        title: str = "Transcript",
    ) -> None:
        self.alignment = alignment
        self.title = title

    @property
    def name(self) -> str:
        return "HTML Transcript"

    def format(self, document: TokenDocument) -> List[FormatterOutput]:
        session = NarrationSession(document, self.alignment)
        content = _PAGE_TEMPLATE.format(
            title=escape(self.title),
            synchronized="true" if session.is_synchronized else "false",
            body=session.render_html(),
        )
        return [
            FormatterOutput(
                suffix="-transcript.html",
                content=content,
                media_type="text/html",
            )
        ]
