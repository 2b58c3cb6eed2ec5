"""Expressive TTS input formatter.

WHY: The expressive text is what actually gets sent to the TTS engine.
Writing it to disk lets the generate step (or a human) check where the
stage directions landed and how parentheticals were unwrapped.

RULES:
- Content is TokenDocument.expressive_text plus a trailing newline
- Output suffix: "-expressive.txt"
- Media type: "text/plain"
"""

from __future__ import annotations

from typing import List

from narration_sync.core.ir import TokenDocument
from narration_sync.formatters.base import BaseFormatter, FormatterOutput


class ExpressiveTextFormatter(BaseFormatter):

    @property
    def name(self) -> str:
        return "Expressive TTS Text"

    def format(self, document: TokenDocument) -> List[FormatterOutput]:
        content = document.expressive_text
        if content:
            content += "\n"
        return [
            FormatterOutput(
                suffix="-expressive.txt",
                content=content,
                media_type="text/plain",
            )
        ]
