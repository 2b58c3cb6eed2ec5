"""Plain narration script formatter.

WHY: Editors review the exact words that will be narrated before paying
for synthesis. The plain script is that list: display words only, one
narrated unit per paragraph, no stage directions.

RULES:
- Content is TokenDocument.plain_text plus a trailing newline
- Output suffix: "-narration.txt"
- Media type: "text/plain"
"""

from __future__ import annotations

from typing import List

from narration_sync.core.ir import TokenDocument
from narration_sync.formatters.base import BaseFormatter, FormatterOutput


class PlainTextFormatter(BaseFormatter):
    """Formatter that writes the plain narration script."""

    @property
    def name(self) -> str:
        return "Plain Narration Text"

    def format(self, document: TokenDocument) -> List[FormatterOutput]:
        content = document.plain_text
        if content:
            content += "\n"
        return [
            FormatterOutput(
                suffix="-narration.txt",
                content=content,
                media_type="text/plain",
            )
        ]
