"""Token document formatter: the display artifact as JSON.

WHY: The renderer and the sync session read the document as a JSON
artifact produced once, offline. The artifact carries the blocks (for
display) and the plain and expressive scripts (for synthesis) so all three
come from the same filtered block list.

HOW: Serializes TokenDocument.to_dict() and validates the result against
token_document_schema.json with jsonschema before returning it.

RULES:
- Output suffix: "-document.json"
- Media type: "application/json"
- Output always validates against the bundled schema
- Non-ASCII text is written as-is (ensure_ascii=False)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List

import jsonschema

from narration_sync.core.ir import TokenDocument
from narration_sync.formatters.base import BaseFormatter, FormatterOutput

SCHEMA_PATH = Path(__file__).resolve().parent / "token_document_schema.json"


def _load_schema() -> dict[str, Any]:
    """Load the token document JSON schema from disk.

    Cached at module level after first call to avoid repeated I/O.
    """
    with open(SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


_CACHED_SCHEMA: dict[str, Any] | None = None


def get_schema() -> dict[str, Any]:
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        _CACHED_SCHEMA = _load_schema()
    return _CACHED_SCHEMA


class TokenDocumentFormatter(BaseFormatter):
    """Formatter that writes the schema-validated token document.

    Raises (from format):
        jsonschema.ValidationError: If the document does not match the schema.
    """

    @property
    def name(self) -> str:
        return "Token Document JSON"

    def format(self, document: TokenDocument) -> List[FormatterOutput]:
        output = document.to_dict()
        jsonschema.validate(instance=output, schema=get_schema())
        content = json.dumps(output, indent=2, ensure_ascii=False)
        return [
            FormatterOutput(
                suffix="-document.json",
                content=content,
                media_type="application/json",
            )
        ]
