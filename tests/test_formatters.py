"""Unit tests for all formatter modules.

WHY: The token document is the artifact the page and the sync session
load at runtime. A formatter that writes an invalid document, or an HTML
transcript whose word indices do not match the alignment, breaks
highlighting for everyone who opens the page.

HOW: Every formatter runs against the sample document from conftest.py.
The token document is validated against the bundled JSON schema and
parsed back to check nothing was lost.

RULES:
- Schema validation uses formatters/token_document_schema.json
- HTML tests check the span markup, not the page styling
"""

import json

import jsonschema
import pytest

from narration_sync.core.ir import Block, Token, TokenDocument
from narration_sync.formatters import FORMATTERS
from narration_sync.formatters.base import BaseFormatter
from narration_sync.formatters.expressive_text import ExpressiveTextFormatter
from narration_sync.formatters.html_transcript import HtmlTranscriptFormatter
from narration_sync.formatters.plain_text import PlainTextFormatter
from narration_sync.formatters.token_document import (
    TokenDocumentFormatter,
    get_schema,
)

from conftest import alignment_for_text


class TestRegistry:

    def test_keys(self):
        assert set(FORMATTERS) == {
            "token_document",
            "plain_text",
            "expressive_text",
            "html_transcript",
        }

    @pytest.mark.parametrize("key", sorted(FORMATTERS))
    def test_values_are_formatter_classes(self, key):
        formatter = FORMATTERS[key]()
        assert isinstance(formatter, BaseFormatter)
        assert formatter.name


class TestTokenDocumentFormatter:

    def test_output_validates_against_schema(self, sample_document):
        outputs = TokenDocumentFormatter().format(sample_document)
        assert len(outputs) == 1
        assert outputs[0].suffix == "-document.json"
        assert outputs[0].media_type == "application/json"
        jsonschema.validate(instance=json.loads(outputs[0].content), schema=get_schema())

    def test_parses_back_to_same_document(self, sample_document):
        content = TokenDocumentFormatter().format(sample_document)[0].content
        assert TokenDocument.from_dict(json.loads(content)) == sample_document

    def test_non_ascii_written_verbatim(self):
        document = TokenDocument(blocks=[Block(kind="paragraph", tokens=[Token("word", "café")])])
        content = TokenDocumentFormatter().format(document)[0].content
        assert "café" in content

    def test_invalid_document_rejected(self):
        document = TokenDocument(blocks=[Block(kind="heading", tokens=[Token("word", "x")])])
        with pytest.raises(jsonschema.ValidationError):
            TokenDocumentFormatter().format(document)

    def test_schema_is_cached(self):
        assert get_schema() is get_schema()


class TestTextFormatters:

    def test_plain_text(self, sample_document):
        output = PlainTextFormatter().format(sample_document)[0]
        assert output.suffix == "-narration.txt"
        assert output.media_type == "text/plain"
        assert output.content == sample_document.plain_text + "\n"
        assert "[" not in output.content

    def test_expressive_text(self, sample_document):
        output = ExpressiveTextFormatter().format(sample_document)[0]
        assert output.suffix == "-expressive.txt"
        assert output.content.startswith("[calm] How")
        assert output.content.endswith("\n")

    def test_empty_document(self):
        empty = TokenDocument(blocks=[])
        assert PlainTextFormatter().format(empty)[0].content == ""
        assert ExpressiveTextFormatter().format(empty)[0].content == ""


class TestHtmlTranscriptFormatter:

    def test_static_without_alignment(self, sample_document):
        output = HtmlTranscriptFormatter().format(sample_document)[0]
        assert output.suffix == "-transcript.html"
        assert output.media_type == "text/html"
        assert '<body data-synchronized="false">' in output.content
        assert "data-word-index" not in output.content
        assert "<title>Transcript</title>" in output.content

    def test_indexed_spans_with_alignment(self, sample_document, sample_alignment):
        formatter = HtmlTranscriptFormatter(alignment=sample_alignment, title="Letter")
        content = formatter.format(sample_document)[0].content
        assert '<body data-synchronized="true">' in content
        assert "<title>Letter</title>" in content
        assert 'data-word-index="0">How</span>' in content
        assert 'data-word-index="32">line.</span>' in content
        assert 'class="word word-current"' not in content

    def test_mismatched_alignment_renders_static(self, sample_document):
        formatter = HtmlTranscriptFormatter(alignment=alignment_for_text("too few words"))
        content = formatter.format(sample_document)[0].content
        assert '<body data-synchronized="false">' in content
        assert "data-word-index" not in content

    def test_title_escaped(self, sample_document):
        content = HtmlTranscriptFormatter(title="A & B").format(sample_document)[0].content
        assert "<title>A &amp; B</title>" in content
