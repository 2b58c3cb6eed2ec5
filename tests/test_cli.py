"""Tests for the command-line interface.

WHY: The CLI is how artifacts are produced. Overwriting a paid recording,
or writing a document whose word count drifts from its alignment, costs
real money, so output naming and the end-to-end flow are pinned here.

HOW: main() is called with explicit argv and SystemExit is caught. The TTS
vendor is replaced by patching cli.ElevenLabsClient with a client over an
httpx.MockTransport. follow runs on a fake clock.
"""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from narration_sync import cli
from narration_sync.api.client import ElevenLabsClient
from narration_sync.config import TTS_MAX_CHARS
from narration_sync.core.session import NarrationSession

from conftest import SAMPLE_MDX, alignment_for_text


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "letter.mdx"
    path.write_text(SAMPLE_MDX, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------


class TestExtract:

    def test_writes_all_formats(self, source, capsys):
        assert _run(["extract", str(source)]) == 0
        directory = source.parent
        for name in (
            "letter-document.json",
            "letter-narration.txt",
            "letter-expressive.txt",
            "letter-transcript.html",
        ):
            assert (directory / name).is_file(), name
        assert "Saved 4 file(s)" in capsys.readouterr().err

    def test_never_overwrites(self, source):
        assert _run(["extract", str(source), "--formats", "token_document"]) == 0
        assert _run(["extract", str(source), "--formats", "token_document"]) == 0
        assert (source.parent / "letter-document.json").is_file()
        assert (source.parent / "letter-document-2.json").is_file()

    def test_unknown_format(self, source, capsys):
        assert _run(["extract", str(source), "--formats", "pdf"]) == 1
        assert "Error: Unknown format 'pdf'" in capsys.readouterr().err

    def test_missing_source(self, tmp_path, capsys):
        assert _run(["extract", str(tmp_path / "nope.mdx")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_custom_directions(self, source, tmp_path):
        directions = tmp_path / "directions.json"
        directions.write_text(json.dumps([{"anchor": "Closing line.", "tag": "warm"}]))
        argv = ["extract", str(source), "--formats", "expressive_text", "--directions", str(directions)]
        assert _run(argv) == 0
        text = (source.parent / "letter-expressive.txt").read_text(encoding="utf-8")
        assert text.endswith("Closing line. [warm]\n")
        assert "[calm]" not in text

    def test_transcript_with_alignment(self, source, tmp_path, sample_alignment):
        alignment_path = tmp_path / "alignment.json"
        alignment_path.write_text(json.dumps(sample_alignment.to_dict()))
        argv = [
            "extract", str(source),
            "--formats", "html_transcript",
            "--alignment", str(alignment_path),
        ]
        assert _run(argv) == 0
        html = (source.parent / "letter-transcript.html").read_text(encoding="utf-8")
        assert 'data-word-index="0">How</span>' in html


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


def _vendor_handler(request):
    text = json.loads(request.content)["text"]
    alignment = alignment_for_text(text)
    return httpx.Response(200, json={
        "audio_base64": base64.b64encode(b"chunk").decode("ascii"),
        "alignment": {
            "characters": alignment.characters,
            "character_start_times_seconds": alignment.start_times,
            "character_end_times_seconds": alignment.end_times,
        },
    })


class TestGenerate:

    def test_writes_audio_and_alignment(self, tmp_path, sample_document, monkeypatch):
        document_path = tmp_path / "letter-document.json"
        document_path.write_text(json.dumps(sample_document.to_dict()), encoding="utf-8")
        monkeypatch.setattr(cli, "ElevenLabsClient", lambda: ElevenLabsClient(
            api_key="test-key",
            base_url="https://tts.example.com/v1",
            transport=httpx.MockTransport(_vendor_handler),
        ))

        assert _run(["generate", str(document_path), "--max-chars", "100"]) == 0

        audio = (tmp_path / "letter-audio.mp3").read_bytes()
        assert audio.startswith(b"chunk")
        assert len(audio) > len(b"chunk")
        session = NarrationSession.open(document_path, tmp_path / "letter-alignment.json")
        assert session.is_synchronized

    def test_missing_api_key(self, artifact_dir, monkeypatch, capsys):
        monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
        assert _run(["generate", str(artifact_dir / "letter-document.json")]) == 1
        assert "API key not configured" in capsys.readouterr().err

    def test_vendor_failure(self, artifact_dir, monkeypatch, capsys):
        monkeypatch.setattr(cli, "ElevenLabsClient", lambda: ElevenLabsClient(
            api_key="test-key",
            base_url="https://tts.example.com/v1",
            transport=httpx.MockTransport(lambda request: httpx.Response(429, text="quota")),
        ))
        assert _run(["generate", str(artifact_dir / "letter-document.json")]) == 1
        assert "TTS API error 429: quota" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# resolve / follow
# ---------------------------------------------------------------------------


class TestResolve:

    def test_prints_words(self, artifact_dir, capsys):
        argv = [
            "resolve",
            str(artifact_dir / "letter-document.json"),
            str(artifact_dir / "letter-alignment.json"),
            "0.36", "0.1", "1000",
        ]
        assert _run(argv) == 0
        assert capsys.readouterr().out.splitlines() == [
            "0.360\t0\tHow",
            "0.100\t-1\t",
            "1000.000\t32\tline.",
        ]

    def test_prints_display_token(self, artifact_dir, sample_document, sample_alignment, capsys):
        spoken = NarrationSession(sample_document, sample_alignment).words[25]
        assert spoken.text == "aside,"
        t = spoken.start_time + 0.01
        argv = [
            "resolve",
            str(artifact_dir / "letter-document.json"),
            str(artifact_dir / "letter-alignment.json"),
            str(t),
        ]
        assert _run(argv) == 0
        assert capsys.readouterr().out.split("\t")[1:] == ["25", "aside)\n"]

    def test_mismatch(self, artifact_dir, tmp_path, capsys):
        alignment = tmp_path / "short.json"
        alignment.write_text(json.dumps(alignment_for_text("three words only").to_dict()))
        argv = ["resolve", str(artifact_dir / "letter-document.json"), str(alignment), "1"]
        assert _run(argv) == 1
        assert "Highlighting unavailable: Word count mismatch" in capsys.readouterr().err


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds + 0.01


class TestFollow:

    def test_prints_every_word_in_order(self, artifact_dir, sample_document, capsys):
        args = cli.build_parser().parse_args([
            "follow",
            str(artifact_dir / "letter-document.json"),
            str(artifact_dir / "letter-alignment.json"),
        ])
        clock = FakeClock()
        assert cli._cmd_follow(args, clock=clock, sleep=clock.sleep) == 0

        captured = capsys.readouterr()
        printed = [line.split()[-1] for line in captured.out.splitlines()]
        assert printed == [token.text for token in sample_document.words()]
        assert "Playback ended." in captured.err


class TestParser:

    def test_defaults(self):
        parser = cli.build_parser()
        assert parser.parse_args(["serve"]).port == 8000
        assert parser.parse_args(["generate", "doc.json"]).max_chars == TTS_MAX_CHARS
        assert parser.parse_args(["follow", "d.json", "a.json"]).rate == 1.0

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])
