"""Command-line interface for narration sync.

WHY: The artifacts behind a narrated page are produced offline: the token
document from the Markdown source, then audio and alignment from the TTS
vendor. Developers also need to check, without a browser, which word the
engine resolves at a given time. The CLI wires these steps together.

HOW: argparse subcommands, one per workflow step:
  extract   Markdown/MDX → formatter outputs (token document, scripts, HTML)
  generate  token document → chunked synthesis → audio + alignment
  resolve   document + alignment + times → resolved words
  follow    simulated playback printing each word change
  serve     run the HTTP API with uvicorn
Status messages go to stderr; results of resolve/follow go to stdout.

RULES:
- Output naming: {stem}{suffix}, numeric suffix for conflicts (-document-2.json)
- Status output goes to stderr (not stdout)
- Errors print "Error: ..." to stderr and exit with status 1
- --verbose enables DEBUG logging with the standard format
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Callable, List, Optional

from narration_sync.api.client import ElevenLabsClient, TTSAPIError
from narration_sync.config import (
    NARRATION_ALIGNMENT_PATH,
    NARRATION_AUDIO_PATH,
    NARRATION_DOCUMENT_PATH,
    TTS_MAX_CHARS,
)
from narration_sync.core.highlight import locate_word
from narration_sync.core.ir import CharacterAlignment
from narration_sync.core.narration import load_stage_directions
from narration_sync.core.session import (
    ArtifactLoadError,
    NarrationSession,
    load_alignment,
    load_token_document,
)
from narration_sync.core.synthesis import generate_narration
from narration_sync.core.sync import SyncEngine, SyncSnapshot
from narration_sync.core.tokenizer import build_document
from narration_sync.formatters import FORMATTERS
from narration_sync.formatters.base import BaseFormatter, FormatterOutput
from narration_sync.formatters.html_transcript import HtmlTranscriptFormatter
from narration_sync.playback import PlaybackAdapter, SimulatedMediaElement

_DOCUMENT_SUFFIX = "-document"
_FOLLOW_POLL_S = 0.05


class CLIError(Exception):
    """A user-facing failure: printed as "Error: ..." with exit status 1."""


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.

    RULES:
    - All status messages go to stderr
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


def _resolve_output_path(
    stem: str,
    suffix: str,
    output_dir: Path,
) -> Path:
    """Resolve the output file path, adding numeric suffix on conflict.

    WHY: Re-running extract or generate must never overwrite earlier
    artifacts (a recording costs money). Numeric suffixes prevent loss.

    RULES:
    - First attempt: {stem}{suffix} (e.g. letter-document.json)
    - Conflict: split suffix at last dot, insert counter before extension
      (e.g. letter-document-2.json)
    - Counter starts at 2 and increments
    """
    base_path = output_dir / "{}{}".format(stem, suffix)
    if not base_path.exists():
        return base_path

    dot_idx = suffix.rfind(".")
    if dot_idx > 0:
        suffix_name = suffix[:dot_idx]
        suffix_ext = suffix[dot_idx:]
    else:
        suffix_name = suffix
        suffix_ext = ""

    counter = 2
    while True:
        candidate = output_dir / "{}{}-{}{}".format(stem, suffix_name, counter, suffix_ext)
        if not candidate.exists():
            return candidate
        counter += 1


def _save_output(
    output: FormatterOutput,
    stem: str,
    output_dir: Path,
) -> Path:
    """Save a single formatter output to disk and return its path.

    RULES:
    - String content written as UTF-8 text
    - Bytes content written in binary mode
    """
    path = _resolve_output_path(stem, output.suffix, output_dir)

    if isinstance(output.content, bytes):
        path.write_bytes(output.content)
    else:
        path.write_text(output.content, encoding="utf-8")

    return path


def _output_dir(requested: Optional[str], default: Path) -> Path:
    output_dir = Path(requested).resolve() if requested else default
    if not output_dir.is_dir():
        raise CLIError("Output directory does not exist: {}".format(output_dir))
    return output_dir


def _parse_format_keys(formats: Optional[str]) -> List[str]:
    """Comma-separated formatter keys, validated against FORMATTERS."""
    if not formats:
        return list(FORMATTERS.keys())
    keys = [f.strip() for f in formats.split(",") if f.strip()]
    for key in keys:
        if key not in FORMATTERS:
            raise CLIError("Unknown format '{}'. Available formats: {}".format(
                key, ", ".join(sorted(FORMATTERS.keys()))
            ))
    return keys


def _make_formatter(key: str, alignment: Optional[CharacterAlignment]) -> BaseFormatter:
    if key == "html_transcript":
        return HtmlTranscriptFormatter(alignment=alignment)
    return FORMATTERS[key]()


def _document_stem(path: Path) -> str:
    """"letter-document.json" → "letter"; other names keep their stem."""
    stem = path.stem
    if stem.endswith(_DOCUMENT_SUFFIX) and len(stem) > len(_DOCUMENT_SUFFIX):
        return stem[:-len(_DOCUMENT_SUFFIX)]
    return stem


def _open_session(
    document: str,
    alignment: Optional[str],
    engine: Optional[SyncEngine] = None,
) -> NarrationSession:
    try:
        return NarrationSession.open(document, alignment, engine=engine)
    except ArtifactLoadError as exc:
        raise CLIError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_extract(args: argparse.Namespace) -> int:
    """Build the token document from Markdown/MDX and run the formatters."""
    source_path = Path(args.source).resolve()
    if not source_path.is_file():
        raise CLIError("File not found: {}".format(source_path))

    output_dir = _output_dir(args.output_dir, source_path.parent)
    format_keys = _parse_format_keys(args.formats)

    directions = None
    if args.directions:
        try:
            directions = load_stage_directions(args.directions)
        except (OSError, ValueError) as exc:
            raise CLIError("Invalid stage directions file: {}".format(exc)) from exc
        _status("  Stage directions: {} ({} entries)".format(args.directions, len(directions)))

    alignment = load_alignment(args.alignment) if args.alignment else None

    _status("Parsing {}...".format(source_path.name))
    document = build_document(source_path.read_text(encoding="utf-8"), directions=directions)
    _status("  {} blocks, {} words".format(len(document.blocks), document.word_count))

    saved_files: List[Path] = []
    for key in format_keys:
        formatter = _make_formatter(key, alignment)
        _status("  Running {} formatter...".format(formatter.name))
        for output in formatter.format(document):
            saved_path = _save_output(output, source_path.stem, output_dir)
            saved_files.append(saved_path)
            _status("  Saved: {}".format(saved_path.name))

    _status("")
    _status("Done! Saved {} file(s) to {}".format(len(saved_files), output_dir))
    return 0


async def _run_generate(args: argparse.Namespace) -> int:
    """Synthesize the document's expressive text and save audio + alignment."""
    document_path = Path(args.document).resolve()
    try:
        document = load_token_document(document_path)
    except ArtifactLoadError as exc:
        raise CLIError(str(exc)) from exc

    text = document.expressive_text or document.plain_text
    if not text.strip():
        raise CLIError("Document has no narration text: {}".format(document_path))

    output_dir = _output_dir(args.output_dir, document_path.parent)
    stem = _document_stem(document_path)

    _status("Generating narration for {} ({} words)...".format(
        document_path.name, document.word_count,
    ))
    try:
        async with ElevenLabsClient() as client:
            merged = await generate_narration(
                client, text, max_chars=args.max_chars, on_status=_status,
            )
    except TTSAPIError as exc:
        raise CLIError(str(exc)) from exc

    audio_path = _save_output(
        FormatterOutput(suffix="-audio.mp3", content=merged.audio, media_type="audio/mpeg"),
        stem, output_dir,
    )
    alignment_path = _save_output(
        FormatterOutput(
            suffix="-alignment.json",
            content=json.dumps(merged.alignment.to_dict(), indent=2, ensure_ascii=False),
            media_type="application/json",
        ),
        stem, output_dir,
    )

    _status("")
    _status("Audio saved to: {} ({:.2f} MB)".format(
        audio_path.name, len(merged.audio) / 1024 / 1024,
    ))
    _status("Alignment saved to: {} ({} characters)".format(
        alignment_path.name, len(merged.alignment),
    ))
    _status("Total duration: {:.2f}s".format(merged.duration_s))
    return 0


def _cmd_generate(args: argparse.Namespace) -> int:
    return asyncio.run(_run_generate(args))


def _cmd_resolve(args: argparse.Namespace) -> int:
    """Print the display token resolved for each requested time."""
    session = _open_session(args.document, args.alignment)
    if not session.is_synchronized:
        raise CLIError("Highlighting unavailable: {}".format(session.diagnostic))

    for t in args.times:
        session.engine.seek(t)
        location = session.current_location()
        text = location.token.text if location else ""
        print("{:.3f}\t{}\t{}".format(t, session.engine.current_word_index, text))
    return 0


def _cmd_follow(
    args: argparse.Namespace,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Play the alignment on a simulated clock and print each word change."""
    # The engine throttles on the same clock that drives the simulated media.
    session = _open_session(args.document, args.alignment, engine=SyncEngine(clock=clock))
    if not session.is_synchronized:
        raise CLIError("Highlighting unavailable: {}".format(session.diagnostic))

    duration = session.words[-1].end_time
    media = SimulatedMediaElement(duration, clock=clock, rate=args.rate)
    adapter = PlaybackAdapter(media, session.engine)
    last_index = [-1]

    def _on_change(snapshot: SyncSnapshot) -> None:
        index = snapshot.current_word_index
        location = locate_word(session.document, index)
        if location is not None and index != last_index[0]:
            print("{:8.3f}  {:>5}  {}".format(
                snapshot.current_time, index, location.token.text,
            ), flush=True)
        last_index[0] = index

    unsubscribe = session.engine.subscribe(_on_change)
    _status("Following {} words ({:.2f}s at {}x)...".format(
        len(session.words), duration, args.rate,
    ))
    adapter.play()
    try:
        ended = False
        while not ended:
            for event in media.tick():
                adapter.handle_event(event)
                ended = ended or event == "ended"
            if not ended:
                sleep(_FOLLOW_POLL_S)
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        return 130
    finally:
        unsubscribe()
    _status("Playback ended.")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from narration_sync.server.app import create_app

    app = create_app(
        document_path=args.document,
        alignment_path=args.alignment,
        audio_path=args.audio,
    )
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable: tests can inspect the parser without running a command.
    """
    parser = argparse.ArgumentParser(
        prog="narration_sync",
        description="Build, synthesize, and synchronize narrated documents "
                    "with word-level highlighting.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser(
        "extract",
        help="Build the token document and scripts from Markdown/MDX.",
    )
    extract.add_argument("source", help="Path to the Markdown or MDX source file.")
    extract.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save output files (default: same as source file).",
    )
    extract.add_argument(
        "--formats",
        default=None,
        help="Comma-separated list of output formats. "
             "Available: {}. Default: all.".format(", ".join(sorted(FORMATTERS.keys()))),
    )
    extract.add_argument(
        "--directions",
        default=None,
        help="JSON file of stage directions [{anchor, tag, position}] "
             "(default: built-in directions).",
    )
    extract.add_argument(
        "--alignment",
        default=None,
        help="Alignment JSON (path or URL) for indexed word spans in the HTML transcript.",
    )
    extract.set_defaults(handler=_cmd_extract)

    generate = subparsers.add_parser(
        "generate",
        help="Synthesize audio and alignment for a token document.",
    )
    generate.add_argument("document", help="Path to the token document JSON.")
    generate.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save audio and alignment (default: same as document).",
    )
    generate.add_argument(
        "--max-chars",
        type=int,
        default=TTS_MAX_CHARS,
        help="Maximum characters per synthesis request (default: %(default)s).",
    )
    generate.set_defaults(handler=_cmd_generate)

    resolve = subparsers.add_parser(
        "resolve",
        help="Print the word being spoken at each given time.",
    )
    resolve.add_argument("document", help="Path to the token document JSON.")
    resolve.add_argument("alignment", help="Alignment JSON (path or URL).")
    resolve.add_argument("times", nargs="+", type=float, help="Playback times in seconds.")
    resolve.set_defaults(handler=_cmd_resolve)

    follow = subparsers.add_parser(
        "follow",
        help="Simulate playback and print each word as it is spoken.",
    )
    follow.add_argument("document", help="Path to the token document JSON.")
    follow.add_argument("alignment", help="Alignment JSON (path or URL).")
    follow.add_argument(
        "--rate",
        type=float,
        default=1.0,
        help="Playback rate multiplier (default: %(default)s).",
    )
    follow.set_defaults(handler=_cmd_follow)

    serve = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: %(default)s).")
    serve.add_argument(
        "--document",
        default=NARRATION_DOCUMENT_PATH,
        help="Token document JSON (default: %(default)s).",
    )
    serve.add_argument(
        "--alignment",
        default=NARRATION_ALIGNMENT_PATH,
        help="Alignment JSON, path or URL (default: %(default)s).",
    )
    serve.add_argument(
        "--audio",
        default=NARRATION_AUDIO_PATH,
        help="Narration audio file (default: %(default)s).",
    )
    serve.set_defaults(handler=_cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    - Always exits via sys.exit with the command's status
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        code = args.handler(args)
    except (CLIError, ValueError) as exc:
        # ValueError covers configuration errors such as a missing API key.
        print("Error: {}".format(exc), file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
