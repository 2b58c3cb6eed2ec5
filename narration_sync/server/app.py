"""FastAPI application serving narration artifacts, highlights, and TTS.

WHY: The narrated page is a static client plus a handful of data files.
A small HTTP API serves those files, answers "which word is current at
time t" for thin clients, and proxies ad-hoc text-to-speech requests so
the vendor API key never reaches the browser.

HOW: create_app() builds a FastAPI app whose lifespan loads the token
document and alignment once into app.state (a NarrationSession). Routes
read app.state. The module-level ``app`` uses the config defaults and is
what ``run_api`` serves.

RULES:
- Artifacts are loaded once at startup and never mutated
- A missing document still starts the server; /document then returns 404
- Error responses use a consistent ErrorResponse schema
- /tts: 400 empty text, 500 missing API key, 502 vendor failure
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, List, Optional, Union

import httpx
from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import FileResponse, Response

from narration_sync import __version__
from narration_sync.api.client import ElevenLabsClient, TTSAPIError
from narration_sync.config import (
    NARRATION_ALIGNMENT_PATH,
    NARRATION_AUDIO_PATH,
    NARRATION_DOCUMENT_PATH,
)
from narration_sync.core.highlight import locate_word
from narration_sync.core.ir import TokenDocument
from narration_sync.core.session import (
    ArtifactLoadError,
    NarrationSession,
    load_alignment,
    load_token_document,
)
from narration_sync.core.sync import NO_WORD, SyncState, resolve_word
from narration_sync.formatters import FORMATTERS
from narration_sync.server.models import (
    ErrorResponse,
    FormatInfo,
    HealthResponse,
    HighlightResponse,
    TTSRequest,
)

logger = logging.getLogger(__name__)

TTSClientFactory = Callable[[], ElevenLabsClient]

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session(request: Request) -> Optional[NarrationSession]:
    return request.app.state.session


def _load_session(
    document_path: Path,
    alignment_path: Union[str, Path],
) -> Optional[NarrationSession]:
    """Load artifacts for the lifespan; None when the document is unusable."""
    try:
        document = load_token_document(document_path)
    except ArtifactLoadError as exc:
        logger.warning("%s; /document and /highlight are unavailable", exc)
        return None
    session = NarrationSession(document, load_alignment(alignment_path))
    if session.diagnostic:
        logger.warning("Highlighting disabled: %s", session.diagnostic)
    return session


# ---------------------------------------------------------------------------
# Endpoints: Artifacts
# ---------------------------------------------------------------------------


@router.get(
    "/document",
    tags=["artifacts"],
    summary="Token document",
    description="The token document artifact: blocks, plain text, and expressive text.",
    responses={404: {"model": ErrorResponse, "description": "Document not loaded"}},
)
async def get_document(request: Request) -> dict:
    session = _session(request)
    if session is None:
        raise HTTPException(status_code=404, detail="Token document not loaded")
    return session.document.to_dict()


@router.get(
    "/alignment",
    tags=["artifacts"],
    summary="Character alignment",
    description="The merged character-level alignment payload.",
    responses={404: {"model": ErrorResponse, "description": "Alignment not loaded"}},
)
async def get_alignment(request: Request) -> dict:
    session = _session(request)
    if session is None or session.alignment is None:
        raise HTTPException(status_code=404, detail="Alignment not loaded")
    return session.alignment.to_dict()


@router.get(
    "/audio",
    tags=["artifacts"],
    summary="Narration audio",
    description="The narration audio file (audio/mpeg).",
    responses={404: {"model": ErrorResponse, "description": "Audio file not found"}},
)
async def get_audio(request: Request) -> FileResponse:
    audio_path: Path = request.app.state.audio_path
    if not audio_path.is_file():
        raise HTTPException(
            status_code=404,
            detail="Audio file '{}' not found".format(audio_path.name),
        )
    return FileResponse(audio_path, media_type="audio/mpeg")


# ---------------------------------------------------------------------------
# Endpoints: Highlight
# ---------------------------------------------------------------------------


@router.get(
    "/highlight",
    response_model=HighlightResponse,
    tags=["highlight"],
    summary="Resolve the current word",
    description=(
        "Resolve which word is being spoken at the given playback time. "
        "Stateless: each request is resolved on its own, without throttling."
    ),
    responses={404: {"model": ErrorResponse, "description": "Document not loaded"}},
)
async def get_highlight(
    request: Request,
    time: float = Query(..., description="Playback time in seconds."),
    scrubbing: bool = Query(False, description="True while the user drags the scrubber."),
) -> HighlightResponse:
    session = _session(request)
    if session is None:
        raise HTTPException(status_code=404, detail="Token document not loaded")

    index = NO_WORD
    if not session.words:
        state = SyncState.NO_ALIGNMENT
    elif scrubbing:
        state = SyncState.SCRUBBING
    else:
        index = resolve_word(session.words, time)
        state = SyncState.IDLE if index == NO_WORD else SyncState.TRACKING

    location = locate_word(session.document, index)
    return HighlightResponse(
        state=state.value,
        time=time,
        word_index=index,
        word=location.token.text if location else None,
        word_count=session.word_count,
    )


# ---------------------------------------------------------------------------
# Endpoints: TTS
# ---------------------------------------------------------------------------


@router.post(
    "/tts",
    tags=["tts"],
    summary="Synthesize speech",
    description="Synthesize the given text and return audio/mpeg bytes.",
    responses={
        200: {"content": {"audio/mpeg": {}}, "description": "Synthesized audio"},
        400: {"model": ErrorResponse, "description": "Text is required"},
        500: {"model": ErrorResponse, "description": "API key not configured"},
        502: {"model": ErrorResponse, "description": "TTS vendor failure"},
    },
)
async def synthesize(request: Request, body: TTSRequest) -> Response:
    if not body.text.strip():
        raise HTTPException(status_code=400, detail="Text is required")

    factory: TTSClientFactory = request.app.state.tts_client_factory
    try:
        client = factory()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    try:
        async with client:
            audio = await client.synthesize(body.text)
    except (TTSAPIError, httpx.HTTPError) as exc:
        logger.exception("TTS request failed")
        raise HTTPException(status_code=502, detail="Failed to generate audio: {}".format(exc))

    return Response(content=audio, media_type="audio/mpeg")


# ---------------------------------------------------------------------------
# Endpoints: Formats and health
# ---------------------------------------------------------------------------


@router.get(
    "/formats",
    response_model=List[FormatInfo],
    tags=["formats"],
    summary="List available output formats",
    description="Returns the formatters the extract command can run.",
)
async def list_formats() -> List[FormatInfo]:
    empty = TokenDocument(blocks=[])
    result = []
    for key, formatter_cls in sorted(FORMATTERS.items()):
        formatter = formatter_cls()
        outputs = formatter.format(empty)
        result.append(FormatInfo(
            key=key,
            name=formatter.name,
            suffix=outputs[0].suffix if outputs else "",
        ))
    return result


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check; also reports whether highlighting is available.",
)
async def health_check(request: Request) -> HealthResponse:
    session = _session(request)
    return HealthResponse(
        status="ok",
        version=__version__,
        synchronized=bool(session and session.is_synchronized),
    )


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    document_path: Union[str, Path] = NARRATION_DOCUMENT_PATH,
    alignment_path: Union[str, Path] = NARRATION_ALIGNMENT_PATH,
    audio_path: Union[str, Path] = NARRATION_AUDIO_PATH,
    tts_client_factory: Optional[TTSClientFactory] = None,
) -> FastAPI:
    """Build the API app for one set of artifacts.

    Args:
        document_path: Token document JSON.
        alignment_path: Alignment JSON (path or http(s) URL).
        audio_path: Narration audio file served by /audio.
        tts_client_factory: Builds the client for /tts; defaults to
                            ElevenLabsClient (which reads the API key).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load artifacts once on startup."""
        app.state.session = _load_session(Path(document_path), alignment_path)
        yield
        app.state.session = None

    app = FastAPI(
        lifespan=lifespan,
        title="Narration Sync API",
        description=(
            "Serves the token document, alignment, and audio for a narrated "
            "document, resolves the word being spoken at a playback time, "
            "and proxies text-to-speech requests."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.session = None
    app.state.audio_path = Path(audio_path)
    app.state.tts_client_factory = tts_client_factory or ElevenLabsClient
    app.include_router(router)
    return app


app = create_app()


def run_api(host: str = "0.0.0.0", port: int = 8000):
    """Entry point for the narration-sync-api console script."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
