"""Ingest endpoints: submit recording chunks and single-shot recordings."""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from src.api.dependencies import get_engine
from src.api.models import ChunkResponse, SessionDetail, session_detail
from src.config import settings
from src.ingestion.models import ChunkEnvelope
from src.ingestion.pipeline import (
    ChunkResult,
    ChunkValidationError,
    ConcurrencyConflictError,
    ConsolidationEngine,
    SessionCompleteError,
)
from src.ingestion.storage import SessionNotFoundError
from src.retry import RetryExhaustedError

router = APIRouter()


def _require_transcription() -> None:
    if not settings.gemini_api_key:
        raise HTTPException(
            status_code=501,
            detail="Audio transcription is not configured (set GEMINI_API_KEY).",
        )


async def _read_upload(file: UploadFile) -> bytes:
    """Read the upload, enforcing the size limit."""
    max_bytes = settings.max_upload_mb * 1024 * 1024
    raw = await file.read()
    if len(raw) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.max_upload_mb} MB.",
        )
    return raw


async def _process(engine: ConsolidationEngine, envelope: ChunkEnvelope) -> ChunkResult:
    """Run the synchronous engine in a thread and map its errors to HTTP codes."""
    try:
        return await asyncio.to_thread(engine.process_chunk, envelope)
    except ChunkValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SessionCompleteError as exc:
        # Mutating a finalized session would silently change a payload
        # clients may already have consumed.
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ConcurrencyConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc
    except RetryExhaustedError as exc:
        # Upstream outage or persistently malformed output: safe to resubmit.
        raise HTTPException(
            status_code=503,
            detail=f"Transcription service unavailable: {exc}",
        ) from exc


@router.post("/api/ingest/chunk", response_model=ChunkResponse)
async def ingest_chunk(
    file: Annotated[UploadFile, File(...)],
    engine: Annotated[ConsolidationEngine, Depends(get_engine)],
    sequence_number: Annotated[int, Form()],
    session_id: Annotated[str | None, Form()] = None,
    is_final: Annotated[bool, Form()] = False,
    mime: Annotated[str | None, Form()] = None,
    offset_ms: Annotated[int | None, Form()] = None,
    storage_handle: Annotated[str | None, Form()] = None,
) -> ChunkResponse:
    """Submit one chunk of a recording.

    The first chunk may omit ``session_id``; a new session is created and its
    id returned. Resubmitting an already-applied ``sequence_number`` is a
    no-op (``duplicate=true``). The chunk with ``is_final=true`` finalizes the
    session; later chunks are rejected with 409.

    ``offset_ms`` rebases this chunk's line timestamps onto the session
    timeline; without it timestamps stay relative to the chunk start.
    ``storage_handle`` is an opaque reference to where the caller stored the
    audio bytes; it is kept on the chunk metadata as-is.
    """
    _require_transcription()
    raw = await _read_upload(file)

    envelope = ChunkEnvelope(
        sequence_number=sequence_number,
        audio=raw,
        session_id=session_id or None,
        is_final=is_final,
        mime=mime or file.content_type,
        offset_ms=offset_ms,
        storage_handle=storage_handle or None,
    )
    result = await _process(engine, envelope)

    return ChunkResponse(
        session_id=result.session.session_id,
        sequence_number=result.sequence_number,
        is_complete=result.session.is_complete,
        duplicate=result.duplicate,
        ignored=result.ignored,
        warnings=result.degraded,
        session=session_detail(result.session),
    )


@router.post("/api/transcribe", response_model=SessionDetail)
async def transcribe_recording(
    file: Annotated[UploadFile, File(...)],
    engine: Annotated[ConsolidationEngine, Depends(get_engine)],
) -> SessionDetail:
    """Transcribe a whole recording in one call.

    The file is treated as the first and final chunk of a new session.
    """
    _require_transcription()
    raw = await _read_upload(file)

    envelope = ChunkEnvelope(
        sequence_number=1,
        audio=raw,
        is_final=True,
        mime=file.content_type,
    )
    result = await _process(engine, envelope)
    return session_detail(result.session)
