"""Pydantic request/response schemas for the Session Consolidation API."""

from __future__ import annotations

from pydantic import BaseModel

from src.ingestion.models import Session, SessionState


class TranscriptLineResponse(BaseModel):
    """A single speaker-attributed transcript line."""

    speaker: str
    text: str
    start_ms: int
    end_ms: int
    notes: str = ""
    sequence_number: int | None = None


class AudioChunkResponse(BaseModel):
    """Metadata about one received chunk."""

    sequence_number: int
    mime: str | None = None
    size_bytes: int = 0
    storage_handle: str | None = None
    received_at: str | None = None


class SessionSummary(BaseModel):
    """Summary representation of a session for list views."""

    session_id: str
    state: SessionState
    is_complete: bool
    chunk_count: int = 0
    num_speakers: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class SessionDetail(BaseModel):
    """Full session payload: transcript in chronological order plus rollups."""

    session_id: str
    state: SessionState
    is_complete: bool
    transcript: list[TranscriptLineResponse] = []
    speakers: list[str] = []
    summary: str = ""
    actions: list[str] = []
    audio_chunks: list[AudioChunkResponse] = []
    created_at: str | None = None
    updated_at: str | None = None


class ChunkResponse(BaseModel):
    """Response body for the /api/ingest/chunk endpoint.

    ``warnings`` lists merge steps that fell back to their deterministic
    path (partial success); ``duplicate`` and ``ignored`` mark no-op calls.
    """

    session_id: str
    sequence_number: int
    is_complete: bool
    duplicate: bool = False
    ignored: bool = False
    warnings: list[str] = []
    session: SessionDetail


def session_summary(session: Session) -> SessionSummary:
    return SessionSummary(
        session_id=session.session_id,
        state=session.state,
        is_complete=session.is_complete,
        chunk_count=len(session.audio_chunks),
        num_speakers=len(session.speakers),
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


def session_detail(session: Session) -> SessionDetail:
    return SessionDetail(
        session_id=session.session_id,
        state=session.state,
        is_complete=session.is_complete,
        transcript=[
            TranscriptLineResponse(
                speaker=line.speaker,
                text=line.text,
                start_ms=line.start_ms,
                end_ms=line.end_ms,
                notes=line.notes,
                sequence_number=line.sequence_number,
            )
            for line in session.ordered_transcript()
        ],
        speakers=list(session.speakers),
        summary=session.summary,
        actions=list(session.actions),
        audio_chunks=[
            AudioChunkResponse(
                sequence_number=chunk.sequence_number,
                mime=chunk.mime,
                size_bytes=chunk.size_bytes,
                storage_handle=chunk.storage_handle,
                received_at=chunk.received_at,
            )
            for chunk in session.audio_chunks
        ],
        created_at=session.created_at,
        updated_at=session.updated_at,
    )
