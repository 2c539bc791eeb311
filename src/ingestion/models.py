"""Data models for chunk ingestion and the consolidated session record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


class SessionState(StrEnum):
    """Lifecycle of a session: created, receiving chunks, finalized."""

    NEW = "new"
    ACTIVE = "active"
    COMPLETE = "complete"


@dataclass
class TranscriptLine:
    """One speaker-attributed utterance.

    ``start_ms``/``end_ms`` are relative to the owning chunk unless the chunk
    was submitted with an explicit offset.
    """

    speaker: str
    text: str
    start_ms: int = 0
    end_ms: int = 0
    notes: str = ""
    sequence_number: int | None = None


@dataclass
class DiarizationSegment:
    """Speaker boundary on the same chunk timeline as the transcript lines."""

    speaker: str
    start_ms: int
    end_ms: int


@dataclass
class ChunkTranscription:
    """Validated output of the transcription collaborator for one chunk."""

    lines: list[TranscriptLine]
    summary: str = ""
    actions: list[str] = field(default_factory=list)


@dataclass
class AudioChunk:
    """Metadata about a received chunk. The audio bytes live elsewhere."""

    sequence_number: int
    mime: str | None = None
    size_bytes: int = 0
    storage_handle: str | None = None
    received_at: str = field(default_factory=utc_now)


@dataclass
class ChunkEnvelope:
    """One submitted chunk as handed to the consolidation engine."""

    sequence_number: int
    audio: bytes
    session_id: str | None = None
    is_final: bool = False
    mime: str | None = None
    offset_ms: int | None = None
    storage_handle: str | None = None


@dataclass
class Session:
    """The accumulating document for one recording across all its chunks."""

    session_id: str
    transcript: list[TranscriptLine] = field(default_factory=list)
    speakers: list[str] = field(default_factory=list)
    summary: str = ""
    actions: list[str] = field(default_factory=list)
    is_complete: bool = False
    audio_chunks: list[AudioChunk] = field(default_factory=list)
    version: int = 0
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def state(self) -> SessionState:
        if self.is_complete:
            return SessionState.COMPLETE
        if self.audio_chunks:
            return SessionState.ACTIVE
        return SessionState.NEW

    def has_chunk(self, sequence_number: int) -> bool:
        return any(c.sequence_number == sequence_number for c in self.audio_chunks)

    def ordered_transcript(self) -> list[TranscriptLine]:
        """Lines sorted by source sequence number, arrival order kept within a chunk."""
        return sorted(
            self.transcript,
            key=lambda line: line.sequence_number if line.sequence_number is not None else 0,
        )
