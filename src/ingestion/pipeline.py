"""Chunk consolidation: transcribe -> align -> reconcile -> merge -> save."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace

from src.extraction.actions import append_actions, semantic_dedupe_actions
from src.extraction.merger import ActionMerger, SummaryMerger
from src.extraction.summary import merge_summaries
from src.ingestion.models import (
    AudioChunk,
    ChunkEnvelope,
    ChunkTranscription,
    DiarizationSegment,
    Session,
    TranscriptLine,
)
from src.ingestion.storage import (
    SessionExistsError,
    SessionNotFoundError,
    SessionStore,
    VersionConflictError,
)
from src.pipeline_config import CompletedSessionPolicy, ConsolidationConfig
from src.reconciliation.alignment import align_diarization
from src.reconciliation.speakers import chunk_labels, normalize_label, reconcile_speakers
from src.retry import with_retries
from src.transcription.diarizer import Diarizer
from src.transcription.transcriber import Transcriber

logger = logging.getLogger(__name__)


class ChunkValidationError(ValueError):
    """The chunk envelope is unusable; nothing was changed."""


class SessionCompleteError(Exception):
    """A chunk arrived for a session that has already been finalized."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} is already complete")
        self.session_id = session_id


class ConcurrencyConflictError(Exception):
    """The session kept changing underneath us and the save never landed."""

    def __init__(self, session_id: str, attempts: int) -> None:
        super().__init__(
            f"Session {session_id} could not be saved after {attempts} conflicting writes"
        )
        self.session_id = session_id
        self.attempts = attempts


@dataclass
class ChunkResult:
    """Outcome of one ``process_chunk`` call.

    ``degraded`` names the merge steps that fell back to their deterministic
    path; the chunk's lines were still saved.
    """

    session: Session
    sequence_number: int
    duplicate: bool = False
    ignored: bool = False
    degraded: list[str] = field(default_factory=list)


def generate_session_id() -> str:
    return str(uuid.uuid4())


def validate_envelope(envelope: ChunkEnvelope) -> None:
    """Reject unusable input before any side effect.

    Raises:
        ChunkValidationError: Missing audio, bad sequence number or offset.
    """
    if not envelope.audio:
        raise ChunkValidationError("Missing audio payload")
    if isinstance(envelope.sequence_number, bool) or envelope.sequence_number < 1:
        raise ChunkValidationError(
            f"sequence_number must be a positive integer, got {envelope.sequence_number!r}"
        )
    if envelope.offset_ms is not None and envelope.offset_ms < 0:
        raise ChunkValidationError(f"offset_ms must not be negative, got {envelope.offset_ms}")
    if envelope.session_id is not None and not envelope.session_id.strip():
        raise ChunkValidationError("session_id must not be blank")


def prepare_lines(
    transcription: ChunkTranscription,
    segments: list[DiarizationSegment],
    sequence_number: int,
    offset_ms: int | None = None,
) -> list[TranscriptLine]:
    """Align speakers, normalize labels, rebase timestamps and tag the chunk."""
    aligned = align_diarization(segments, transcription.lines)
    shift = offset_ms or 0
    return [
        replace(
            line,
            speaker=normalize_label(line.speaker),
            start_ms=line.start_ms + shift,
            end_ms=line.end_ms + shift,
            sequence_number=sequence_number,
        )
        for line in aligned
    ]


class ConsolidationEngine:
    """Applies chunks to session records.

    All collaborators are passed in. Remote calls happen outside any lock;
    the only serialization point is the store's versioned ``save``, and a
    lost race re-reads the session and re-applies the chunk.
    """

    def __init__(
        self,
        store: SessionStore,
        transcriber: Transcriber,
        diarizer: Diarizer | None = None,
        summary_merger: SummaryMerger | None = None,
        action_merger: ActionMerger | None = None,
        config: ConsolidationConfig | None = None,
    ) -> None:
        self.store = store
        self.transcriber = transcriber
        self.diarizer = diarizer
        self.summary_merger = summary_merger
        self.action_merger = action_merger
        self.config = config or ConsolidationConfig()

    def process_chunk(self, envelope: ChunkEnvelope) -> ChunkResult:
        """Consolidate one chunk into its session.

        Args:
            envelope: The submitted chunk. A missing ``session_id`` starts a
                new session with a generated id.

        Returns:
            ChunkResult holding the saved session.

        Raises:
            ChunkValidationError: Bad input; nothing changed.
            SessionCompleteError: The session is finalized (reject policy).
            RetryExhaustedError: Transcription or diarization kept failing;
                the session is untouched and the chunk can be resubmitted.
            ConcurrencyConflictError: The save lost too many races.
            SessionNotFoundError: The session was removed while the chunk was
                in flight.
        """
        validate_envelope(envelope)
        session_id = envelope.session_id or generate_session_id()
        seq = envelope.sequence_number

        existing = self.store.find(session_id)
        if existing is not None:
            early = self._guard(existing, seq)
            if early is not None:
                return early
        known_speakers = list(existing.speakers) if existing else []
        prior_summary = existing.summary if existing else ""

        transcription = with_retries(
            lambda: self.transcriber.transcribe(
                envelope.audio,
                envelope.mime,
                known_speakers=known_speakers,
                prior_summary=prior_summary,
            ),
            f"transcribe(session={session_id}, chunk={seq})",
            self.config.retry,
        )
        segments: list[DiarizationSegment] = []
        if self.diarizer is not None:
            diarizer = self.diarizer
            segments = with_retries(
                lambda: diarizer.diarize(envelope.audio, envelope.mime),
                f"diarize(session={session_id}, chunk={seq})",
                self.config.retry,
            )

        lines = prepare_lines(transcription, segments, seq, envelope.offset_ms)

        # Created only once every collaborator result is in hand, so a failed
        # first chunk leaves no empty session behind.
        session = self._load_or_create(session_id)
        for attempt in range(1, self.config.max_save_conflicts + 1):
            if attempt > 1:
                reread = self.store.find(session_id)
                if reread is None:
                    raise SessionNotFoundError(session_id)
                session = reread
            early = self._guard(session, seq)
            if early is not None:
                return early

            updated, degraded = self._apply(session, envelope, lines, transcription)
            try:
                saved = self.store.save(updated, expected_version=session.version)
            except VersionConflictError:
                logger.warning(
                    "Save conflict for session %s chunk %d (attempt %d/%d)",
                    session_id,
                    seq,
                    attempt,
                    self.config.max_save_conflicts,
                )
                continue

            logger.info(
                "Applied chunk %d to session %s: %d lines, %d speakers, complete=%s",
                seq,
                session_id,
                len(lines),
                len(saved.speakers),
                saved.is_complete,
            )
            if degraded:
                logger.warning("Chunk %d of session %s degraded: %s", seq, session_id, degraded)
            return ChunkResult(session=saved, sequence_number=seq, degraded=degraded)

        raise ConcurrencyConflictError(session_id, self.config.max_save_conflicts)

    def _load_or_create(self, session_id: str) -> Session:
        session = self.store.find(session_id)
        if session is not None:
            return session
        try:
            session = self.store.create(session_id)
            logger.info("Created session %s", session_id)
            return session
        except SessionExistsError:
            # Another chunk created it between our read and insert.
            existing = self.store.find(session_id)
            if existing is None:
                raise SessionNotFoundError(session_id)
            return existing

    def _guard(self, session: Session, seq: int) -> ChunkResult | None:
        """Short-circuit finalized sessions and already-applied chunks."""
        if session.is_complete:
            if self.config.completed_session_policy is CompletedSessionPolicy.IGNORE:
                logger.info("Ignoring chunk %d for completed session %s", seq, session.session_id)
                return ChunkResult(session=session, sequence_number=seq, ignored=True)
            raise SessionCompleteError(session.session_id)
        if session.has_chunk(seq):
            logger.info("Chunk %d already applied to session %s", seq, session.session_id)
            return ChunkResult(session=session, sequence_number=seq, duplicate=True)
        return None

    def _apply(
        self,
        session: Session,
        envelope: ChunkEnvelope,
        lines: list[TranscriptLine],
        transcription: ChunkTranscription,
    ) -> tuple[Session, list[str]]:
        """Compute the next session state for this chunk without saving it."""
        degraded: list[str] = []

        summary = merge_summaries(
            session.summary, transcription.summary, self.summary_merger, self.config.retry
        )
        if summary.degraded:
            degraded.append("summary_merge")

        actions = append_actions(session.actions, transcription.actions)
        if envelope.is_final:
            final = semantic_dedupe_actions(actions, self.action_merger, self.config.retry)
            actions = final.actions
            if final.degraded:
                degraded.append("action_dedupe")

        chunk = AudioChunk(
            sequence_number=envelope.sequence_number,
            mime=envelope.mime,
            size_bytes=len(envelope.audio),
            storage_handle=envelope.storage_handle,
        )
        updated = replace(
            session,
            transcript=[*session.transcript, *lines],
            speakers=reconcile_speakers(session.speakers, chunk_labels(lines)),
            summary=summary.text,
            actions=actions,
            is_complete=session.is_complete or envelope.is_final,
            audio_chunks=[*session.audio_chunks, chunk],
        )
        return updated, degraded
