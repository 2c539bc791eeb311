"""In-process fakes for the engine collaborators (no external APIs required)."""

from __future__ import annotations

import threading

from src.ingestion.models import ChunkTranscription, DiarizationSegment, TranscriptLine
from src.pipeline_config import RetryPolicy

# Zero-delay retries so failure paths don't sleep.
FAST_RETRY = RetryPolicy(attempts=2, base_delay_ms=0)


class FakeTranscriber:
    """Returns a canned ChunkTranscription keyed by the chunk's audio bytes."""

    def __init__(
        self,
        results: dict[bytes, ChunkTranscription],
        barrier: threading.Barrier | None = None,
    ) -> None:
        self.results = results
        self.barrier = barrier
        self.calls: list[dict[str, object]] = []
        self._lock = threading.Lock()

    def transcribe(
        self,
        audio: bytes,
        mime: str | None,
        known_speakers: list[str] | None = None,
        prior_summary: str = "",
    ) -> ChunkTranscription:
        with self._lock:
            self.calls.append(
                {"audio": audio, "known_speakers": list(known_speakers or []), "prior_summary": prior_summary}
            )
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        result = self.results[audio]
        if isinstance(result, Exception):
            raise result
        return result


class FailingTranscriber:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.calls = 0

    def transcribe(self, audio, mime, known_speakers=None, prior_summary=""):  # type: ignore[no-untyped-def]
        self.calls += 1
        raise self.exc


class FakeDiarizer:
    def __init__(self, segments: list[DiarizationSegment]) -> None:
        self.segments = segments

    def diarize(self, audio: bytes, mime: str | None) -> list[DiarizationSegment]:
        return list(self.segments)


class FailingDiarizer:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.calls = 0

    def diarize(self, audio: bytes, mime: str | None) -> list[DiarizationSegment]:
        self.calls += 1
        raise self.exc


class FakeSummaryMerger:
    def __init__(self, result: str | Exception = "") -> None:
        self.result = result
        self.calls: list[tuple[str, str]] = []

    def merge(self, previous: str, current: str) -> str:
        self.calls.append((previous, current))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result or f"{previous} {current}"


class FakeActionMerger:
    def __init__(self, result: list[str] | Exception | None = None) -> None:
        self.result = result
        self.calls: list[tuple[list[str], list[str]]] = []

    def merge(self, raw: list[str], baseline: list[str]) -> list[str]:
        self.calls.append((list(raw), list(baseline)))
        if isinstance(self.result, Exception):
            raise self.result
        return list(baseline) if self.result is None else list(self.result)


def make_chunk(
    *lines: tuple[str, str, int, int],
    summary: str = "",
    actions: list[str] | None = None,
) -> ChunkTranscription:
    """Build a ChunkTranscription from (speaker, text, start_ms, end_ms) tuples."""
    return ChunkTranscription(
        lines=[TranscriptLine(speaker=s, text=t, start_ms=a, end_ms=b) for s, t, a, b in lines],
        summary=summary,
        actions=actions or [],
    )


