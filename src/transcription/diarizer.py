"""AssemblyAI speaker diarization: an independent speaker-boundary signal."""

from __future__ import annotations

import string
from typing import Any, Protocol

import assemblyai as aai  # type: ignore[import-untyped]  # no stubs

from src.ingestion.models import DiarizationSegment


class DiarizationError(RuntimeError):
    """AssemblyAI rejected the audio or returned an error status."""


class Diarizer(Protocol):
    def diarize(self, audio: bytes, mime: str | None) -> list[DiarizationSegment]: ...


def speaker_label(raw: Any) -> str:
    """Map AssemblyAI speaker ids ("A", "B", ... or 0, 1, ...) to "Speaker N"."""
    value = str(raw).strip().upper()
    if len(value) == 1 and value in string.ascii_uppercase:
        return f"Speaker {string.ascii_uppercase.index(value) + 1}"
    if value.isdigit():
        return f"Speaker {int(value) + 1}"
    return f"Speaker {value}"


class AssemblyAIDiarizer:
    """Run AssemblyAI with speaker labels and keep only the speaker timeline."""

    def __init__(self, api_key: str) -> None:
        aai.settings.api_key = api_key
        # speech_models is required by the current AssemblyAI API.
        # speaker_labels=True enables diarization; utterances carry the boundaries.
        self._config = aai.TranscriptionConfig(
            speech_models=["universal-3-pro"],
            speaker_labels=True,
        )

    def diarize(self, audio: bytes, mime: str | None) -> list[DiarizationSegment]:
        """Return speaker segments in milliseconds on the chunk timeline.

        The mime hint is not needed; AssemblyAI sniffs the container itself.
        """
        transcript = aai.Transcriber().transcribe(audio, config=self._config)
        if transcript.status == aai.TranscriptStatus.error:
            raise DiarizationError(f"Diarization failed: {transcript.error}")

        return [
            DiarizationSegment(
                speaker=speaker_label(u.speaker),
                start_ms=int(u.start or 0),
                end_ms=int(u.end or 0),
            )
            for u in transcript.utterances or []
        ]
