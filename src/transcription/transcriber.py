"""Gemini-powered transcription + diarization of a single audio chunk."""

from __future__ import annotations

import json
from typing import Protocol

import google.generativeai as genai

from src.ingestion.models import ChunkTranscription
from src.transcription.schemas import TRANSCRIPTION_RESPONSE_SCHEMA, parse_transcription

DEFAULT_MIME = "audio/webm"


class TranscriptionError(RuntimeError):
    """The transcription collaborator produced no usable transcript."""


class Transcriber(Protocol):
    def transcribe(
        self,
        audio: bytes,
        mime: str | None,
        known_speakers: list[str] | None = None,
        prior_summary: str = "",
    ) -> ChunkTranscription: ...


def _known_speakers_instruction(speakers: list[str]) -> str:
    if not speakers:
        return 'No known speakers yet. Start labeling with "Speaker 1", then "Speaker 2", etc.'
    return (
        f"Known speakers so far (keep labels consistent by voice): {', '.join(speakers)}.\n"
        f'- If a new voice appears, assign the next number (e.g., "Speaker {len(speakers) + 1}").\n'
        "- Do NOT reuse a label for a different voice."
    )


def build_chunk_prompt(known_speakers: list[str], prior_summary: str) -> str:
    """Instructions sent with every chunk, including cross-chunk context."""
    prior = (
        f"Previous summary:\n{prior_summary.strip()}\n\n"
        "Use it as context to keep naming and intent consistent."
        if prior_summary.strip()
        else "No previous summary."
    )
    return (
        "You will receive an audio/video chunk that is part of a longer session.\n\n"
        f"{_known_speakers_instruction(known_speakers)}\n\n"
        f"{prior}\n\n"
        "Rules:\n"
        "- Segment into ~5-20s utterances (longer is fine if uninterrupted).\n"
        '- Label speakers exactly "Speaker 1", "Speaker 2", ...; keep them consistent by VOICE.\n'
        "- Use millisecond offsets RELATIVE TO THIS CHUNK START: start_ms, end_ms.\n"
        "- notes: non-speech events (laughter, music), acronym expansions, or important "
        'context; else "".\n'
        "- summary: 1-3 sentences about THIS CHUNK only (concise and neutral).\n"
        "- action: short list (0-6) of concrete next steps from THIS CHUNK; imperative phrasing.\n"
        "- Return ONLY valid JSON matching this schema, no prose outside the JSON:\n"
        f"{json.dumps(TRANSCRIPTION_RESPONSE_SCHEMA)}"
    )


class GeminiTranscriber:
    """Transcribe and diarize a chunk with a Gemini multimodal model."""

    def __init__(self, api_key: str, model: str) -> None:
        genai.configure(api_key=api_key)  # type: ignore[attr-defined]
        self._model = genai.GenerativeModel(  # type: ignore[attr-defined]
            model,
            generation_config={"temperature": 0.2, "response_mime_type": "application/json"},
        )

    def transcribe(
        self,
        audio: bytes,
        mime: str | None,
        known_speakers: list[str] | None = None,
        prior_summary: str = "",
    ) -> ChunkTranscription:
        """Send one chunk to Gemini and validate the structured response.

        Raises:
            MalformedResponseError: The response is not valid transcript JSON.
            TranscriptionError: The response contains no spoken lines.
        """
        prompt = build_chunk_prompt(known_speakers or [], prior_summary)
        response = self._model.generate_content(
            [prompt, {"mime_type": mime or DEFAULT_MIME, "data": audio}]
        )

        result = parse_transcription(response.text or "")
        if not result.lines:
            raise TranscriptionError("Transcription returned no intelligible speech")
        return result
