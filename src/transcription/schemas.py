"""Pydantic wire schemas for collaborator responses.

Collaborator output is validated here and converted into the engine's own
dataclasses, so nothing downstream depends on a provider's JSON shape.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from src.ingestion.models import ChunkTranscription, TranscriptLine


class MalformedResponseError(ValueError):
    """A collaborator response could not be parsed or violated its schema."""


class LinePayload(BaseModel):
    speaker: str = ""
    text: str
    start_ms: int = Field(default=0, ge=0)
    end_ms: int = Field(default=0, ge=0)
    notes: str | None = ""


class TranscriptionPayload(BaseModel):
    """JSON returned by the transcription model for one chunk."""

    transcript: list[LinePayload]
    summary: str = ""
    action: list[str] = []


class ActionListPayload(BaseModel):
    """Tool input returned by the semantic action dedup call."""

    actions: list[str]


# JSON schema sent along with the transcription prompt.
TRANSCRIPTION_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "transcript": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "speaker": {"type": "string"},
                    "text": {"type": "string"},
                    "start_ms": {"type": "integer"},
                    "end_ms": {"type": "integer"},
                    "notes": {"type": "string"},
                },
                "required": ["speaker", "text", "start_ms", "end_ms", "notes"],
            },
        },
        "summary": {"type": "string"},
        "action": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["transcript", "summary", "action"],
}


def strip_code_fences(raw: str) -> str:
    """Cut a ```json ... ``` wrapper down to the outermost JSON object."""
    text = raw.strip()
    if text.startswith("```"):
        first = text.find("{")
        last = text.rfind("}")
        if first != -1 and last != -1:
            text = text[first : last + 1]
    return text


def parse_transcription(raw: str) -> ChunkTranscription:
    """Validate a transcription response and convert it to a ChunkTranscription.

    Lines with blank text are dropped.

    Raises:
        MalformedResponseError: Invalid JSON or schema violation.
    """
    try:
        payload = TranscriptionPayload.model_validate_json(strip_code_fences(raw))
    except ValidationError as exc:
        raise MalformedResponseError(f"Transcription response failed validation: {exc}") from exc

    lines = [
        TranscriptLine(
            speaker=item.speaker,
            text=item.text.strip(),
            start_ms=item.start_ms,
            end_ms=max(item.end_ms, item.start_ms),
            notes=item.notes or "",
        )
        for item in payload.transcript
        if item.text.strip()
    ]
    return ChunkTranscription(
        lines=lines,
        summary=payload.summary.strip(),
        actions=[a for a in payload.action if a.strip()],
    )


def parse_action_list(data: Any) -> list[str]:
    """Validate the ``actions`` tool input (dict or JSON string).

    Raises:
        MalformedResponseError: Not an object with a list of strings.
    """
    try:
        if isinstance(data, str):
            data = json.loads(data)
        return ActionListPayload.model_validate(data).actions
    except (ValidationError, json.JSONDecodeError) as exc:
        raise MalformedResponseError(f"Action list failed validation: {exc}") from exc
