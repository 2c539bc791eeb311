"""Session-wide speaker registry: append-only, keyed on label identity."""

from __future__ import annotations

import re
from collections.abc import Iterable

from src.ingestion.models import TranscriptLine

DEFAULT_SPEAKER = "Speaker 1"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_label(label: str | None) -> str:
    """Collapse whitespace in a speaker label; blank labels become ``Speaker 1``."""
    cleaned = _WHITESPACE_RE.sub(" ", label or "").strip()
    return cleaned or DEFAULT_SPEAKER


def chunk_labels(lines: Iterable[TranscriptLine]) -> list[str]:
    """Distinct speaker labels of a chunk in first-appearance order."""
    return list(dict.fromkeys(line.speaker for line in lines))


def reconcile_speakers(registry: list[str], labels: Iterable[str]) -> list[str]:
    """Return the registry extended with any labels it does not know yet.

    Existing entries keep their position and value. No voice matching is
    done here; two chunks that use the same label are assumed to mean the
    same speaker.
    """
    updated = list(registry)
    known = set(updated)
    for label in labels:
        if label not in known:
            known.add(label)
            updated.append(label)
    return updated
