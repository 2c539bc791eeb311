"""Fold a chunk summary into the cumulative session summary."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.pipeline_config import RetryPolicy
from src.retry import with_retries

if TYPE_CHECKING:
    from src.extraction.merger import SummaryMerger

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


@dataclass
class SummaryMerge:
    """Merged summary text and whether the semantic merge had to be skipped."""

    text: str
    degraded: bool = False


def deterministic_merge(previous: str, current: str) -> str:
    """Concatenate, split into sentences and drop case-insensitive repeats.

    The first occurrence of each sentence wins and the original order is
    kept, so no sentence from either input is lost.
    """
    text = " ".join(part for part in (previous, current) if part)
    sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(text)]

    seen: set[str] = set()
    deduped: list[str] = []
    for sentence in sentences:
        if not sentence:
            continue
        key = sentence.lower()
        if key not in seen:
            seen.add(key)
            deduped.append(sentence)
    return " ".join(deduped)


def merge_summaries(
    previous: str,
    current: str,
    merger: SummaryMerger | None = None,
    policy: RetryPolicy | None = None,
) -> SummaryMerge:
    """Merge the running summary with a new chunk summary.

    Args:
        previous: Cumulative summary so far (may be empty).
        current: Summary of the newly processed chunk (may be empty).
        merger: Semantic merge collaborator. When ``None`` the deterministic
            merge is used directly.
        policy: Retry budget for the semantic merge call.

    Returns:
        SummaryMerge; ``degraded`` is True when the semantic merge failed or
        returned nothing usable and the deterministic merge was used instead.
    """
    a = (previous or "").strip()
    b = (current or "").strip()

    if not a and not b:
        return SummaryMerge("")
    if not a:
        return SummaryMerge(current)
    if not b:
        return SummaryMerge(previous)

    if merger is None:
        return SummaryMerge(deterministic_merge(a, b))

    try:
        merged = with_retries(lambda: merger.merge(a, b), "merge_summaries", policy)
    except Exception:
        logger.exception("Semantic summary merge failed; using deterministic merge")
        return SummaryMerge(deterministic_merge(a, b), degraded=True)

    merged = (merged or "").strip()
    if not merged:
        logger.warning("Semantic summary merge returned nothing; using deterministic merge")
        return SummaryMerge(deterministic_merge(a, b), degraded=True)
    return SummaryMerge(merged)
