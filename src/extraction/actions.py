"""Action-item deduplication: cheap syntactic pass and a semantic finalization pass."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from src.pipeline_config import RetryPolicy
from src.retry import with_retries

if TYPE_CHECKING:
    from src.extraction.merger import ActionMerger

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_PUNCT_RE = re.compile(r"[.!?:;,\-]+$")


@dataclass
class ActionDedupe:
    """Deduplicated actions and whether the semantic pass fell back."""

    actions: list[str] = field(default_factory=list)
    degraded: bool = False


def action_key(item: str) -> str:
    """Comparison key: collapsed whitespace, no trailing punctuation, lower case."""
    collapsed = _WHITESPACE_RE.sub(" ", item.strip())
    return _TRAILING_PUNCT_RE.sub("", collapsed).strip().lower()


def dedupe_actions(items: Iterable[str | None]) -> list[str]:
    """Drop empty and repeated action items, keeping the first phrasing seen.

    ``dedupe_actions(dedupe_actions(x)) == dedupe_actions(x)``.
    """
    seen: set[str] = set()
    out: list[str] = []
    for raw in items:
        item = (raw or "").strip()
        if not item:
            continue
        key = action_key(item)
        if key not in seen:
            seen.add(key)
            out.append(item)
    return out


def append_actions(existing: list[str], new: Iterable[str | None]) -> list[str]:
    """Per-chunk accumulation: existing items first, then unseen new ones."""
    return dedupe_actions([*existing, *new])


def semantic_dedupe_actions(
    items: Iterable[str | None],
    merger: ActionMerger | None = None,
    policy: RetryPolicy | None = None,
) -> ActionDedupe:
    """Merge semantically equivalent action items.

    Runs once per session at finalization. Any failure, or a response that
    is not a non-empty list of strings, falls back to the syntactic baseline.

    Args:
        items: Raw accumulated action items.
        merger: Semantic dedup collaborator; ``None`` means baseline only.
        policy: Retry budget for the collaborator call.

    Returns:
        ActionDedupe with the final list.
    """
    flat = [item.strip() for item in items if item and item.strip()]
    if not flat:
        return ActionDedupe([])

    baseline = dedupe_actions(flat)
    if merger is None:
        return ActionDedupe(baseline)

    try:
        merged = with_retries(lambda: merger.merge(flat, baseline), "dedupe_actions", policy)
    except Exception:
        logger.exception("Semantic action dedupe failed; using syntactic baseline")
        return ActionDedupe(baseline, degraded=True)

    if not isinstance(merged, list) or not all(isinstance(x, str) for x in merged):
        logger.warning("Semantic action dedupe returned a non-list; using syntactic baseline")
        return ActionDedupe(baseline, degraded=True)

    result = dedupe_actions(merged)
    if not result:
        logger.warning("Semantic action dedupe returned no items; using syntactic baseline")
        return ActionDedupe(baseline, degraded=True)
    return ActionDedupe(result)
