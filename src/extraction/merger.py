"""Claude-powered semantic merge collaborators for summaries and action items."""

from __future__ import annotations

import json
from typing import Any, Protocol

from anthropic import Anthropic
from anthropic.types import TextBlock

from src.transcription.schemas import MalformedResponseError, parse_action_list


class SummaryMerger(Protocol):
    def merge(self, previous: str, current: str) -> str: ...


class ActionMerger(Protocol):
    def merge(self, raw: list[str], baseline: list[str]) -> list[str]: ...


SUMMARY_SYSTEM_PROMPT = (
    "You merge meeting summaries. You are given two summaries (A = earlier, "
    "B = newer). Merge them into ONE concise summary that:\n"
    "- PRESERVES ALL factual details from A and B (do NOT drop unique info).\n"
    "- Removes redundancy and contradictions; if conflicts exist, prefer wording "
    "that encompasses both.\n"
    "- Is neutral, specific, and readable.\n"
    "- Is 2-6 sentences. No bullets, no headings. Return PLAIN TEXT only."
)

ACTIONS_TOOL: dict[str, Any] = {
    "name": "store_actions",
    "description": "Store the deduplicated list of action items. Call this exactly once.",
    "input_schema": {
        "type": "object",
        "properties": {
            "actions": {
                "type": "array",
                "description": "Deduplicated action items, one imperative line each.",
                "items": {"type": "string"},
            },
        },
        "required": ["actions"],
    },
}

ACTIONS_SYSTEM_PROMPT = (
    "You are given a list of action items from one meeting. Create a single "
    "deduplicated list where:\n"
    "- Semantically similar items are merged into ONE clear, imperative line.\n"
    "- All distinct tasks are kept.\n"
    "- Phrasing stays concise and specific.\n"
    "Use the store_actions tool to return the list."
)


class ClaudeSummaryMerger:
    """Merge two summaries with Claude, returning plain prose."""

    def __init__(self, client: Anthropic, model: str) -> None:
        self._client = client
        self._model = model

    def merge(self, previous: str, current: str) -> str:
        response = self._client.messages.create(
            model=self._model,
            max_tokens=1024,
            temperature=0.2,
            system=SUMMARY_SYSTEM_PROMPT,
            messages=[
                {
                    "role": "user",
                    "content": f"Summary A:\n{previous}\n\nSummary B:\n{current}",
                }
            ],
        )

        # We request plain text, so the first block should be a TextBlock.
        block = response.content[0]
        if not isinstance(block, TextBlock):
            raise MalformedResponseError(
                f"Expected TextBlock from Claude, got {type(block).__name__}"
            )
        return block.text.strip()


class ClaudeActionMerger:
    """Semantic action dedup through a forced tool call."""

    def __init__(self, client: Anthropic, model: str) -> None:
        self._client = client
        self._model = model

    def merge(self, raw: list[str], baseline: list[str]) -> list[str]:
        response = self._client.messages.create(
            model=self._model,
            max_tokens=2048,
            temperature=0.2,
            system=ACTIONS_SYSTEM_PROMPT,
            tools=[ACTIONS_TOOL],
            tool_choice={"type": "tool", "name": "store_actions"},
            messages=[
                {
                    "role": "user",
                    "content": (
                        f"Raw actions:\n{json.dumps(raw, indent=2)}\n\n"
                        "A simple baseline (already deduped by surface form) you may refine:\n"
                        f"{json.dumps(baseline, indent=2)}"
                    ),
                }
            ],
        )
        return _parse_tool_response(response)


def _parse_tool_response(response: Any) -> list[str]:
    """Pull the validated action list out of the store_actions tool_use block."""
    for block in response.content:
        if block.type != "tool_use":
            continue
        if block.name != "store_actions":
            continue
        return parse_action_list(block.input)

    raise MalformedResponseError("Claude response contained no store_actions tool call")
