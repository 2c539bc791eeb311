"""Shared fixtures: an in-memory store and an engine wired with fakes."""

from __future__ import annotations

import pytest

from src.ingestion.models import ChunkTranscription
from src.ingestion.pipeline import ConsolidationEngine
from src.ingestion.storage import InMemorySessionStore
from src.pipeline_config import ConsolidationConfig
from tests.fakes import FAST_RETRY, FakeTranscriber, make_chunk


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def config() -> ConsolidationConfig:
    return ConsolidationConfig(retry=FAST_RETRY, max_save_conflicts=3)


@pytest.fixture
def default_chunks() -> dict[bytes, ChunkTranscription]:
    return {
        b"chunk-1": make_chunk(
            ("Speaker 1", "Hello everyone.", 0, 2000),
            ("Speaker 2", "Hi, thanks for joining.", 2000, 4000),
            summary="Alice proposed X.",
            actions=["Email the client."],
        ),
        b"chunk-2": make_chunk(
            ("Speaker 2", "Let's review the budget.", 0, 3000),
            ("Speaker 3", "I have the numbers.", 3000, 5000),
            summary="Bob rejected Y.",
            actions=["email the client", "Book the venue"],
        ),
    }


@pytest.fixture
def transcriber(default_chunks: dict[bytes, ChunkTranscription]) -> FakeTranscriber:
    return FakeTranscriber(default_chunks)


@pytest.fixture
def engine(
    store: InMemorySessionStore,
    config: ConsolidationConfig,
    transcriber: FakeTranscriber,
) -> ConsolidationEngine:
    return ConsolidationEngine(store=store, transcriber=transcriber, config=config)
