"""Builds the consolidation engine once per process from settings."""

from __future__ import annotations

import logging
from functools import lru_cache

from anthropic import Anthropic

from src.config import Settings, settings
from src.extraction.merger import ClaudeActionMerger, ClaudeSummaryMerger
from src.ingestion.pipeline import ConsolidationEngine
from src.ingestion.storage import (
    InMemorySessionStore,
    SessionStore,
    SupabaseSessionStore,
    get_supabase_client,
)
from src.pipeline_config import ConsolidationConfig, SessionStoreBackend
from src.transcription.diarizer import AssemblyAIDiarizer
from src.transcription.transcriber import GeminiTranscriber

logger = logging.getLogger(__name__)


def build_store(cfg: Settings) -> SessionStore:
    backend = SessionStoreBackend(cfg.session_store)
    if backend is SessionStoreBackend.SUPABASE:
        return SupabaseSessionStore(get_supabase_client())
    return InMemorySessionStore()


def build_engine(cfg: Settings) -> ConsolidationEngine:
    """Wire collaborators from settings.

    Missing optional keys degrade gracefully: no AssemblyAI key means no
    diarization signal, no Anthropic key means deterministic merges only.
    """
    diarizer = None
    if cfg.diarization_enabled and cfg.assemblyai_api_key:
        diarizer = AssemblyAIDiarizer(cfg.assemblyai_api_key)
    else:
        logger.info("Diarization disabled; using transcription speaker labels only")

    summary_merger = action_merger = None
    if cfg.anthropic_api_key:
        client = Anthropic(api_key=cfg.anthropic_api_key)
        summary_merger = ClaudeSummaryMerger(client, cfg.llm_model)
        action_merger = ClaudeActionMerger(client, cfg.llm_model)
    else:
        logger.info("ANTHROPIC_API_KEY not set; summaries and actions merge deterministically")

    return ConsolidationEngine(
        store=build_store(cfg),
        transcriber=GeminiTranscriber(cfg.gemini_api_key, cfg.transcription_model),
        diarizer=diarizer,
        summary_merger=summary_merger,
        action_merger=action_merger,
        config=ConsolidationConfig.from_settings(cfg),
    )


@lru_cache(maxsize=1)
def get_engine() -> ConsolidationEngine:
    """FastAPI dependency; tests replace it via ``app.dependency_overrides``."""
    return build_engine(settings)
