"""Session endpoints: list and detail views."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import get_engine
from src.api.models import SessionDetail, SessionSummary, session_detail, session_summary
from src.ingestion.pipeline import ConsolidationEngine

router = APIRouter()


@router.get("/api/sessions", response_model=list[SessionSummary])
async def list_sessions(
    engine: Annotated[ConsolidationEngine, Depends(get_engine)],
) -> list[SessionSummary]:
    """List all sessions ordered by creation date (newest first)."""
    return [session_summary(s) for s in engine.store.list_sessions()]


@router.get("/api/sessions/{session_id}", response_model=SessionDetail)
async def get_session(
    session_id: str,
    engine: Annotated[ConsolidationEngine, Depends(get_engine)],
) -> SessionDetail:
    """Get the full session, with the transcript in chunk order."""
    session = engine.store.find(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session_detail(session)
