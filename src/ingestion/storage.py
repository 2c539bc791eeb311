"""Session record persistence with optimistic concurrency (in-memory and Supabase)."""

from __future__ import annotations

import copy
import threading
from dataclasses import asdict, replace
from typing import Any, Protocol, cast

from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.config import settings
from src.ingestion.models import AudioChunk, Session, TranscriptLine, utc_now

# Postgres unique_violation
_UNIQUE_VIOLATION = "23505"


class SessionExistsError(Exception):
    """A session with this id already exists."""


class SessionNotFoundError(KeyError):
    """No session with this id exists."""


class VersionConflictError(Exception):
    """The stored session changed since it was read."""

    def __init__(self, session_id: str, expected_version: int) -> None:
        super().__init__(f"Session {session_id} is no longer at version {expected_version}")
        self.session_id = session_id
        self.expected_version = expected_version


class SessionStore(Protocol):
    def find(self, session_id: str) -> Session | None: ...

    def create(self, session_id: str) -> Session: ...

    def save(self, session: Session, expected_version: int) -> Session: ...

    def list_sessions(self) -> list[Session]: ...


def get_supabase_client() -> Client:
    """Create and return a Supabase client from settings."""
    return create_client(settings.supabase_url, settings.supabase_key)


def session_to_row(session: Session) -> dict[str, Any]:
    return {
        "session_id": session.session_id,
        "transcript": [asdict(line) for line in session.transcript],
        "speakers": list(session.speakers),
        "summary": session.summary,
        "actions": list(session.actions),
        "is_complete": session.is_complete,
        "audio_chunks": [asdict(chunk) for chunk in session.audio_chunks],
        "version": session.version,
        "created_at": session.created_at,
        "updated_at": session.updated_at,
    }


def session_from_row(row: dict[str, Any]) -> Session:
    return Session(
        session_id=str(row["session_id"]),
        transcript=[TranscriptLine(**line) for line in row.get("transcript") or []],
        speakers=list(row.get("speakers") or []),
        summary=row.get("summary") or "",
        actions=list(row.get("actions") or []),
        is_complete=bool(row.get("is_complete", False)),
        audio_chunks=[AudioChunk(**chunk) for chunk in row.get("audio_chunks") or []],
        version=int(row.get("version") or 0),
        created_at=row.get("created_at") or utc_now(),
        updated_at=row.get("updated_at") or utc_now(),
    )


class InMemorySessionStore:
    """Process-local store. Copies go in and out so callers never share state."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.RLock()

    def find(self, session_id: str) -> Session | None:
        with self._lock:
            stored = self._sessions.get(session_id)
            return copy.deepcopy(stored) if stored is not None else None

    def create(self, session_id: str) -> Session:
        with self._lock:
            if session_id in self._sessions:
                raise SessionExistsError(session_id)
            session = Session(session_id=session_id)
            self._sessions[session_id] = session
            return copy.deepcopy(session)

    def save(self, session: Session, expected_version: int) -> Session:
        """Compare-and-set: store ``session`` only if nothing else saved first."""
        with self._lock:
            stored = self._sessions.get(session.session_id)
            if stored is None:
                raise SessionNotFoundError(session.session_id)
            if stored.version != expected_version:
                raise VersionConflictError(session.session_id, expected_version)
            saved = replace(
                copy.deepcopy(session),
                version=expected_version + 1,
                updated_at=utc_now(),
            )
            self._sessions[session.session_id] = saved
            return copy.deepcopy(saved)

    def list_sessions(self) -> list[Session]:
        with self._lock:
            sessions = [copy.deepcopy(s) for s in self._sessions.values()]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)


class SupabaseSessionStore:
    """Sessions in the Supabase ``sessions`` table, one row per session.

    ``save`` is a conditional update on ``version``; an update that matches
    no row means another writer got there first.
    """

    table = "sessions"

    def __init__(self, client: Client) -> None:
        self._client = client

    def find(self, session_id: str) -> Session | None:
        result = (
            self._client.table(self.table).select("*").eq("session_id", session_id).execute()
        )
        # Supabase .data is typed as JSON (broad union); cast to concrete type.
        rows = cast(list[dict[str, Any]], result.data)
        return session_from_row(rows[0]) if rows else None

    def create(self, session_id: str) -> Session:
        session = Session(session_id=session_id)
        try:
            result = self._client.table(self.table).insert(session_to_row(session)).execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise SessionExistsError(session_id) from exc
            raise
        rows = cast(list[dict[str, Any]], result.data)
        return session_from_row(rows[0]) if rows else session

    def save(self, session: Session, expected_version: int) -> Session:
        row = session_to_row(session)
        row["version"] = expected_version + 1
        row["updated_at"] = utc_now()
        result = (
            self._client.table(self.table)
            .update(row)
            .eq("session_id", session.session_id)
            .eq("version", expected_version)
            .execute()
        )
        rows = cast(list[dict[str, Any]], result.data)
        if not rows:
            raise VersionConflictError(session.session_id, expected_version)
        return session_from_row(rows[0])

    def list_sessions(self) -> list[Session]:
        result = (
            self._client.table(self.table).select("*").order("created_at", desc=True).execute()
        )
        rows = cast(list[dict[str, Any]], result.data)
        return [session_from_row(row) for row in rows]
