"""Replay a directory of recorded chunks through the consolidation engine."""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.api.dependencies import build_engine
from src.config import settings
from src.ingestion.models import ChunkEnvelope
from src.ingestion.pipeline import generate_session_id

MIME_BY_SUFFIX = {
    ".webm": "audio/webm",
    ".ogg": "audio/ogg",
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
}


def replay_chunks(
    chunk_dir: str,
    session_id: str | None = None,
    chunk_ms: int | None = None,
    out: str | None = None,
) -> None:
    """Submit every chunk in ``chunk_dir`` (name order), finalizing on the last.

    With ``chunk_ms`` each chunk's timestamps are rebased by ``(seq - 1) * chunk_ms``.
    """
    files = sorted(p for p in Path(chunk_dir).iterdir() if p.suffix.lower() in MIME_BY_SUFFIX)
    if not files:
        print(f"No audio chunks found in {chunk_dir}.")
        return

    engine = build_engine(settings)
    session_id = session_id or generate_session_id()
    print(f"Replaying {len(files)} chunks into session {session_id}...")

    for seq, path in enumerate(files, start=1):
        result = engine.process_chunk(
            ChunkEnvelope(
                sequence_number=seq,
                audio=path.read_bytes(),
                session_id=session_id,
                is_final=seq == len(files),
                mime=MIME_BY_SUFFIX[path.suffix.lower()],
                offset_ms=(seq - 1) * chunk_ms if chunk_ms else None,
                storage_handle=str(path),
            )
        )
        if result.duplicate:
            status = "duplicate"
        elif result.ignored:
            status = "ignored (session already complete)"
        else:
            status = "applied"
        warnings = f" (degraded: {', '.join(result.degraded)})" if result.degraded else ""
        print(f"  [{seq}/{len(files)}] {path.name} -- {status}{warnings}")

    session = result.session
    print(
        f"\nDone! {len(session.transcript)} lines, {len(session.speakers)} speakers, "
        f"{len(session.actions)} action items."
    )

    if out:
        payload = {
            "session_id": session.session_id,
            "speakers": session.speakers,
            "summary": session.summary,
            "actions": session.actions,
            "transcript": [
                {"speaker": ln.speaker, "text": ln.text, "start_ms": ln.start_ms, "end_ms": ln.end_ms}
                for ln in session.ordered_transcript()
            ],
        }
        Path(out).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Saved session -> {out}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("dir", help="Directory of chunk files")
    parser.add_argument("--session-id", default=None)
    parser.add_argument("--chunk-ms", type=int, default=None, help="Fixed chunk length for timestamp rebasing")
    parser.add_argument("--out", default=None, help="Write the final session as JSON")
    args = parser.parse_args()
    replay_chunks(args.dir, args.session_id, args.chunk_ms, args.out)
