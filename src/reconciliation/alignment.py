"""Map an independent diarization timeline onto transcribed lines by overlap."""

from __future__ import annotations

from dataclasses import replace

from src.ingestion.models import DiarizationSegment, TranscriptLine


def overlap_ms(a_start: int, a_end: int, b_start: int, b_end: int) -> int:
    """Length of the intersection of two intervals, 0 when disjoint."""
    return max(0, min(a_end, b_end) - max(a_start, b_start))


def align_diarization(
    segments: list[DiarizationSegment],
    lines: list[TranscriptLine],
) -> list[TranscriptLine]:
    """Relabel each line with the speaker of the segment it overlaps most.

    Both inputs are sorted by start time. Ties on overlap go to the segment
    that starts first; a line no segment touches keeps its own label. The
    inputs are not mutated.

    Args:
        segments: Diarization segments for one chunk.
        lines: Transcribed lines for the same chunk.

    Returns:
        New lines in start-time order.
    """
    ordered_lines = sorted(lines, key=lambda ln: ln.start_ms)
    if not segments:
        return [replace(ln) for ln in ordered_lines]

    ordered_segments = sorted(segments, key=lambda s: s.start_ms)

    aligned: list[TranscriptLine] = []
    for line in ordered_lines:
        best: DiarizationSegment | None = None
        best_overlap = 0
        for seg in ordered_segments:
            # Segments are sorted, nothing later can overlap this line.
            if seg.start_ms > line.end_ms:
                break
            ov = overlap_ms(line.start_ms, line.end_ms, seg.start_ms, seg.end_ms)
            if ov > best_overlap:
                best_overlap = ov
                best = seg
        if best is None:
            aligned.append(replace(line))
        else:
            aligned.append(replace(line, speaker=best.speaker))
    return aligned
