from __future__ import annotations

import math
import os
from typing import Iterable, Optional

from common.schemas import TranscriptionResult, TranscriptSegment


def format_timestamp(seconds: float) -> str:
    """Render seconds as ``HH:MM:SS``, dropping fractions."""
    total = max(0, math.floor(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def list_speakers(segments: Iterable[TranscriptSegment]) -> list[str]:
    """Distinct speaker labels in order of first appearance."""
    seen: dict[str, None] = {}
    for seg in segments:
        if seg.speaker:
            seen.setdefault(seg.speaker, None)
    return list(seen)


def filter_segments(
    segments: Iterable[TranscriptSegment],
    search: Optional[str] = None,
    speaker: Optional[str] = None,
) -> list[TranscriptSegment]:
    needle = (search or "").lower()
    return [
        seg
        for seg in segments
        if needle in seg.text.lower() and (not speaker or speaker == "all" or seg.speaker == speaker)
    ]


def render_text(segments: Iterable[TranscriptSegment]) -> str:
    blocks = []
    for seg in segments:
        parts = [f"[{format_timestamp(seg.start_time)} - {format_timestamp(seg.end_time)}]"]
        if seg.speaker:
            parts.append(f"[{seg.speaker}]")
        parts.append(seg.text)
        blocks.append(" ".join(parts))
    return "\n\n".join(blocks)


def export_file_name(file_name: str) -> str:
    base, _ext = os.path.splitext(os.path.basename(file_name) or "transcription")
    return f"{base}_transcription.txt"


def export_result(
    result: TranscriptionResult,
    search: Optional[str] = None,
    speaker: Optional[str] = None,
) -> tuple[str, str]:
    """Return ``(file_name, text)`` for a downloadable plain-text transcript."""
    segments = filter_segments(result.segments, search=search, speaker=speaker)
    return export_file_name(result.file_name), render_text(segments)
