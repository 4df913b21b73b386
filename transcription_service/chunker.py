from __future__ import annotations

from common.errors import InvalidInputError
from transcription_service.models import AudioChunk

DEFAULT_WINDOW_S = 300.0


def split_windows(duration: float, window_size: float = DEFAULT_WINDOW_S) -> list[tuple[float, float]]:
    """Tile ``[0, duration)`` with contiguous windows of ``window_size`` seconds.

    The last window is shorter when ``duration`` is not a multiple of
    ``window_size``.
    """
    if duration <= 0:
        raise InvalidInputError(f"Duration must be positive, got {duration}")
    if window_size <= 0:
        raise InvalidInputError(f"Window size must be positive, got {window_size}")

    windows: list[tuple[float, float]] = []
    index = 0
    # Offsets are derived from the index so long recordings do not drift and
    # each window ends exactly where the next one starts.
    start = 0.0
    while start < duration:
        end = min((index + 1) * window_size, duration)
        windows.append((start, end))
        index += 1
        start = end
    return windows


def plan_chunks(source_ref: str, duration: float, window_size: float = DEFAULT_WINDOW_S) -> list[AudioChunk]:
    return [
        AudioChunk(index=i, source_ref=source_ref, start_offset_s=start, end_offset_s=end)
        for i, (start, end) in enumerate(split_windows(duration, window_size))
    ]
