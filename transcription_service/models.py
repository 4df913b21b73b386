"""Internal models for the chunked transcription pipeline."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AudioChunk:
    index: int
    source_ref: str
    start_offset_s: float
    end_offset_s: float

    @property
    def duration_s(self) -> float:
        return self.end_offset_s - self.start_offset_s
