from __future__ import annotations

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire for the browser UI."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Transcript ---

class TranscriptSegment(CamelModel):
    id: str
    start_time: float
    end_time: float
    text: str
    speaker: Optional[str] = None


class TranscriptionStatus(str, Enum):
    processing = "processing"
    completed = "completed"
    error = "error"


class TranscriptionResult(CamelModel):
    id: str
    file_name: str
    duration: float = 0.0
    segments: list[TranscriptSegment] = []
    status: TranscriptionStatus = TranscriptionStatus.processing
    error: Optional[str] = None


# --- Streaming events (one JSON object per line) ---

class ProgressStage(str, Enum):
    start = "start"
    normalized = "normalized"
    duration = "duration"
    chunking = "chunking"
    chunked = "chunked"
    transcribing = "transcribing"
    cleanup = "cleanup"


class ProgressEvent(CamelModel):
    type: Literal["progress"] = "progress"
    stage: ProgressStage
    message: str
    percent_complete: float


class CompleteEvent(CamelModel):
    type: Literal["complete"] = "complete"
    data: TranscriptionResult


class ErrorEvent(CamelModel):
    type: Literal["error"] = "error"
    error: str


PipelineEvent = Union[ProgressEvent, CompleteEvent, ErrorEvent]


def to_json_line(event: PipelineEvent) -> str:
    return event.model_dump_json(by_alias=True) + "\n"
