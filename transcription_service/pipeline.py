from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import tempfile
import uuid
from pathlib import Path
from typing import AsyncIterator, Callable, Protocol

from common.config import TranscriptionSettings
from common.errors import InvalidInputError, PipelineFatalError, TranscriptorError
from common.schemas import (
    CompleteEvent,
    ErrorEvent,
    PipelineEvent,
    ProgressEvent,
    ProgressStage,
    TranscriptionResult,
    TranscriptionStatus,
    TranscriptSegment,
)
from transcription_service.audio import FfmpegAudioTool
from transcription_service.chunker import plan_chunks
from transcription_service.export import format_timestamp
from transcription_service.models import AudioChunk
from transcription_service.parser import ResponseParser
from transcription_service.prompts import build_transcription_prompt

logger = logging.getLogger(__name__)

CHUNK_MIME_TYPE = "audio/wav"
GENERIC_ERROR_MESSAGE = "Error while processing the audio file"


class Transcriber(Protocol):
    async def transcribe(self, audio_bytes: bytes, mime_type: str, prompt: str) -> str: ...


def _progress(stage: ProgressStage, message: str, percent: float) -> ProgressEvent:
    return ProgressEvent(stage=stage, message=message, percent_complete=round(percent, 1))


class TranscriptionPipeline:
    """Normalize, chunk, transcribe and parse one uploaded recording.

    Chunks are transcribed strictly one after another so segments are
    appended in chunk order. A failing chunk is logged and skipped; only a
    failure to decode or measure the whole recording aborts the run.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        settings: TranscriptionSettings | None = None,
        audio: FfmpegAudioTool | None = None,
        parser: ResponseParser | None = None,
    ) -> None:
        self.settings = settings or TranscriptionSettings()
        self.transcriber = transcriber
        self.audio = audio or FfmpegAudioTool(self.settings)
        self.parser = parser or ResponseParser(
            timestamp_grammar=self.settings.timestamp_grammar,
            speaker_label=self.settings.speaker_label,
        )
        self.prompt = build_transcription_prompt(
            language=self.settings.source_language,
            speaker_label=self.settings.speaker_label,
            timestamp_grammar=self.settings.timestamp_grammar,
        )

    async def run(
        self,
        source_path: str,
        file_name: str,
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> TranscriptionResult:
        """Run the whole pipeline and return only the final result.

        ``on_progress`` receives every progress event as it happens.
        """
        result: TranscriptionResult | None = None
        async for event in self.stream(source_path, file_name):
            if isinstance(event, ProgressEvent):
                if on_progress is not None:
                    on_progress(event)
            elif isinstance(event, CompleteEvent):
                result = event.data
            elif isinstance(event, ErrorEvent):
                result = TranscriptionResult(
                    id=str(uuid.uuid4()),
                    file_name=file_name,
                    status=TranscriptionStatus.error,
                    error=event.error,
                )
        if result is None:
            raise RuntimeError(f"Transcription stream for {file_name} ended without a result")
        return result

    async def stream(self, source_path: str, file_name: str) -> AsyncIterator[PipelineEvent]:
        """Yield progress events, then exactly one ``complete`` or ``error`` event."""
        work_dir: str | None = None
        try:
            os.makedirs(self.settings.temp_dir, exist_ok=True)
            work_dir = tempfile.mkdtemp(prefix="job-", dir=self.settings.temp_dir)

            yield _progress(ProgressStage.start, "Converting audio...", 10)
            normalized = await self._normalize(source_path, work_dir, file_name)

            yield _progress(ProgressStage.normalized, "Analyzing audio duration...", 20)
            duration = await self._probe_duration(normalized, file_name)

            yield _progress(ProgressStage.duration, f"Detected duration: {format_timestamp(duration)}", 30)
            yield _progress(ProgressStage.chunking, "Splitting audio into segments for processing...", 40)
            try:
                chunks = plan_chunks(normalized, duration, self.settings.chunk_window_s)
            except InvalidInputError as exc:
                raise PipelineFatalError("The audio file has no measurable duration") from exc

            total = len(chunks)
            yield _progress(ProgressStage.chunked, f"Audio split into {total} segments", 50)

            segments: list[TranscriptSegment] = []
            failed = 0
            for chunk in chunks:
                yield _progress(
                    ProgressStage.transcribing,
                    f"Transcribing segment {chunk.index + 1}/{total}...",
                    50 + (chunk.index / total) * 40,
                )
                chunk_segments = await self._transcribe_chunk(chunk, work_dir, file_name)
                if chunk_segments is None:
                    failed += 1
                    continue
                segments.extend(chunk_segments)

            if failed:
                logger.warning("%s: %d of %d chunks failed and were skipped", file_name, failed, total)

            yield _progress(ProgressStage.cleanup, "Cleaning up temporary files...", 95)
            self._cleanup(work_dir)

            result = TranscriptionResult(
                id=str(uuid.uuid4()),
                file_name=file_name,
                duration=duration,
                segments=[seg.model_copy(update={"id": f"segment-{i}"}) for i, seg in enumerate(segments)],
                status=TranscriptionStatus.completed,
            )
            logger.info("%s: transcribed %d segments from %d chunks", file_name, len(segments), total)
            yield CompleteEvent(data=result)

        except PipelineFatalError as exc:
            logger.error("Transcription of %s aborted: %s", file_name, exc)
            yield ErrorEvent(error=str(exc))
        except Exception:
            logger.exception("Unexpected error while transcribing %s", file_name)
            yield ErrorEvent(error=GENERIC_ERROR_MESSAGE)
        finally:
            self._cleanup(work_dir)

    async def _normalize(self, source_path: str, work_dir: str, file_name: str) -> str:
        output = os.path.join(work_dir, "normalized.wav")
        try:
            return await asyncio.to_thread(self.audio.normalize, source_path, output)
        except subprocess.CalledProcessError as exc:
            logger.error("ffmpeg could not decode %s: %s", file_name, _stderr(exc))
            raise PipelineFatalError("The audio file could not be decoded") from exc
        except OSError as exc:
            logger.error("Audio conversion failed for %s: %s", file_name, exc)
            raise PipelineFatalError("The audio file could not be converted") from exc

    async def _probe_duration(self, path: str, file_name: str) -> float:
        try:
            return await asyncio.to_thread(self.audio.probe_duration, path)
        except (subprocess.CalledProcessError, OSError) as exc:
            logger.error("Duration detection failed for %s: %s", file_name, exc)
            raise PipelineFatalError("The audio duration could not be determined") from exc

    async def _transcribe_chunk(
        self, chunk: AudioChunk, work_dir: str, file_name: str
    ) -> list[TranscriptSegment] | None:
        """Return the chunk's segments, or None when the chunk had to be skipped."""
        chunk_path = os.path.join(work_dir, f"chunk_{chunk.index:04d}.wav")
        try:
            await asyncio.to_thread(
                self.audio.extract_chunk,
                chunk.source_ref,
                chunk.start_offset_s,
                chunk.end_offset_s,
                chunk_path,
            )
            audio_bytes = await asyncio.to_thread(Path(chunk_path).read_bytes)
            raw_text = await self.transcriber.transcribe(audio_bytes, CHUNK_MIME_TYPE, self.prompt)
            return self.parser.parse(raw_text, chunk.start_offset_s)
        except (TranscriptorError, subprocess.CalledProcessError, OSError) as exc:
            logger.warning(
                "Skipping chunk %d (%.0f-%.0fs) of %s: %s",
                chunk.index, chunk.start_offset_s, chunk.end_offset_s, file_name, exc,
            )
        except Exception:
            logger.exception("Unexpected error on chunk %d of %s; skipping", chunk.index, file_name)
        return None

    def _cleanup(self, work_dir: str | None) -> None:
        if not work_dir or not os.path.isdir(work_dir):
            return
        for entry in os.listdir(work_dir):
            path = os.path.join(work_dir, entry)
            try:
                os.remove(path)
            except OSError as exc:
                logger.warning("Could not delete temporary file %s: %s", path, exc)
        try:
            os.rmdir(work_dir)
        except OSError as exc:
            logger.warning("Could not delete temporary directory %s: %s", work_dir, exc)


def _stderr(exc: subprocess.CalledProcessError) -> str:
    stderr = exc.stderr
    if isinstance(stderr, bytes):
        stderr = stderr.decode(errors="replace")
    return (stderr or "").strip() or str(exc)
