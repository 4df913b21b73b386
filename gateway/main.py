from __future__ import annotations

import logging
import uuid
from contextlib import aclosing
from typing import Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from common.config import GatewaySettings, GeminiSettings, TranscriptionSettings
from common.errors import ValidationError
from common.schemas import ProgressEvent, TranscriptionResult, TranscriptionStatus, to_json_line
from gateway.jobs import Job, JobManager
from gateway.uploads import discard_upload, stage_upload, validate_upload
from transcription_service.export import export_result
from transcription_service.gemini_client import GeminiTranscriber
from transcription_service.pipeline import GENERIC_ERROR_MESSAGE, TranscriptionPipeline
from transcription_service.prompts import build_fallback_prompt

logger = logging.getLogger(__name__)

settings = GatewaySettings()
transcription_settings = TranscriptionSettings()
gemini_settings = GeminiSettings()

app = FastAPI(title="Chunked Transcriptor Gateway")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
manager = JobManager(max_jobs=settings.max_jobs)

_pipeline: TranscriptionPipeline | None = None


def get_pipeline() -> TranscriptionPipeline:
    global _pipeline
    if _pipeline is None:
        try:
            transcriber = GeminiTranscriber(
                gemini_settings,
                fallback_prompt=build_fallback_prompt(transcription_settings.source_language),
            )
        except ValueError as exc:
            logger.error("Cannot build transcription pipeline: %s", exc)
            raise HTTPException(status_code=500, detail="GEMINI_API_KEY is not configured")
        _pipeline = TranscriptionPipeline(transcriber, settings=transcription_settings)
    return _pipeline


@app.get("/health")
async def health():
    return {"status": "ok", "active_jobs": manager.active_count, "jobs": manager.snapshot()}


async def accepted_upload(audio: Optional[UploadFile] = File(default=None)) -> UploadFile:
    """Apply the upload policy before anything else is resolved for the request."""
    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file was provided")
    try:
        validate_upload(audio.content_type, audio.size, transcription_settings)
    except ValidationError as exc:
        logger.info("Rejected upload %s: %s", audio.filename, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return audio


async def _start_job(audio: UploadFile) -> tuple[Job, str]:
    """Register a job and stage its upload; the caller must release both."""
    file_name = audio.filename or "audio"
    try:
        job = await manager.create(job_id=uuid.uuid4().hex, file_name=file_name)
    except RuntimeError as exc:
        logger.warning("Rejecting upload %s: %s", file_name, exc)
        raise HTTPException(status_code=503, detail="Too many transcriptions in progress, try again later")

    try:
        job.upload_path = await stage_upload(audio, transcription_settings)
    except ValidationError as exc:
        await manager.remove(job.job_id)
        logger.info("Rejected upload %s: %s", file_name, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception:
        await manager.remove(job.job_id)
        raise
    return job, job.upload_path


async def _finish_job(job: Job) -> None:
    discard_upload(job.upload_path)
    await manager.remove(job.job_id)


@app.post("/api/transcribe", response_model=TranscriptionResult)
async def transcribe(
    audio: UploadFile = Depends(accepted_upload),
    pipeline: TranscriptionPipeline = Depends(get_pipeline),
):
    job, upload_path = await _start_job(audio)
    try:
        result = await pipeline.run(upload_path, job.file_name, on_progress=job.record)
    except Exception:
        logger.exception("Transcription failed for %s", job.file_name)
        raise HTTPException(status_code=500, detail=GENERIC_ERROR_MESSAGE)
    finally:
        await _finish_job(job)

    if result.status == TranscriptionStatus.error:
        return JSONResponse(status_code=500, content=result.model_dump(mode="json", by_alias=True))
    return result


@app.post("/api/transcribe/stream")
async def transcribe_stream(
    audio: UploadFile = Depends(accepted_upload),
    pipeline: TranscriptionPipeline = Depends(get_pipeline),
):
    job, upload_path = await _start_job(audio)

    async def events():
        try:
            async with aclosing(pipeline.stream(upload_path, job.file_name)) as stream:
                async for event in stream:
                    if isinstance(event, ProgressEvent):
                        job.record(event)
                    yield to_json_line(event)
        finally:
            await _finish_job(job)

    return StreamingResponse(
        events(),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache"},
    )


@app.post("/api/transcribe/export")
async def export_transcript(
    result: TranscriptionResult,
    search: Optional[str] = Query(default=None),
    speaker: Optional[str] = Query(default=None),
):
    file_name, text = export_result(result, search=search, speaker=speaker)
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_name)}"},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level)
