from pydantic_settings import BaseSettings


class GatewaySettings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["*"]
    max_jobs: int = 10
    log_level: str = "info"

    model_config = {"env_prefix": "GATEWAY_"}


class TranscriptionSettings(BaseSettings):
    chunk_window_s: float = 300.0
    max_upload_mb: int = 500
    allowed_mime_types: list[str] = [
        "audio/mpeg",
        "audio/wav",
        "audio/mp4",
        "audio/ogg",
        "audio/webm",
    ]
    temp_dir: str = "tmp"
    sample_rate: int = 16000
    timestamp_grammar: str = "mm_ss"  # or "hh_mm_ss"
    speaker_label: str = "Speaker"
    source_language: str = "Romanian"
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    model_config = {"env_prefix": "TRANSCRIPTION_"}

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


class GeminiSettings(BaseSettings):
    api_key: str = ""
    model_name: str = "gemini-2.0-flash"
    fallback_model_name: str = "gemini-1.5-pro"
    timeout_s: float = 600.0

    model_config = {"env_prefix": "GEMINI_"}
