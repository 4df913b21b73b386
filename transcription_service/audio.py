from __future__ import annotations

import logging
import subprocess

from common.config import TranscriptionSettings

logger = logging.getLogger(__name__)


class FfmpegAudioTool:
    """Thin wrapper around the ffmpeg/ffprobe binaries.

    Every method shells out and blocks; callers in async code run them in a
    worker thread. Failures surface as ``subprocess.CalledProcessError`` or
    ``OSError`` (binary missing) and are classified by the pipeline.
    """

    def __init__(self, settings: TranscriptionSettings | None = None) -> None:
        settings = settings or TranscriptionSettings()
        self.ffmpeg = settings.ffmpeg_path
        self.ffprobe = settings.ffprobe_path
        self.sample_rate = settings.sample_rate

    def normalize(self, input_path: str, output_path: str) -> str:
        """Re-encode ``input_path`` to mono WAV at the configured sample rate."""
        cmd = [
            self.ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-i", input_path,
            "-ac", "1",
            "-ar", str(self.sample_rate),
            "-f", "wav",
            output_path,
        ]
        logger.info("Normalizing %s", input_path)
        subprocess.run(cmd, capture_output=True, check=True)
        return output_path

    def probe_duration(self, path: str) -> float:
        cmd = [
            self.ffprobe,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            path,
        ]
        result = subprocess.run(cmd, capture_output=True, check=True, text=True)
        output = result.stdout.strip()
        # ffprobe prints "N/A" for streams without a container duration
        try:
            return float(output)
        except ValueError:
            logger.warning("ffprobe returned no duration for %s: %r", path, output)
            return 0.0

    def extract_chunk(self, source_path: str, start_s: float, end_s: float, output_path: str) -> str:
        cmd = [
            self.ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-ss", f"{start_s:.3f}",
            "-t", f"{end_s - start_s:.3f}",
            "-i", source_path,
            "-f", "wav",
            output_path,
        ]
        subprocess.run(cmd, capture_output=True, check=True)
        return output_path
