from __future__ import annotations

import logging

import google.generativeai as genai

from common.config import GeminiSettings
from common.errors import TranscriptionServiceError

logger = logging.getLogger(__name__)


class GeminiTranscriber:
    """One Gemini ``generateContent`` call per audio chunk.

    A failed call is retried once against the fallback model with the short
    fallback prompt before ``TranscriptionServiceError`` is raised.
    """

    def __init__(self, settings: GeminiSettings | None = None, fallback_prompt: str | None = None) -> None:
        self.settings = settings or GeminiSettings()
        if not self.settings.api_key:
            raise ValueError("GEMINI_API_KEY is not configured")
        self.fallback_prompt = fallback_prompt
        genai.configure(api_key=self.settings.api_key)

    async def transcribe(self, audio_bytes: bytes, mime_type: str, prompt: str) -> str:
        try:
            return await self._generate(self.settings.model_name, prompt, audio_bytes, mime_type)
        except Exception as exc:
            fallback_model = self.settings.fallback_model_name
            if not fallback_model:
                raise TranscriptionServiceError(f"Gemini transcription failed: {exc}") from exc

            logger.warning(
                "Gemini model %s failed (%s); retrying with %s",
                self.settings.model_name, exc, fallback_model,
            )
            try:
                return await self._generate(
                    fallback_model, self.fallback_prompt or prompt, audio_bytes, mime_type
                )
            except Exception as fallback_exc:
                logger.error("Gemini fallback model %s failed: %s", fallback_model, fallback_exc)
                raise TranscriptionServiceError(f"Gemini transcription failed: {exc}") from exc

    async def _generate(self, model_name: str, prompt: str, audio_bytes: bytes, mime_type: str) -> str:
        model = genai.GenerativeModel(model_name)
        response = await model.generate_content_async(
            [prompt, {"mime_type": mime_type, "data": audio_bytes}],
            request_options={"timeout": self.settings.timeout_s},
        )
        # .text raises ValueError when the reply was blocked or empty
        return response.text
