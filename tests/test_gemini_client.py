from types import SimpleNamespace

import pytest

from common.config import GeminiSettings
from common.errors import TranscriptionServiceError
from transcription_service import gemini_client
from transcription_service.gemini_client import GeminiTranscriber


@pytest.fixture
def fake_models(monkeypatch):
    """Patch ``genai.GenerativeModel``; map model name -> reply text or exception."""
    outcomes = {}
    calls = []

    class FakeModel:
        def __init__(self, model_name):
            self.model_name = model_name

        async def generate_content_async(self, contents, request_options=None):
            calls.append((self.model_name, contents, request_options))
            outcome = outcomes[self.model_name]
            if isinstance(outcome, Exception):
                raise outcome
            return SimpleNamespace(text=outcome)

    monkeypatch.setattr(gemini_client.genai, "GenerativeModel", FakeModel)
    monkeypatch.setattr(gemini_client.genai, "configure", lambda **kwargs: None)
    return SimpleNamespace(outcomes=outcomes, calls=calls)


@pytest.fixture
def settings():
    return GeminiSettings(api_key="test-key", model_name="primary", fallback_model_name="backup", timeout_s=30)


class TestGeminiTranscriber:
    def test_missing_api_key_rejected(self, fake_models):
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            GeminiTranscriber(GeminiSettings(api_key=""))

    @pytest.mark.asyncio
    async def test_single_call_sends_prompt_and_audio(self, fake_models, settings):
        fake_models.outcomes["primary"] = "[00:01] hello"
        transcriber = GeminiTranscriber(settings)

        text = await transcriber.transcribe(b"wav-bytes", "audio/wav", "Transcribe this.")

        assert text == "[00:01] hello"
        assert len(fake_models.calls) == 1
        model_name, contents, options = fake_models.calls[0]
        assert model_name == "primary"
        assert contents == ["Transcribe this.", {"mime_type": "audio/wav", "data": b"wav-bytes"}]
        assert options == {"timeout": 30}

    @pytest.mark.asyncio
    async def test_falls_back_once_with_fallback_prompt(self, fake_models, settings):
        fake_models.outcomes["primary"] = RuntimeError("503 overloaded")
        fake_models.outcomes["backup"] = "fallback text"
        transcriber = GeminiTranscriber(settings, fallback_prompt="Short prompt.")

        text = await transcriber.transcribe(b"x", "audio/wav", "Long prompt.")

        assert text == "fallback text"
        assert [c[0] for c in fake_models.calls] == ["primary", "backup"]
        assert fake_models.calls[1][1][0] == "Short prompt."

    @pytest.mark.asyncio
    async def test_both_models_failing_raises_service_error(self, fake_models, settings):
        cause = RuntimeError("429 quota")
        fake_models.outcomes["primary"] = cause
        fake_models.outcomes["backup"] = RuntimeError("500 internal")
        transcriber = GeminiTranscriber(settings)

        with pytest.raises(TranscriptionServiceError, match="429 quota") as excinfo:
            await transcriber.transcribe(b"x", "audio/wav", "prompt")
        assert excinfo.value.__cause__ is cause
        assert len(fake_models.calls) == 2

    @pytest.mark.asyncio
    async def test_no_fallback_configured(self, fake_models):
        fake_models.outcomes["primary"] = ValueError("blocked response")
        transcriber = GeminiTranscriber(
            GeminiSettings(api_key="k", model_name="primary", fallback_model_name="")
        )
        with pytest.raises(TranscriptionServiceError):
            await transcriber.transcribe(b"x", "audio/wav", "prompt")
        assert len(fake_models.calls) == 1
