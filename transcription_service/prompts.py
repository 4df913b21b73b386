from __future__ import annotations

TIMESTAMP_FORMATS = {
    "mm_ss": "[MM:SS]",
    "hh_mm_ss": "[HH:MM:SS]",
}

TRANSCRIPTION_PROMPT = """\
Transcribe this audio file from {language}.
This audio comes from court hearing recordings.

Please:
1. Transcribe the {language} speech exactly, word for word
2. Identify the different speakers and mark them with [{label} 1], [{label} 2], etc.
3. Provide a timestamp for every segment in the format {timestamp_format}
4. Keep the original structure and flow of the conversation
5. Include relevant background sounds (coughing, laughter, etc.) in parentheses

Reply with the transcription only, without any additional comments.
"""

FALLBACK_PROMPT = "Transcribe this audio file from {language}. Reply with the transcription only."


def build_transcription_prompt(
    language: str = "Romanian",
    speaker_label: str = "Speaker",
    timestamp_grammar: str = "mm_ss",
) -> str:
    return TRANSCRIPTION_PROMPT.format(
        language=language,
        label=speaker_label,
        timestamp_format=TIMESTAMP_FORMATS.get(timestamp_grammar, TIMESTAMP_FORMATS["mm_ss"]),
    )


def build_fallback_prompt(language: str = "Romanian") -> str:
    return FALLBACK_PROMPT.format(language=language)
