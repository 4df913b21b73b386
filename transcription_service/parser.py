"""Turn a model's free-text transcription into timed, speaker-labelled segments.

The reply is scanned line by line. A line carrying a timestamp token starts a
new segment; a ``[Speaker N]`` tag sets the speaker of the segment being
built; any other line is appended to the running text. Lines the grammar
does not recognise are folded into the text rather than rejected.

Segments are given a fixed :data:`ESTIMATED_SEGMENT_S` duration, whatever
the distance to the next timestamp.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from common.errors import InvalidInputError, ParseError
from common.schemas import TranscriptSegment

logger = logging.getLogger(__name__)

ESTIMATED_SEGMENT_S = 30.0

TIMESTAMP_PATTERNS = {
    "mm_ss": re.compile(r"\[?(\d{1,2}):(\d{2})\]?"),
    "hh_mm_ss": re.compile(r"\[?(\d{1,2}):(\d{2}):(\d{2})\]?"),
}


def _cut(text: str, match: re.Match) -> str:
    return text[: match.start()] + text[match.end():]


class ResponseParser:
    def __init__(self, timestamp_grammar: str = "mm_ss", speaker_label: str = "Speaker") -> None:
        if timestamp_grammar not in TIMESTAMP_PATTERNS:
            raise InvalidInputError(
                f"Unknown timestamp grammar {timestamp_grammar!r}; "
                f"expected one of {sorted(TIMESTAMP_PATTERNS)}"
            )
        self.timestamp_grammar = timestamp_grammar
        self._timestamp_re = TIMESTAMP_PATTERNS[timestamp_grammar]
        self._speaker_re = re.compile(r"\[(" + re.escape(speaker_label) + r" \d+)\]")

    def _seconds(self, match: re.Match) -> int:
        seconds = 0
        for part in match.groups():
            seconds = seconds * 60 + int(part)
        return seconds

    def parse(self, raw_text: str, time_offset: float = 0.0) -> list[TranscriptSegment]:
        """Parse one chunk's reply; timestamps are re-based by ``time_offset``."""
        if not isinstance(raw_text, str):
            raise ParseError(f"Expected model reply text, got {type(raw_text).__name__}")
        if time_offset < 0:
            raise InvalidInputError(f"Time offset must not be negative, got {time_offset}")

        pending: list[tuple[float, str, Optional[str]]] = []
        current_time = float(time_offset)
        current_speaker: Optional[str] = None
        current_text = ""

        for line in raw_text.splitlines():
            if not line.strip():
                continue

            timestamp = self._timestamp_re.search(line)
            if timestamp:
                if current_text.strip():
                    pending.append((current_time, current_text.strip(), current_speaker))
                current_time = time_offset + self._seconds(timestamp)
                current_text = _cut(line, timestamp).strip()
                current_speaker = None
                # "[00:05] [Speaker 1] Hello" opens the segment with its speaker
                speaker = self._speaker_re.search(current_text)
                if speaker:
                    current_speaker = speaker.group(1)
                    current_text = _cut(current_text, speaker).strip()
                continue

            speaker = self._speaker_re.search(line)
            if speaker:
                current_speaker = speaker.group(1)
                current_text += " " + _cut(line, speaker).strip()
            else:
                current_text += " " + line.strip()

        if current_text.strip():
            pending.append((current_time, current_text.strip(), current_speaker))

        # sorted() is stable, so equal timestamps keep reply order
        pending = sorted(pending, key=lambda item: item[0])
        segments = [
            TranscriptSegment(
                id=f"segment-{i}",
                start_time=start,
                end_time=start + ESTIMATED_SEGMENT_S,
                text=text,
                speaker=speaker,
            )
            for i, (start, text, speaker) in enumerate(pending)
        ]
        logger.debug("Parsed %d segments at offset %.1fs", len(segments), time_offset)
        return segments
