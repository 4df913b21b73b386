import pytest

from common.errors import InvalidInputError, ParseError
from transcription_service.parser import ESTIMATED_SEGMENT_S, ResponseParser

TWO_SPEAKERS = "[00:05] [Speaker 1] Hello there\n[00:12] [Speaker 2] Hi"


class TestResponseParser:
    @pytest.fixture
    def parser(self):
        return ResponseParser()

    def test_two_tagged_lines(self, parser):
        segments = parser.parse(TWO_SPEAKERS, 0)
        assert len(segments) == 2
        first, second = segments
        assert (first.start_time, first.end_time, first.text, first.speaker) == (5, 35, "Hello there", "Speaker 1")
        assert (second.start_time, second.end_time, second.text, second.speaker) == (12, 42, "Hi", "Speaker 2")

    def test_offset_rebases_timestamps(self, parser):
        segments = parser.parse(TWO_SPEAKERS, 300)
        assert [s.start_time for s in segments] == [305, 312]
        assert [s.end_time for s in segments] == [335, 342]

    def test_unmarked_text_collapses_to_one_segment(self, parser):
        segments = parser.parse("First line\n\n  second line  \nthird", 600)
        assert len(segments) == 1
        seg = segments[0]
        assert seg.start_time == 600
        assert seg.end_time == 600 + ESTIMATED_SEGMENT_S
        assert seg.text == "First line second line third"
        assert seg.speaker is None

    def test_speaker_on_own_line_applies_to_running_segment(self, parser):
        raw = "[00:10]\n[Speaker 3] Good morning.\n(coughing)\nPlease be seated."
        segments = parser.parse(raw, 0)
        assert len(segments) == 1
        assert segments[0].speaker == "Speaker 3"
        assert segments[0].text == "Good morning. (coughing) Please be seated."

    def test_text_before_first_timestamp_starts_at_offset(self, parser):
        segments = parser.parse("Preamble\n[00:20] Body", 300)
        assert [(s.start_time, s.text) for s in segments] == [(300, "Preamble"), (320, "Body")]

    def test_timestamp_resets_speaker(self, parser):
        raw = "[Speaker 1] Opening\n[00:30] continued without tag"
        segments = parser.parse(raw, 0)
        assert segments[0].speaker == "Speaker 1"
        assert segments[1].speaker is None

    def test_empty_reply_yields_nothing(self, parser):
        assert parser.parse("", 0) == []
        assert parser.parse("\n   \n", 0) == []

    def test_segment_ids_are_sequential(self, parser):
        segments = parser.parse(TWO_SPEAKERS, 0)
        assert [s.id for s in segments] == ["segment-0", "segment-1"]

    def test_out_of_order_timestamps_are_sorted(self, parser):
        segments = parser.parse("[01:00] later\n[00:10] earlier", 0)
        assert [s.start_time for s in segments] == [10, 60]

    def test_concatenated_chunks_stay_ordered(self, parser):
        first = parser.parse(TWO_SPEAKERS, 0)
        second = parser.parse("[00:01] [Speaker 1] Next part\n[04:59] end", 300)
        starts = [s.start_time for s in first + second]
        assert starts == sorted(starts)

    def test_times_are_positive_and_ordered(self, parser):
        for seg in parser.parse("intro\n[00:00] a\n[02:30] b\nc", 0):
            assert seg.start_time >= 0
            assert seg.end_time > seg.start_time

    def test_non_text_reply_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse(None, 0)

    def test_negative_offset_rejected(self, parser):
        with pytest.raises(InvalidInputError):
            parser.parse(TWO_SPEAKERS, -1)


class TestGrammars:
    def test_hours_grammar(self):
        parser = ResponseParser(timestamp_grammar="hh_mm_ss")
        segments = parser.parse("[01:02:03] [Speaker 1] Late remark", 300)
        assert segments[0].start_time == 300 + 3723
        assert segments[0].speaker == "Speaker 1"
        assert segments[0].text == "Late remark"

    def test_hours_grammar_ignores_short_timestamps(self):
        parser = ResponseParser(timestamp_grammar="hh_mm_ss")
        segments = parser.parse("[00:05] hello\n[00:12] again", 0)
        assert len(segments) == 1
        assert segments[0].start_time == 0

    def test_unbracketed_timestamp(self):
        segments = ResponseParser().parse("00:07 Witness enters", 0)
        assert segments[0].start_time == 7
        assert segments[0].text == "Witness enters"

    def test_custom_speaker_label(self):
        parser = ResponseParser(speaker_label="Vorbitor")
        segments = parser.parse("[00:05] [Vorbitor 2] Bună ziua\n[Speaker 1] ignored tag", 0)
        assert segments[0].speaker == "Vorbitor 2"
        assert "[Speaker 1] ignored tag" in segments[0].text

    def test_unknown_grammar_rejected(self):
        with pytest.raises(InvalidInputError):
            ResponseParser(timestamp_grammar="iso")
