"""
Unit tests for the JSON Lines parser.
"""

import io
import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from review_ingestion.ingestion import JsonLinesParser, ParseStats

from ..fakes import FakeBody, make_line


@pytest.fixture
def parser() -> JsonLinesParser:
    return JsonLinesParser()


class TestParseFile:
    """Tests for parsing whole files"""

    def test_malformed_line_is_skipped_and_numbering_kept(self, parser, tmp_path):
        """Two good records around an invalid JSON line keep line numbers 1 and 3"""
        path = tmp_path / "agoda.jl"
        path.write_text("\n".join([
            make_line(review_id=1, hotel_id=10984),
            '{"hotelId": 10984, "platform": "Agoda", ',
            make_line(review_id=2, hotel_id=10984),
        ]) + "\n")

        records = parser.parse_file(path)

        assert len(records) == 2
        assert [r.line_number for r in records] == [1, 3]
        assert all(r.hotel_id == 10984 for r in records)
        assert all(r.provider == "Agoda" for r in records)

    def test_empty_file(self, parser, tmp_path):
        path = tmp_path / "empty.jl"
        path.write_bytes(b"")
        assert parser.parse_file(path) == []

    def test_missing_file(self, parser, tmp_path):
        with pytest.raises(FileNotFoundError):
            parser.parse_file(tmp_path / "missing.jl")


class TestParseLine:
    """Tests for single-line parsing"""

    def test_fields_extracted(self, parser):
        record = parser.parse_line(make_line(review_id=948353737).encode("utf-8"), 7)

        assert record.line_number == 7
        assert record.hotel_name == "Oscar Saigon Hotel"
        assert record.comment["hotelReviewId"] == 948353737
        assert record.overall_by_providers[0]["overallScore"] == 7.9
        assert json.loads(record.raw_json)["hotelId"] == 10984

    @pytest.mark.parametrize("line", [
        b"",
        b"   ",
        b"not json",
        b"[1, 2, 3]",
        b'"just a string"',
        b"\xff\xfe{}",
    ])
    def test_unusable_lines_return_none(self, parser, line):
        assert parser.parse_line(line, 1) is None

    def test_provider_field_fallbacks(self, parser):
        record = parser.parse_line('{"hotelId": 1, "providerName": "Booking"}', 1)
        assert record.provider == "Booking"

    def test_non_object_comment_dropped(self, parser):
        record = parser.parse_line('{"hotelId": 1, "platform": "Agoda", "comment": "nice"}', 1)
        assert record.comment is None


class TestStreaming:
    """Tests for batched streaming"""

    def test_batches_and_stats(self, parser):
        lines = [make_line(review_id=i) for i in range(1, 6)]
        lines.insert(2, "")
        lines.insert(4, "{broken")
        stream = io.BytesIO(("\n".join(lines) + "\n").encode("utf-8"))
        stats = ParseStats()

        batches = list(parser.iter_batches(stream, batch_size=2, stats=stats))

        assert [len(b) for b in batches] == [2, 2, 1]
        assert stats.lines_read == 7
        assert stats.records_parsed == 5
        assert stats.blank_lines == 1
        assert stats.malformed_lines == 1

    def test_malformed_limit_stops_reading(self, parser):
        lines = [make_line(review_id=1)] + ["{broken"] * 1000 + [make_line(review_id=2)]
        stats = ParseStats(malformed_limit=5)

        records = list(parser.iter_records(lines, stats))

        assert [r.comment["hotelReviewId"] for r in records] == [1]
        assert stats.malformed_lines == 6
        assert stats.lines_read == 7
        assert stats.limit_exceeded

    def test_malformed_limit_not_reached(self, parser):
        lines = ["{broken"] * 3 + [make_line(review_id=1)]
        stats = ParseStats(malformed_limit=3)

        records = list(parser.iter_records(lines, stats))

        assert len(records) == 1
        assert not stats.limit_exceeded

    def test_streaming_body_uses_iter_lines(self, parser):
        body = FakeBody(("\n".join(make_line(review_id=i) for i in range(1, 4)) + "\n").encode("utf-8"))
        records = list(parser.iter_records(body))
        assert [r.comment["hotelReviewId"] for r in records] == [1, 2, 3]

    def test_process_in_batches_invokes_callback(self, parser):
        seen = []
        stream = [make_line(review_id=i) for i in range(1, 4)]

        stats = parser.process_in_batches(stream, seen.append, batch_size=2)

        assert [len(b) for b in seen] == [2, 1]
        assert stats.records_parsed == 3

    def test_invalid_batch_size(self, parser):
        with pytest.raises(ValueError):
            list(parser.iter_batches([], batch_size=0))

    @given(st.lists(st.booleans(), max_size=30))
    def test_property_line_numbers_point_back_into_source(self, pattern):
        """Property test: each parsed record's line number is its physical line"""
        parser = JsonLinesParser()
        lines = [make_line(review_id=i + 1) if good else "{oops" for i, good in enumerate(pattern)]

        records = parser.parse_stream(lines)

        expected = [i + 1 for i, good in enumerate(pattern) if good]
        assert [r.line_number for r in records] == expected
        assert [r.comment["hotelReviewId"] for r in records] == expected
