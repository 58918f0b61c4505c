"""
Streaming parser for JSON Lines review files.

Reads a byte stream one line at a time so a file is never held in memory.
A malformed line is logged and skipped. The stream is only cut short when
ParseStats.malformed_limit is set and exceeded.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

from ..core.models import RawReview
from ..observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100

# Real feeds name the provider "platform"
PROVIDER_FIELDS = ("platform", "provider", "providerName")


@dataclass
class ParseStats:
    """Counters for one pass over a stream."""

    lines_read: int = 0
    records_parsed: int = 0
    blank_lines: int = 0
    malformed_lines: int = 0
    # Stop reading once malformed_lines exceeds this; callers may lower it mid-stream
    malformed_limit: int | None = None

    @property
    def limit_exceeded(self) -> bool:
        return self.malformed_limit is not None and self.malformed_lines > self.malformed_limit


def _iter_lines(stream: Any) -> Iterator[bytes | str]:
    # botocore StreamingBody iterates in fixed-size chunks, not lines
    if hasattr(stream, "iter_lines"):
        return iter(stream.iter_lines())
    return iter(stream)


class JsonLinesParser:
    """
    Parser turning JSON Lines input into RawReview records.

    Line numbers are 1-based and count every physical line, including blank
    and malformed ones, so they always point back into the source file.
    """

    def parse_line(self, line: bytes | str, line_number: int) -> RawReview | None:
        """
        Parse one line.

        Args:
            line: Raw line, with or without trailing newline
            line_number: 1-based position in the file

        Returns:
            RawReview, or None for blank and malformed lines
        """
        if isinstance(line, bytes):
            try:
                line = line.decode("utf-8")
            except UnicodeDecodeError as e:
                logger.warning(f"Skipping line {line_number}: invalid UTF-8 ({e.reason})")
                return None

        text = line.strip()
        if not text:
            return None

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping line {line_number}: malformed JSON ({e.msg})")
            return None

        if not isinstance(payload, dict):
            logger.warning(
                f"Skipping line {line_number}: expected a JSON object, got {type(payload).__name__}"
            )
            return None

        comment = payload.get("comment")
        overall = payload.get("overallByProviders")

        return RawReview(
            hotel_id=payload.get("hotelId"),
            provider=next((payload[f] for f in PROVIDER_FIELDS if payload.get(f) is not None), None),
            hotel_name=payload.get("hotelName"),
            comment=comment if isinstance(comment, dict) else None,
            overall_by_providers=overall if isinstance(overall, list) else None,
            line_number=line_number,
            raw_json=text,
        )

    def iter_records(self, stream: Iterable[bytes | str], stats: ParseStats | None = None) -> Iterator[RawReview]:
        """
        Lazily parse a stream.

        Args:
            stream: File object, botocore StreamingBody, or any iterable of lines
            stats: Optional counters updated as lines are consumed

        Yields:
            RawReview for every well-formed line
        """
        stats = stats if stats is not None else ParseStats()

        for line_number, line in enumerate(_iter_lines(stream), start=1):
            stats.lines_read += 1

            if not line.strip():
                stats.blank_lines += 1
                continue

            record = self.parse_line(line, line_number)
            if record is None:
                stats.malformed_lines += 1
                if stats.limit_exceeded:
                    logger.warning(
                        f"Stopped reading at line {line_number}: "
                        f"{stats.malformed_lines} malformed lines exceed limit {stats.malformed_limit}"
                    )
                    return
                continue

            stats.records_parsed += 1
            yield record

    def iter_batches(
        self,
        stream: Iterable[bytes | str],
        batch_size: int = DEFAULT_BATCH_SIZE,
        stats: ParseStats | None = None,
    ) -> Iterator[list[RawReview]]:
        """
        Lazily parse a stream into lists of at most batch_size records.

        Raises:
            ValueError: If batch_size is not positive
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        batch: list[RawReview] = []
        for record in self.iter_records(stream, stats):
            batch.append(record)
            if len(batch) >= batch_size:
                yield batch
                batch = []

        if batch:
            yield batch

    def process_in_batches(
        self,
        stream: Iterable[bytes | str],
        callback: Callable[[list[RawReview]], None],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> ParseStats:
        """
        Stream the input, invoking callback once per batch.

        Args:
            stream: Input lines
            callback: Called with each batch of parsed records
            batch_size: Records per batch

        Returns:
            ParseStats for the whole stream
        """
        stats = ParseStats()
        for batch in self.iter_batches(stream, batch_size, stats):
            callback(batch)

        logger.info(
            f"Parsed {stats.records_parsed} records from {stats.lines_read} lines "
            f"({stats.malformed_lines} malformed)",
            extra={"records_parsed": stats.records_parsed, "malformed_lines": stats.malformed_lines},
        )
        return stats

    def parse_stream(self, stream: Iterable[bytes | str]) -> list[RawReview]:
        """Parse a whole stream into a list."""
        return list(self.iter_records(stream))

    def parse_file(self, file_path: str | Path) -> list[RawReview]:
        """
        Parse a local JSON Lines file.

        Args:
            file_path: Path to the file

        Returns:
            RawReview records in file order
        """
        with open(file_path, "rb") as f:
            return self.parse_stream(f)
