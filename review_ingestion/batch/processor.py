"""
Batch processor.

Validates, transforms, deduplicates and persists one batch of raw reviews.
Per-record problems are counted and reported in the BatchResult. A failed
write is fatal and surfaces as PersistenceError carrying the partial result.
"""

import threading
import time
from typing import Sequence

from ..core.exceptions import ErrorBudgetExceededError, PersistenceError
from ..core.models import BatchResult, Provider, ProviderCode, RawReview, Review
from ..core.repositories import ProviderRepository, ReviewRepository
from ..core.validators import ReviewValidator
from ..ingestion.transformer import ReviewTransformer
from ..observability.logger import get_logger
from ..observability.metrics import MetricsSink

logger = get_logger(__name__)

DEFAULT_PERSIST_BATCH_SIZE = 100
DEFAULT_MAX_ERRORS = 50
DEFAULT_LARGE_BATCH_THRESHOLD = 10_000
DEFAULT_LARGE_BATCH_CHUNK_SIZE = 1_000


class BatchProcessor:
    """
    Turns raw reviews into stored reviews.

    Attributes:
        persist_batch_size: Rows written per transaction
        max_errors: Cap on error messages kept in a BatchResult
        large_batch_threshold: Inputs above this size are re-chunked
        large_batch_chunk_size: Chunk size used for large inputs
    """

    def __init__(
        self,
        review_repository: ReviewRepository,
        provider_repository: ProviderRepository,
        validator: ReviewValidator | None = None,
        transformer: ReviewTransformer | None = None,
        metrics: MetricsSink | None = None,
        persist_batch_size: int = DEFAULT_PERSIST_BATCH_SIZE,
        max_errors: int = DEFAULT_MAX_ERRORS,
        large_batch_threshold: int = DEFAULT_LARGE_BATCH_THRESHOLD,
        large_batch_chunk_size: int = DEFAULT_LARGE_BATCH_CHUNK_SIZE,
    ):
        if persist_batch_size <= 0 or large_batch_chunk_size <= 0:
            raise ValueError("Batch sizes must be positive")

        self.review_repository = review_repository
        self.provider_repository = provider_repository
        self.validator = validator or ReviewValidator()
        self.transformer = transformer or ReviewTransformer()
        self.metrics = metrics or MetricsSink()
        self.persist_batch_size = persist_batch_size
        self.max_errors = max_errors
        self.large_batch_threshold = large_batch_threshold
        self.large_batch_chunk_size = large_batch_chunk_size

        # Process-local, advisory only: a miss re-resolves through the repository
        self._provider_cache: dict[str, Provider] = {}
        self._cache_lock = threading.Lock()

    # =======================
    # PROVIDERS
    # =======================

    def resolve_provider(self, name: str) -> Provider:
        """
        Resolve-or-create the provider for a record's provider name.

        Raises:
            ValueError: If the name is not a known provider
        """
        code = ProviderCode.from_name(name)
        cache_key = code.value.lower()

        with self._cache_lock:
            cached = self._provider_cache.get(cache_key)
        if cached is not None:
            return cached

        provider = self.provider_repository.get_or_create(code.name, code.value)
        with self._cache_lock:
            self._provider_cache[cache_key] = provider
        return provider

    def clear_provider_cache(self) -> None:
        with self._cache_lock:
            self._provider_cache.clear()

    # =======================
    # PROCESSING
    # =======================

    def process_batch(
        self,
        raw_records: Sequence[RawReview],
        source_file_id: int | None = None,
        error_budget: int | None = None,
    ) -> BatchResult:
        """
        Process a batch of raw reviews.

        Args:
            raw_records: Parsed lines
            source_file_id: Ledger row of the file the records come from
            error_budget: Invalid records this batch may still absorb; when
                exceeded, processing stops before anything of this batch is written

        Returns:
            BatchResult for the batch

        Raises:
            ErrorBudgetExceededError: If error_budget is exceeded
            PersistenceError: If a write fails; its result attribute holds the
                partial BatchResult with persistence_failed set
        """
        if len(raw_records) > self.large_batch_threshold:
            return self.process_large_batch(raw_records, source_file_id, error_budget)
        return self._process_chunk(raw_records, source_file_id, error_budget)

    def process_large_batch(
        self,
        raw_records: Sequence[RawReview],
        source_file_id: int | None = None,
        error_budget: int | None = None,
    ) -> BatchResult:
        """Process an input in sequential chunks and sum the results."""
        logger.info(
            f"Processing large batch of {len(raw_records)} records "
            f"in chunks of {self.large_batch_chunk_size}"
        )
        results: list[BatchResult] = []
        for start in range(0, len(raw_records), self.large_batch_chunk_size):
            chunk = raw_records[start:start + self.large_batch_chunk_size]
            remaining = None
            if error_budget is not None:
                remaining = error_budget - sum(r.invalid_count for r in results)
            try:
                results.append(self._process_chunk(chunk, source_file_id, remaining))
            except ErrorBudgetExceededError as e:
                prior = sum(r.invalid_count for r in results)
                raise ErrorBudgetExceededError(prior + e.failed_count, error_budget) from e
            except PersistenceError as e:
                if e.result is not None:
                    e.result = BatchResult.combine([*results, e.result], self.max_errors)
                raise
        return BatchResult.combine(results, self.max_errors)

    def _process_chunk(
        self,
        raw_records: Sequence[RawReview],
        source_file_id: int | None,
        error_budget: int | None,
    ) -> BatchResult:
        started = time.monotonic()
        result = BatchResult(processed_count=len(raw_records))
        if not raw_records:
            return result

        to_persist: list[Review] = []
        seen_external_ids: set[tuple[int, str]] = set()

        for raw in raw_records:
            outcome = self.validator.validate(raw)
            if not outcome.is_valid:
                self._reject(result, raw.line_number, "; ".join(outcome.errors))
                if error_budget is not None and result.invalid_count > error_budget:
                    raise ErrorBudgetExceededError(result.invalid_count, error_budget)
                continue

            try:
                provider = self.resolve_provider(str(raw.provider))
                review = self.transformer.transform(raw, provider, source_file_id)
            except PersistenceError:
                raise
            except Exception as e:
                logger.warning(f"Failed to transform line {raw.line_number}: {e}")
                self._reject(result, raw.line_number, f"Processing failed - {e}")
                if error_budget is not None and result.invalid_count > error_budget:
                    raise ErrorBudgetExceededError(result.invalid_count, error_budget)
                continue

            dedup_key = (review.provider_id, review.provider_external_id)
            if dedup_key in seen_external_ids or self.review_repository.exists_by_external_id(*dedup_key):
                result.duplicate_count += 1
                continue

            seen_external_ids.add(dedup_key)
            to_persist.append(review)

        self._persist(to_persist, result)

        result.processing_time_ms = int((time.monotonic() - started) * 1000)
        self.metrics.batch_processed(result)
        logger.info(
            f"Batch processed: {result.valid_count} stored, {result.invalid_count} invalid, "
            f"{result.duplicate_count} duplicates",
            extra={
                "processed": result.processed_count,
                "valid": result.valid_count,
                "invalid": result.invalid_count,
                "duplicates": result.duplicate_count,
                "duration_ms": result.processing_time_ms,
            },
        )
        return result

    def _reject(self, result: BatchResult, line_number: int, message: str) -> None:
        result.invalid_count += 1
        if len(result.errors) < self.max_errors:
            result.errors.append(f"line {line_number}: {message}")

    def _persist(self, reviews: list[Review], result: BatchResult) -> None:
        """Write reviews in sub-batches; stop at the first failing sub-batch."""
        for start in range(0, len(reviews), self.persist_batch_size):
            sub_batch = reviews[start:start + self.persist_batch_size]
            try:
                inserted = self.review_repository.insert_many(sub_batch)
            except Exception as e:
                result.persistence_failed = True
                self.metrics.batch_processed(result)
                logger.error(
                    f"Failed to persist sub-batch of {len(sub_batch)} reviews "
                    f"({result.valid_count} already stored): {e}"
                )
                raise PersistenceError(f"Failed to persist reviews: {e}", result=result) from e

            result.valid_count += inserted
            # Rows skipped by ON CONFLICT were written by a concurrent worker
            result.duplicate_count += len(sub_batch) - inserted
