"""
S3 object store gateway.

Lists candidate review files, probes existence and metadata, and opens
download streams. Transient failures are retried with exponential backoff;
missing objects and permission failures are not. This module never mutates
remote state.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Iterator

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from botocore.exceptions import ConnectionError as BotoConnectionError
from botocore.exceptions import HTTPClientError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.exceptions import (
    AccessDeniedError,
    ObjectNotFoundError,
    ObjectStoreError,
    TransientNetworkError,
)
from ..core.models import ObjectSummary
from ..observability.logger import get_logger

logger = get_logger(__name__)

ACCEPTED_EXTENSIONS = (".jl", ".jsonl")

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404", "NoSuchBucket"})
ACCESS_DENIED_CODES = frozenset({
    "AccessDenied", "Forbidden", "403", "InvalidAccessKeyId",
    "SignatureDoesNotMatch", "ExpiredToken", "AllAccessDisabled",
})
TRANSIENT_CODES = frozenset({
    "SlowDown", "Throttling", "ThrottlingException", "RequestTimeout",
    "RequestTimeTooSkewed", "InternalError", "ServiceUnavailable", "503", "500",
})


def translate_error(key: str, error: Exception) -> ObjectStoreError:
    """
    Map a boto3/botocore exception to the pipeline's error taxonomy.

    Args:
        key: Object key (or prefix) the request was about
        error: Exception raised by the client

    Returns:
        ObjectStoreError subclass describing the failure
    """
    if isinstance(error, ClientError):
        code = str(error.response.get("Error", {}).get("Code", ""))
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        message = error.response.get("Error", {}).get("Message") or code

        if code in NOT_FOUND_CODES:
            return ObjectNotFoundError(key, f"Object not found ({code})")
        if code in ACCESS_DENIED_CODES:
            return AccessDeniedError(key, f"Access denied ({code})")
        if code in TRANSIENT_CODES or status >= 500:
            return TransientNetworkError(key, f"Transient object store error ({code}: {message})")
        return ObjectStoreError(key, f"Object store request failed ({code}: {message})")

    if isinstance(error, (BotoConnectionError, HTTPClientError)):
        return TransientNetworkError(key, f"Network error ({type(error).__name__}: {error})")

    return ObjectStoreError(key, f"Object store request failed ({type(error).__name__}: {error})")


def is_candidate(key: str, size: int) -> bool:
    """Return True for non-empty JSON Lines objects that are not folder markers."""
    if key.endswith("/") or size <= 0:
        return False
    return key.lower().endswith(ACCEPTED_EXTENSIONS)


def _fingerprint(etag: str | None) -> str:
    return (etag or "").strip('"')


class S3ObjectStore:
    """
    Read-only gateway over one S3 bucket.

    Example:
        >>> store = S3ObjectStore(bucket="hotel-reviews", prefix="reviews/")
        >>> for summary in store.list_candidates():
        ...     body = store.download(summary.key)
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "reviews/",
        client: Any = None,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize gateway.

        Args:
            bucket: Bucket name
            prefix: Default listing prefix
            client: Pre-built boto3 S3 client (built from region/endpoint if None)
            region_name: AWS region
            endpoint_url: Custom endpoint (e.g. MinIO, LocalStack)
            max_retries: Retries after the initial attempt for transient failures
            base_delay: First backoff delay in seconds; doubles each retry
            max_delay: Upper bound on a single backoff delay
            sleep: Sleep function used between retries
        """
        self.bucket = bucket
        self.prefix = prefix
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        # botocore's own retries are disabled so this class is the single retry layer
        self.client = client or boto3.client(
            "s3",
            region_name=region_name,
            endpoint_url=endpoint_url,
            config=Config(retries={"max_attempts": 1, "mode": "standard"}),
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, min=self.base_delay, max=self.max_delay),
            retry=retry_if_exception_type(TransientNetworkError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
        )

    def _call(self, key: str, operation: Callable[[], Any]) -> Any:
        """Run one client call with error translation and the retry policy."""
        def attempt() -> Any:
            try:
                return operation()
            except (ClientError, BotoCoreError) as e:
                raise translate_error(key, e) from e

        return self._retrying()(attempt)

    def list_candidates(self, prefix: str | None = None) -> Iterator[ObjectSummary]:
        """
        List JSON Lines objects under a prefix.

        Pagination is transparent. Each call re-lists from the store, nothing
        is cached between calls.

        Args:
            prefix: Key prefix (defaults to the gateway prefix)

        Yields:
            ObjectSummary for every candidate object

        Raises:
            ObjectStoreError: If listing fails
        """
        prefix = self.prefix if prefix is None else prefix
        params = {"Bucket": self.bucket, "Prefix": prefix}

        listed = 0
        skipped = 0
        while True:
            # Each page request is retried on its own
            page = self._call(prefix, lambda: self.client.list_objects_v2(**params))
            for obj in page.get("Contents", []):
                key = obj["Key"]
                size = int(obj.get("Size", 0))
                if not is_candidate(key, size):
                    skipped += 1
                    continue
                listed += 1
                yield ObjectSummary(
                    key=key,
                    size=size,
                    last_modified=obj.get("LastModified"),
                    fingerprint=_fingerprint(obj.get("ETag")) or key,
                )

            if not page.get("IsTruncated"):
                break
            params = {**params, "ContinuationToken": page["NextContinuationToken"]}

        logger.info(
            f"Listed {listed} candidate files under '{prefix}' ({skipped} skipped)",
            extra={"bucket": self.bucket, "prefix": prefix, "listed": listed, "skipped": skipped},
        )

    def metadata(self, key: str) -> ObjectSummary:
        """
        Fetch object metadata with a HEAD request.

        Raises:
            ObjectNotFoundError: If the object does not exist
            AccessDeniedError: If the object may not be read
            ObjectStoreError: For other failures after retries
        """
        head = self._call(key, lambda: self.client.head_object(Bucket=self.bucket, Key=key))
        last_modified: datetime | None = head.get("LastModified")
        return ObjectSummary(
            key=key,
            size=int(head.get("ContentLength", 0)),
            last_modified=last_modified,
            fingerprint=_fingerprint(head.get("ETag")) or key,
        )

    def exists(self, key: str) -> bool:
        """
        Check whether an object exists without downloading it.

        Returns:
            False if the object is missing

        Raises:
            AccessDeniedError, ObjectStoreError: For failures other than not-found
        """
        try:
            self.metadata(key)
        except ObjectNotFoundError:
            return False
        return True

    def download(self, key: str) -> Any:
        """
        Open a download stream for an object.

        Args:
            key: Object key

        Returns:
            botocore StreamingBody; the caller must close it

        Raises:
            ObjectNotFoundError: If the object does not exist (not retried)
            AccessDeniedError: If the object may not be read (not retried)
            TransientNetworkError: If retries are exhausted
        """
        response = self._call(key, lambda: self.client.get_object(Bucket=self.bucket, Key=key))
        logger.debug(f"Opened download stream for {key}", extra={"key": key})
        return response["Body"]
