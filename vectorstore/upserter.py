"""Batched upserts with bounded, rate-limit-aware retry.

Each batch gets up to ``max_attempts`` tries:
  - 429 (throttled): wait attempt x 2 seconds, retry
  - transport failure (no response): wait 5 seconds, retry
  - any other error status: give up on the batch immediately and append the
    payload to the error log for offline inspection

A failed batch never stops the remaining batches from being sent.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from schemas.chunk import IndexRecord
from vectorstore.store import RateLimitedError, UpsertRejectedError, VectorStore

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
MAX_ATTEMPTS = 5
TRANSPORT_RETRY_SECONDS = 5.0
DEFAULT_ERROR_LOG = "upsert_errors.log"


class UpsertErrorLog:
    """Append-only file sink for rejected batches."""

    def __init__(self, path: Union[str, Path] = DEFAULT_ERROR_LOG):
        self.path = Path(path)

    def record(self, batch_number: int, error: UpsertRejectedError) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(
                f"[{datetime.now().isoformat(timespec='seconds')}] "
                f"Batch {batch_number} failed: {error.status_code} {error.body}\n"
                f"Payload (ndjson):\n{error.payload}\n\n"
            )


class BatchUpserter:
    """Send records to the store in fixed-size batches."""

    def __init__(
        self,
        store: VectorStore,
        batch_size: int = BATCH_SIZE,
        max_attempts: int = MAX_ATTEMPTS,
        transport_retry_seconds: float = TRANSPORT_RETRY_SECONDS,
        error_log: Optional[UpsertErrorLog] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.transport_retry_seconds = transport_retry_seconds
        self.error_log = error_log or UpsertErrorLog()
        self._sleep = sleep

    def _backoff(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitedError):
            return retry_state.attempt_number * 2
        return self.transport_retry_seconds

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "  Batch attempt %d/%d failed (%s), retrying in %.0fs",
            retry_state.attempt_number,
            self.max_attempts,
            exc,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    async def _send(self, batch: list[IndexRecord]) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._backoff,
            retry=retry_if_exception_type((RateLimitedError, httpx.TransportError)),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self.store.upsert_records(batch)

    async def upsert(self, records: list[IndexRecord]) -> int:
        """Upsert all records; returns the number of records accepted."""
        upserted = 0
        total_batches = (len(records) + self.batch_size - 1) // self.batch_size

        for batch_idx in range(total_batches):
            start = batch_idx * self.batch_size
            batch = records[start:start + self.batch_size]
            batch_number = batch_idx + 1

            try:
                await self._send(batch)
            except UpsertRejectedError as e:
                logger.error("  Batch %d/%d rejected: %s", batch_number, total_batches, e)
                self.error_log.record(batch_number, e)
                continue
            except (RateLimitedError, httpx.TransportError) as e:
                logger.error(
                    "  Batch %d/%d abandoned after %d attempts: %s",
                    batch_number, total_batches, self.max_attempts, e,
                )
                continue

            upserted += len(batch)
            logger.debug("  Batch %d/%d ok", batch_number, total_batches)

        if upserted:
            logger.info("  Upserted %d/%d records", upserted, len(records))
        return upserted
