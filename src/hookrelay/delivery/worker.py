"""Retry worker for the ``scheduled`` retry mode.

In scheduled mode the delivery engine records a failed attempt as
``retrying`` with a ``next_retry_at`` and returns immediately. This worker
polls for such records once they are due and runs the next attempt from
the stored payload, so retries survive the process that triggered the
original relay. Run a single worker per store.
"""

from __future__ import annotations

import asyncio
import signal
from datetime import datetime
from typing import TYPE_CHECKING

from hookrelay.config import Settings
from hookrelay.exceptions import PersistenceError
from hookrelay.logging import configure_logging, get_logger, log_context
from hookrelay.models import RelayDelivery, utc_now

if TYPE_CHECKING:
    from hookrelay.delivery.engine import DeliveryEngine
    from hookrelay.storage import RelayStorage

logger = get_logger(__name__)


class RetryWorker:
    """Executes owed retry attempts whose backoff has elapsed.

    Example:
        ```python
        worker = RetryWorker(storage, engine, settings)
        stop = asyncio.Event()
        await worker.run(stop)
        ```
    """

    def __init__(
        self,
        storage: RelayStorage,
        engine: DeliveryEngine,
        settings: Settings | None = None,
    ) -> None:
        self._storage = storage
        self._engine = engine
        self._settings = settings or Settings()

    async def process_due(self, now: datetime | None = None) -> int:
        """Run the next attempt for every due retry.

        Args:
            now: Reference time; defaults to the current time.

        Returns:
            Number of retry records handled.
        """
        due = await self._storage.get_due_retries(
            now or utc_now(), limit=self._settings.retry_batch_size
        )
        if not due:
            return 0

        results = await asyncio.gather(
            *(self._retry(delivery) for delivery in due), return_exceptions=True
        )
        processed = 0
        for delivery, result in zip(due, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "Retry failed",
                    delivery_id=delivery.id,
                    chain_id=delivery.chain_id,
                    error=str(result),
                )
            elif result:
                processed += 1
        logger.info("Processed due retries", due=len(due), processed=processed)
        return processed

    async def run(self, stop: asyncio.Event) -> None:
        """Poll for due retries until ``stop`` is set."""
        interval = self._settings.retry_poll_interval_seconds
        logger.info("Retry worker started", poll_interval_seconds=interval)
        while not stop.is_set():
            try:
                await self.process_due()
            except PersistenceError as e:
                logger.warning("Retry poll failed", error=str(e))
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except TimeoutError:
                pass
        logger.info("Retry worker stopped")

    async def _retry(self, delivery: RelayDelivery) -> bool:
        """Claim one due record and run the attempt after it.

        The stored request body is resent as is, so the signature still
        matches what the first attempt sent.

        Returns:
            False if the record could not be claimed and was left for a later pass.
        """
        with log_context(
            organization_id=delivery.organization_id, webhook_id=delivery.webhook_id
        ):
            return await self._run_retry(delivery)

    async def _run_retry(self, delivery: RelayDelivery) -> bool:
        try:
            await self._engine.claim_retry(delivery)
        except PersistenceError as e:
            logger.warning("Could not claim retry", delivery_id=delivery.id, error=str(e))
            return False

        webhook = await self._storage.get_webhook(delivery.webhook_id)
        if webhook is None or not webhook.enabled:
            delivery.mark_failed(error="Webhook not found or disabled")
            await self._storage.update_delivery(delivery)
            logger.info(
                "Dropped retry for missing or disabled webhook",
                delivery_id=delivery.id,
                webhook_id=delivery.webhook_id,
            )
            return True

        await self._engine.deliver(
            webhook,
            delivery.payload,
            attempt=delivery.attempts + 1,
            chain_id=delivery.chain_id,
            body=delivery.request_body,
        )
        return True


async def serve(settings: Settings | None = None, stop: asyncio.Event | None = None) -> None:
    """Run a retry worker against the configured store until stopped.

    SIGINT and SIGTERM set the stop event when no event is supplied.
    """
    from hookrelay.service import RelayService

    settings = settings or Settings()
    if stop is None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

    async with RelayService.create(settings) as service:
        await service.worker.run(stop)


def main() -> None:
    """Run the retry worker process."""
    settings = Settings()
    configure_logging(level=settings.log_level, format=settings.log_format)
    if settings.retry_mode != "scheduled":
        logger.warning(
            "Retry worker started with inline retry mode; only records left by "
            "scheduled-mode producers will be picked up",
            retry_mode=settings.retry_mode,
        )
    asyncio.run(serve(settings))
