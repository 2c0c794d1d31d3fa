"""
Worker service - drains the job queue and refreshes sources.

Each consumer task blocks on the queue, hands the popped job to the
adapter registry and persists the result. A job whose refresh yields no
new items leaves the stored source untouched, so its `updatedAt` is not
bumped and it is picked up again by the next scheduling cycle.

Nothing a single job does can stop a consumer: every failure is logged
with the job's source and profile ids and the job is dropped. Losing the
Redis connection makes consumers back off and retry.
"""

import asyncio
import time
from typing import Any

import structlog

from feed_ingest.config.settings import get_settings
from feed_ingest.feeds.registry import AdapterRegistry
from feed_ingest.feeds.schemas import Job
from feed_ingest.observability.logging import bind_job_context, clear_context
from feed_ingest.observability.metrics import MetricsCollector, get_metrics
from feed_ingest.queues.backoff import ExponentialBackoff
from feed_ingest.queues.job_queue import JobQueue, QueueError
from feed_ingest.storage.repository import SourceRepository

logger = structlog.get_logger(__name__)


class WorkerService:
    """
    Consume refresh jobs with `concurrency` parallel consumers.

    Usage:
        worker = WorkerService(queue, repository, registry, concurrency=4)
        await worker.start()  # Runs until stop()
    """

    def __init__(
        self,
        queue: JobQueue,
        repository: SourceRepository,
        registry: AdapterRegistry,
        concurrency: int | None = None,
        pop_timeout_seconds: int | None = None,
        reconnect_max_delay: float = 30.0,
        metrics: MetricsCollector | None = None,
    ):
        settings = get_settings()

        self._queue = queue
        self._repository = repository
        self._registry = registry
        self._concurrency = concurrency or settings.worker_concurrency
        self._pop_timeout = pop_timeout_seconds or settings.worker_pop_timeout_seconds
        self._reconnect_max_delay = reconnect_max_delay
        self._metrics = metrics or get_metrics()

        self._running = False
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self._processed = 0
        self._failed = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the consumers until stop() is called."""
        self._running = True
        self._stop_event.clear()
        logger.info(
            "Starting worker",
            concurrency=self._concurrency,
            queue=self._queue.name,
        )

        self._tasks = [
            asyncio.create_task(self._consume(index), name=f"consumer_{index}")
            for index in range(self._concurrency)
        ]

        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        except asyncio.CancelledError:
            logger.info("Worker cancelled")
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Stop the consumers. A job that is being processed is abandoned."""
        logger.info("Stopping worker")
        self._running = False
        self._stop_event.set()

        for task in self._tasks:
            task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _cleanup(self) -> None:
        self._running = False
        self._tasks.clear()
        logger.info(
            "Worker stopped",
            processed=self._processed,
            failed=self._failed,
        )

    async def _consume(self, index: int) -> None:
        """Consumer loop: pop, process, repeat."""
        backoff = ExponentialBackoff(max_delay=self._reconnect_max_delay)
        logger.debug("Consumer started", consumer=index)

        while self._running:
            try:
                job = await self._queue.dequeue(self._pop_timeout)
            except asyncio.CancelledError:
                break
            except QueueError as e:
                delay = await backoff.wait(self._stop_event)
                logger.error(
                    "Failed to read from queue",
                    consumer=index,
                    error=str(e),
                    retry_in_seconds=round(delay, 2),
                )
                continue

            backoff.reset()
            if job is None:
                continue

            await self.process_job(job)

        logger.debug("Consumer stopped", consumer=index)

    async def process_job(self, job: Job) -> int:
        """
        Refresh one source and persist the result.

        Returns:
            Number of items submitted to the store (0 on failure or when
            the feed had nothing new)
        """
        source, profile = job.source, job.profile
        bind_job_context(source.id, source.user_id, profile.id)
        start_time = time.monotonic()

        logger.info("Received source", source_type=source.type)
        try:
            result = await self._registry.get_feed(source, profile)
            latency = time.monotonic() - start_time

            if not result.items:
                logger.info("No new items", elapsed_seconds=round(latency, 2))
                self._metrics.record_job(source.type, "empty", latency=latency)
                self._processed += 1
                return 0

            await self._repository.upsert_source(result.source)
            count = await self._repository.upsert_items(result.items)

        except Exception as e:
            self._failed += 1
            self._log_failure(job, e)
            self._metrics.record_error(source.type, type(e).__name__)
            self._metrics.record_job(
                source.type, "error", latency=time.monotonic() - start_time
            )
            return 0
        finally:
            clear_context()

        self._processed += 1
        self._metrics.record_job(result.source.type, "success", items=count, latency=latency)
        logger.info(
            "Updated source",
            source_id=result.source.id,
            user_id=source.user_id,
            profile_id=profile.id,
            items=count,
            elapsed_seconds=round(latency, 2),
        )
        return count

    def _log_failure(self, job: Job, error: Exception) -> None:
        logger.error(
            "Failed to process source",
            source_id=job.source.id,
            user_id=job.source.user_id,
            profile_id=job.profile.id,
            source_type=job.source.type,
            error=str(error),
            error_type=type(error).__name__,
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "concurrency": self._concurrency,
            "processed": self._processed,
            "failed": self._failed,
            "active_consumers": len([t for t in self._tasks if not t.done()]),
        }
