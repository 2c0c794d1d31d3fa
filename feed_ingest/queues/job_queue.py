"""
Redis list wrapper carrying refresh jobs from the scheduler to workers.

The queue is a plain Redis list: the scheduler RPUSHes, workers BLPOP. A
job is gone the moment it is popped. There is no acknowledgement, so a
worker dying mid-job loses that refresh; the scheduler picks the source up
again once it is stale. Delivery is at-most-once per scheduling cycle.
"""

import logging
from types import TracebackType

import redis.asyncio as redis
from pydantic import ValidationError

from feed_ingest.config.settings import get_settings
from feed_ingest.feeds.schemas import Job

logger = logging.getLogger(__name__)


class QueueError(Exception):
    """The queue could not be reached or a command failed."""


class JobQueue:
    """
    FIFO job queue on a Redis list.

    Usage:
        async with JobQueue() as queue:
            await queue.enqueue(Job(source=source, profile=profile))
            job = await queue.dequeue(timeout_seconds=60)
    """

    def __init__(
        self,
        redis_url: str | None = None,
        queue_name: str | None = None,
    ):
        settings = get_settings()

        self._redis_url = redis_url or settings.redis_connection_url
        self._queue_name = queue_name or settings.queue_name
        self._redis: redis.Redis | None = None

    @property
    def name(self) -> str:
        return self._queue_name

    async def connect(self) -> None:
        """
        Open the connection and verify it with PING.

        Raises:
            QueueError: If Redis is unreachable
        """
        client = redis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        try:
            await client.ping()
        except redis.RedisError as e:
            await client.aclose()
            raise QueueError(f"Could not connect to Redis: {e}") from e

        self._redis = client
        logger.info(f"Connected to Redis, queue={self._queue_name}")

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed")

    async def __aenter__(self) -> "JobQueue":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def redis(self) -> redis.Redis:
        """Get Redis client, raising if not connected."""
        if self._redis is None:
            raise RuntimeError("Not connected to Redis. Call connect() first.")
        return self._redis

    async def enqueue(self, job: Job) -> int:
        """
        Append a job to the tail of the queue.

        Returns:
            Queue length after the push

        Raises:
            QueueError: If the push fails
        """
        payload = job.model_dump_json(by_alias=True, exclude_none=True)
        try:
            length = await self.redis.rpush(self._queue_name, payload)
        except redis.RedisError as e:
            raise QueueError(f"Failed to enqueue source {job.source.id}: {e}") from e

        logger.debug(f"Enqueued source {job.source.id}, queue length={length}")
        return int(length)

    async def dequeue(self, timeout_seconds: int) -> Job | None:
        """
        Pop the oldest job, blocking up to `timeout_seconds`.

        Returns:
            The job, or None on timeout or when the payload is not a valid job
            (malformed payloads are logged and dropped)

        Raises:
            QueueError: If the pop fails
        """
        try:
            result = await self.redis.blpop([self._queue_name], timeout=timeout_seconds)
        except redis.RedisError as e:
            raise QueueError(f"Failed to dequeue: {e}") from e

        if result is None:
            return None

        _, payload = result
        try:
            return Job.model_validate_json(payload)
        except ValidationError as e:
            logger.error(f"Dropping malformed job payload: {e.error_count()} errors, {payload[:200]!r}")
            return None

    async def length(self) -> int:
        """
        Raises:
            QueueError: If the command fails
        """
        try:
            return int(await self.redis.llen(self._queue_name))
        except redis.RedisError as e:
            raise QueueError(f"Failed to read queue length: {e}") from e

    async def health_check(self) -> bool:
        """Check if Redis connection is healthy."""
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False
