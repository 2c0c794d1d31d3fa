"""
Scheduler service - enqueues stale sources for the workers.

Every cycle pages through the profiles that are eligible for refreshes
(premium profiles and profiles created within the active window), lists
each profile's sources that were not refreshed within the staleness
threshold, and enqueues one job per source that passes the admission
policy. Cycles run every `interval_seconds` until stopped.

Failures are contained: a failing profile page, source listing or push is
logged and skipped, the rest of the cycle continues.
"""

import asyncio
import time
from dataclasses import dataclass, field

import structlog

from feed_ingest.config.settings import get_settings
from feed_ingest.feeds.schemas import Job, Profile, Source, SourceType, Tier
from feed_ingest.observability.metrics import MetricsCollector, get_metrics
from feed_ingest.queues.job_queue import JobQueue, QueueError
from feed_ingest.storage.database import StoreError
from feed_ingest.storage.repository import SourceRepository

logger = structlog.get_logger(__name__)

# Consecutive failing profile pages after which a cycle stops paging
MAX_PAGE_FAILURES = 3


@dataclass(frozen=True)
class AdmissionPolicy:
    """
    Which stale sources get enqueued.

    Attributes:
        deprecated_types: Providers that are never scheduled again
        rate_limited_types: Providers with tight external quotas; free-tier
            sources of these are refreshed at most once per
            `rate_limited_min_age_seconds`
    """

    deprecated_types: frozenset[str] = frozenset({SourceType.NITTER.value})
    rate_limited_types: frozenset[str] = frozenset({SourceType.REDDIT.value})
    rate_limited_min_age_seconds: int = 24 * 60 * 60

    def skip_reason(self, source: Source, profile: Profile, now: int) -> str | None:
        """Why a source must not be enqueued now, or None if it may be."""
        if source.type in self.deprecated_types:
            return "deprecated"

        if (
            profile.tier == Tier.FREE.value
            and source.type in self.rate_limited_types
            and source.updated_at > now - self.rate_limited_min_age_seconds
        ):
            return "rate_limited"

        return None

    def admit(self, source: Source, profile: Profile, now: int) -> bool:
        return self.skip_reason(source, profile, now) is None


@dataclass
class ScheduleStats:
    """Counters for one scheduling cycle."""

    profiles: int = 0
    sources: int = 0
    scheduled: int = 0
    skipped: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class SchedulerService:
    """
    Periodically enqueue refresh jobs for stale sources.

    Usage:
        scheduler = SchedulerService(repository, queue)
        await scheduler.start()  # Runs until stop()

        stats = await scheduler.run_once()  # Single cycle
    """

    def __init__(
        self,
        repository: SourceRepository,
        queue: JobQueue,
        policy: AdmissionPolicy | None = None,
        interval_seconds: int | None = None,
        page_size: int | None = None,
        metrics: MetricsCollector | None = None,
    ):
        settings = get_settings()

        self._repository = repository
        self._queue = queue
        self._policy = policy or AdmissionPolicy(
            rate_limited_min_age_seconds=settings.rate_limited_staleness_seconds,
        )
        self._interval = interval_seconds or settings.scheduler_interval_seconds
        self._page_size = page_size or settings.profile_page_size
        self._active_window = settings.profile_active_window_seconds
        self._staleness = settings.source_staleness_seconds
        self._metrics = metrics or get_metrics()

        self._running = False
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run scheduling cycles until stop() is called."""
        self._running = True
        self._stop_event.clear()
        logger.info(
            "Starting scheduler",
            interval_seconds=self._interval,
            page_size=self._page_size,
        )

        try:
            while self._running:
                try:
                    await self.run_once()
                except Exception:
                    logger.exception("Scheduling cycle failed")
                await self._sleep()
        except asyncio.CancelledError:
            logger.info("Scheduler cancelled")
        finally:
            self._running = False
            logger.info("Scheduler stopped")

    async def stop(self) -> None:
        """Stop after the current cycle. An ongoing sleep ends immediately."""
        logger.info("Stopping scheduler")
        self._running = False
        self._stop_event.set()

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            pass

    async def run_once(self, now: int | None = None) -> ScheduleStats:
        """
        Run one scheduling cycle.

        Args:
            now: Epoch seconds to evaluate thresholds against (default: now)

        Returns:
            Cycle statistics
        """
        now = now if now is not None else int(time.time())
        created_after = now - self._active_window
        stale_before = now - self._staleness
        stats = ScheduleStats()

        logger.info(
            "Scheduling sources",
            profile_created_after=created_after,
            sources_stale_before=stale_before,
        )

        offset = 0
        page_failures = 0
        while page_failures < MAX_PAGE_FAILURES:
            try:
                profiles = await self._repository.list_profiles(
                    created_after, self._page_size, offset
                )
            except StoreError as e:
                logger.error("Failed to list profiles", offset=offset, error=str(e))
                stats.errors += 1
                page_failures += 1
                offset += self._page_size
                continue

            page_failures = 0
            for profile in profiles:
                stats.profiles += 1
                await self._schedule_profile(profile, stale_before, now, stats)

            if len(profiles) < self._page_size:
                break
            offset += self._page_size

        await self._update_queue_depth()

        logger.info(
            "Scheduling cycle completed",
            profiles=stats.profiles,
            sources=stats.sources,
            scheduled=stats.scheduled,
            skipped=stats.skipped,
            errors=stats.errors,
            elapsed_seconds=round(stats.elapsed_seconds, 2),
        )
        return stats

    async def _schedule_profile(
        self,
        profile: Profile,
        stale_before: int,
        now: int,
        stats: ScheduleStats,
    ) -> None:
        try:
            sources = await self._repository.list_sources(profile.id, stale_before)
        except StoreError as e:
            logger.error("Failed to list sources", profile_id=profile.id, error=str(e))
            stats.errors += 1
            return

        logger.debug("Fetched sources", profile_id=profile.id, sources=len(sources))

        for source in sources:
            stats.sources += 1

            reason = self._policy.skip_reason(source, profile, now)
            if reason is not None:
                logger.debug(
                    "Skipping source",
                    source_id=source.id,
                    profile_id=profile.id,
                    reason=reason,
                )
                stats.skipped += 1
                self._metrics.record_skipped(source.type, reason)
                continue

            try:
                await self._queue.enqueue(Job(source=source, profile=profile))
            except QueueError as e:
                logger.error(
                    "Failed to schedule source",
                    source_id=source.id,
                    profile_id=profile.id,
                    error=str(e),
                )
                stats.errors += 1
                continue

            stats.scheduled += 1
            self._metrics.record_scheduled(source.type)
            logger.debug("Scheduled source", source_id=source.id, profile_id=profile.id)

    async def _update_queue_depth(self) -> None:
        try:
            depth = await self._queue.length()
        except QueueError as e:
            logger.warning("Failed to read queue length", error=str(e))
            return
        self._metrics.set_queue_depth(self._queue.name, depth)
