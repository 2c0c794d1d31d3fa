"""
Command-line interface for feed-ingest.

Usage:
    feed-ingest scheduler          # Enqueue stale sources every 15 minutes
    feed-ingest scheduler --once   # Run a single scheduling cycle
    feed-ingest worker             # Consume jobs and refresh sources
    feed-ingest init-db            # Create the source store tables
    feed-ingest health             # Check Redis and PostgreSQL
    feed-ingest tools generate-key # New ENCRYPTION_KEY / ENCRYPTION_IV pair

Startup failures (missing configuration, unreachable Redis or PostgreSQL)
exit with status 1. Errors while running are logged and never stop the
process.
"""

import asyncio
import os
import signal
import sys
from typing import NoReturn

import click

from feed_ingest.config.settings import ConfigError, get_settings
from feed_ingest.observability.logging import setup_logging
from feed_ingest.observability.metrics import get_metrics
from feed_ingest.queues.job_queue import QueueError
from feed_ingest.storage.database import StoreError

STARTUP_ERRORS = (ConfigError, StoreError, QueueError)


def _fail(message: str) -> NoReturn:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _validated_settings():
    settings = get_settings()
    try:
        settings.validate_runtime()
    except ConfigError as e:
        _fail(str(e))
    return settings


def _install_signal_handlers(stop) -> None:
    """Stop the service gracefully on SIGINT / SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(stop()))


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Feed Ingest - schedule and refresh followed feeds."""
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--once", is_flag=True, help="Run a single scheduling cycle and exit")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def scheduler(once: bool, metrics: bool) -> None:
    """Run the scheduler."""
    from feed_ingest.queues.job_queue import JobQueue
    from feed_ingest.services.scheduler import SchedulerService
    from feed_ingest.storage.database import Database
    from feed_ingest.storage.repository import SourceRepository

    _validated_settings()

    async def run():
        async with Database() as db, JobQueue() as queue:
            service = SchedulerService(SourceRepository(db), queue)

            if once:
                stats = await service.run_once()
                click.echo(
                    f"Scheduled {stats.scheduled} of {stats.sources} sources "
                    f"for {stats.profiles} profiles "
                    f"(skipped {stats.skipped}, errors {stats.errors})"
                )
                return

            if metrics:
                get_metrics().start_server()

            _install_signal_handlers(service.stop)
            await service.start()

    try:
        asyncio.run(run())
    except STARTUP_ERRORS as e:
        _fail(str(e))


@main.command()
@click.option("--concurrency", default=None, type=int, help="Parallel consumers (default from settings)")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def worker(concurrency: int | None, metrics: bool) -> None:
    """Run a worker."""
    from feed_ingest.feeds.base_adapter import AdapterContext
    from feed_ingest.feeds.http_client import HTTPClient, RetryConfig
    from feed_ingest.feeds.registry import AdapterRegistry
    from feed_ingest.queues.job_queue import JobQueue
    from feed_ingest.services.worker import WorkerService
    from feed_ingest.storage.blob import BlobStorage
    from feed_ingest.storage.database import Database
    from feed_ingest.storage.repository import SourceRepository

    settings = _validated_settings()

    async def run():
        retry_config = RetryConfig(
            max_retries=settings.max_http_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        )
        http = HTTPClient(
            retry_config=retry_config,
            timeout=settings.feed_timeout_seconds,
            user_agent=settings.user_agent,
        )

        async with Database() as db, JobQueue() as queue, http:
            blob = None
            if settings.storage_configured:
                blob = BlobStorage(
                    http,
                    settings.storage_url,
                    settings.storage_service_key,
                    settings.storage_bucket,
                )

            context = AdapterContext(http=http, settings=settings, blob=blob, cache=queue.redis)
            service = WorkerService(
                queue,
                SourceRepository(db),
                AdapterRegistry(context),
                concurrency=concurrency,
            )

            if metrics:
                get_metrics().start_server()

            _install_signal_handlers(service.stop)
            await service.start()

    try:
        asyncio.run(run())
    except STARTUP_ERRORS as e:
        _fail(str(e))


@main.command("init-db")
def init_db() -> None:
    """Create the source store tables."""
    from feed_ingest.storage.database import Database
    from feed_ingest.storage.repository import SourceRepository

    _validated_settings()

    async def run():
        async with Database() as db:
            await SourceRepository(db).create_tables()
        click.echo("Database initialized successfully")

    try:
        asyncio.run(run())
    except STARTUP_ERRORS as e:
        _fail(str(e))


@main.command()
def health() -> None:
    """Check health of Redis and PostgreSQL."""
    import structlog

    from feed_ingest.queues.job_queue import JobQueue
    from feed_ingest.storage.database import Database

    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        try:
            async with JobQueue() as queue:
                results["redis"] = await queue.health_check()
        except Exception as e:
            results["redis"] = False
            logger.error("Redis health check failed", error=str(e))

        try:
            async with Database() as db:
                results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["storage_configured"] = settings.storage_configured
        results["encryption_configured"] = settings.encryption_configured
        results["youtube_configured"] = settings.youtube_configured
        return results

    results = asyncio.run(check())

    click.echo("\nHealth Check Results:")
    click.echo("-" * 40)

    all_healthy = True
    for name, status in results.items():
        icon = "✓" if status else "✗"
        color = "green" if status else "red"
        click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
        if name in ("redis", "postgres") and not status:
            all_healthy = False

    click.echo("-" * 40)

    if all_healthy:
        click.echo(click.style("All core services healthy!", fg="green"))
        sys.exit(0)
    click.echo(click.style("Some services unhealthy!", fg="red"))
    sys.exit(1)


@main.group()
def tools() -> None:
    """Operator utilities."""


@tools.command("generate-key")
def generate_key() -> None:
    """Print a new random ENCRYPTION_KEY and ENCRYPTION_IV."""
    from feed_ingest.feeds.crypto import generate_key as new_key

    key, iv = new_key()
    click.echo(f"ENCRYPTION_KEY={key}")
    click.echo(f"ENCRYPTION_IV={iv}")


if __name__ == "__main__":
    main()
