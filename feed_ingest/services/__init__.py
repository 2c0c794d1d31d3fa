"""Long-running services: the scheduler and the worker."""

from feed_ingest.services.scheduler import AdmissionPolicy, ScheduleStats, SchedulerService
from feed_ingest.services.worker import WorkerService

__all__ = ["AdmissionPolicy", "ScheduleStats", "SchedulerService", "WorkerService"]
