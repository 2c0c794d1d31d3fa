"""
Job queue between the scheduler and the workers.

Classes:
    JobQueue: FIFO of refresh jobs on a Redis list
    QueueError: Redis unreachable or a command failed
    ExponentialBackoff: Reconnect delays for consumers
"""

from feed_ingest.queues.backoff import ExponentialBackoff
from feed_ingest.queues.job_queue import JobQueue, QueueError

__all__ = ["ExponentialBackoff", "JobQueue", "QueueError"]
