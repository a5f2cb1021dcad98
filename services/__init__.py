"""
Services layer for PrintQueueServer.

This module contains the stateful services:
- JobQueue: Durable FIFO queue with its background worker thread
- QueueStore: JSON persistence of the queue list

Thread Model:
    Main Thread (Flask)
    └── PrintQueue thread (started on demand, exits when the queue is empty)

The queue list is the only state shared between the two; it is guarded by
the queue's lock.
"""

from .job_queue import JobQueue, RetryPolicy
from .queue_store import QueueStore

__all__ = [
    "JobQueue",
    "RetryPolicy",
    "QueueStore",
]
