"""
Concurrency building blocks for the crawler.

The worker pool lives in ``thread_pool`` and the public façade in
``router``; import those modules directly.
"""

from .models import CrawlerStats, StatsSnapshot, WorkerState, WorkerStatus
from .thread_safe import ThreadSafeCounter, ThreadSafeQueue, ThreadSafeSet

__all__ = [
    'CrawlerStats',
    'StatsSnapshot',
    'WorkerState',
    'WorkerStatus',
    'ThreadSafeCounter',
    'ThreadSafeQueue',
    'ThreadSafeSet',
]
