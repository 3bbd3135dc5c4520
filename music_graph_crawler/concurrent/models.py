"""
Statistics and worker status models for the concurrent crawler.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .thread_safe import ThreadSafeCounter


class WorkerState(Enum):
    """Worker thread state."""
    STARTING = "starting"
    IDLE = "idle"
    WORKING = "working"
    STOPPED = "stopped"
    CRASHED = "crashed"


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of the crawler statistics."""
    items_queued: int
    items_processing: int
    items_completed: int
    items_duplicate: int
    web_requests: int
    web_cache_hits: int
    web_cache_misses: int
    
    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class CrawlerStats:
    """
    Process-lifetime counters shared by the router, workers and gateway.
    
    Each counter is updated independently; observers only read them, so a
    snapshot may mix values from slightly different instants.
    """
    
    def __init__(self):
        self.items_queued = ThreadSafeCounter()
        self.items_processing = ThreadSafeCounter()
        self.items_completed = ThreadSafeCounter()
        self.items_duplicate = ThreadSafeCounter()
        self.web_requests = ThreadSafeCounter()
        self.web_cache_hits = ThreadSafeCounter()
        self.web_cache_misses = ThreadSafeCounter()
    
    def snapshot(self) -> StatsSnapshot:
        """Read every counter into an immutable snapshot."""
        return StatsSnapshot(
            items_queued=self.items_queued.get_value(),
            items_processing=self.items_processing.get_value(),
            items_completed=self.items_completed.get_value(),
            items_duplicate=self.items_duplicate.get_value(),
            web_requests=self.web_requests.get_value(),
            web_cache_hits=self.web_cache_hits.get_value(),
            web_cache_misses=self.web_cache_misses.get_value(),
        )


@dataclass
class WorkerStatus:
    """Status information for a worker thread."""
    worker_id: str
    state: WorkerState = WorkerState.STARTING
    current_request: Optional[str] = None
    requests_completed: int = 0
    requests_failed: int = 0
    last_activity: datetime = field(default_factory=datetime.now)
    
    def start_request(self, request: str) -> None:
        self.state = WorkerState.WORKING
        self.current_request = request
        self.last_activity = datetime.now()
    
    def finish_request(self, success: bool) -> None:
        """Record the end of a request and return to idle."""
        if success:
            self.requests_completed += 1
        else:
            self.requests_failed += 1
        self.state = WorkerState.IDLE
        self.current_request = None
        self.last_activity = datetime.now()
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "worker_id": self.worker_id,
            "state": self.state.value,
            "current_request": self.current_request,
            "requests_completed": self.requests_completed,
            "requests_failed": self.requests_failed,
            "last_activity": self.last_activity.isoformat(),
        }
