"""
Worker pool that turns queued scrape requests into streamed responses.
"""

import threading
from typing import Any, Callable, Dict, List, Optional

from music_graph_crawler.crawlers.scraper import EntityScraper, ScrapeVisitor
from music_graph_crawler.data.models import (
    Request,
    Response,
    Artist,
    Release,
    User,
    Entity,
    ArtistScraped,
    ReleaseScraped,
    UserScraped,
    Releases,
    Collection,
    Fans,
    ReleaseArtist,
)
from music_graph_crawler.utils.errors import ChannelClosedError, MusicGraphCrawlerError, handle_error
from music_graph_crawler.utils.logging import get_logger
from .models import CrawlerStats, WorkerState, WorkerStatus
from .thread_safe import ThreadSafeQueue


logger = get_logger(__name__)


class ResponseVisitor(ScrapeVisitor):
    """Packages scraper callbacks as Response values on the output queue.
    
    ``put`` blocks while the queue is full, which throttles the worker until
    the consumer catches up.
    """
    
    def __init__(self, output_queue: ThreadSafeQueue):
        self.output_queue = output_queue
    
    def on_primary(self, entity: Entity, details: Any) -> None:
        if isinstance(entity, Artist):
            response: Response = ArtistScraped(entity, details)
        elif isinstance(entity, Release):
            response = ReleaseScraped(entity, details)
        else:
            response = UserScraped(entity, details)
        self.output_queue.put(response)
    
    def on_relationship_batch(self, owner: Entity, items: List[Entity]) -> None:
        if isinstance(owner, Artist):
            response: Response = Releases(owner, items)
        elif isinstance(owner, Release):
            response = Fans(owner, items)
        else:
            response = Collection(owner, items)
        self.output_queue.put(response)
    
    def on_owning_artist(self, release: Release, artist: Artist) -> None:
        self.output_queue.put(ReleaseArtist(release, artist))


class WorkerThread(threading.Thread):
    """Individual worker thread owning one scraper."""
    
    def __init__(
        self,
        worker_id: str,
        scraper: EntityScraper,
        input_queue: ThreadSafeQueue,
        output_queue: ThreadSafeQueue,
        stats: CrawlerStats
    ):
        """
        Initialize worker thread.
        
        Args:
            worker_id: Unique identifier for this worker
            scraper: Scraper used for every request this worker handles
            input_queue: Shared queue of deduplicated requests
            output_queue: Shared bounded queue of responses
            stats: Shared statistics
        """
        super().__init__(name=f"scraper-{worker_id}", daemon=True)
        
        self.worker_id = worker_id
        self.scraper = scraper
        self.input_queue = input_queue
        self.output_queue = output_queue
        self.stats = stats
        
        self.status = WorkerStatus(worker_id=worker_id)
        self.exception: Optional[BaseException] = None
        self.logger = get_logger(f"{__name__}.{worker_id}")
    
    def run(self) -> None:
        """Process requests until the input queue is closed and drained."""
        self.status.state = WorkerState.IDLE
        
        try:
            while True:
                try:
                    request = self.input_queue.get()
                except ChannelClosedError:
                    break
                
                if not self._process_request(request):
                    break
        except BaseException as e:
            self.exception = e
            self.status.state = WorkerState.CRASHED
            self.logger.critical(f"Worker {self.worker_id} crashed: {e!r}")
            raise
        
        self.status.state = WorkerState.STOPPED
        self.logger.debug(f"Worker {self.worker_id} stopped")
    
    def _process_request(self, request: Request) -> bool:
        """
        Scrape one request and forward its responses.
        
        Args:
            request: Request to process
            
        Returns:
            False if the output queue was closed and the worker should exit
        """
        self.stats.items_processing.increment()
        self.stats.items_queued.decrement()
        self.status.start_request(str(request))
        
        success = False
        try:
            self.scraper.scrape(request, ResponseVisitor(self.output_queue))
            success = True
        except ChannelClosedError:
            self.logger.info(f"Worker {self.worker_id} shut down while still processing {request}")
            self.stats.items_processing.decrement()
            return False
        except MusicGraphCrawlerError as e:
            handle_error(
                e,
                self.logger,
                {"worker_id": self.worker_id, "request": str(request)},
                reraise=False
            )
        except BaseException:
            self.stats.items_processing.decrement()
            raise
        
        self.stats.items_processing.decrement()
        self.stats.items_completed.increment()
        self.status.finish_request(success)
        return True


class ThreadPoolManager:
    """Owns the fixed set of worker threads."""
    
    def __init__(
        self,
        worker_count: int,
        scraper_factory: Callable[[], EntityScraper],
        input_queue: ThreadSafeQueue,
        output_queue: ThreadSafeQueue,
        stats: CrawlerStats
    ):
        """
        Initialize thread pool manager.
        
        Args:
            worker_count: Number of workers to run
            scraper_factory: Builds one scraper per worker
            input_queue: Shared queue of requests
            output_queue: Shared bounded queue of responses
            stats: Shared statistics
        """
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        
        self.worker_count = worker_count
        self.scraper_factory = scraper_factory
        self.input_queue = input_queue
        self.output_queue = output_queue
        self.stats = stats
        self._workers: List[WorkerThread] = []
        self._lock = threading.Lock()
    
    def start(self) -> None:
        """Create and start every worker."""
        with self._lock:
            if self._workers:
                return
            
            logger.info(f"Starting {self.worker_count} scraper workers")
            for i in range(self.worker_count):
                worker = WorkerThread(
                    worker_id=f"worker_{i}",
                    scraper=self.scraper_factory(),
                    input_queue=self.input_queue,
                    output_queue=self.output_queue,
                    stats=self.stats
                )
                worker.start()
                self._workers.append(worker)
    
    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every worker to stop.
        
        The queues must already be closed, otherwise workers keep waiting
        for work.
        
        Args:
            timeout: Maximum time to wait for each worker
            
        Returns:
            True if every worker stopped within the timeout
            
        Raises:
            BaseException: The first exception that crashed a worker
        """
        with self._lock:
            workers = list(self._workers)
        
        all_stopped = True
        for worker in workers:
            worker.join(timeout)
            if worker.is_alive():
                logger.warning(f"Worker {worker.worker_id} did not stop within timeout")
                all_stopped = False
        
        for worker in workers:
            if worker.exception is not None:
                raise worker.exception
        
        if all_stopped:
            logger.info("All scraper workers stopped")
        return all_stopped
    
    def get_stats(self) -> List[Dict[str, Any]]:
        """Status of each worker."""
        with self._lock:
            return [worker.status.to_dict() for worker in self._workers]
    
    @property
    def workers(self) -> List[WorkerThread]:
        with self._lock:
            return list(self._workers)
