"""
Request router: the public entry point of the crawler.

Callers submit requests and poll for responses; everything in between
(deduplication, the worker pool, the gateway and the cache) is owned here.
"""

import threading
from typing import Callable, Optional

from music_graph_crawler.crawlers.gateway import OriginGateway
from music_graph_crawler.crawlers.http_client import RateLimitedClient
from music_graph_crawler.crawlers.scraper import EntityScraper
from music_graph_crawler.data.models import Request, Response
from music_graph_crawler.data.response_cache import ResponseCache
from music_graph_crawler.utils.errors import ChannelClosedError, PipelineClosedError
from music_graph_crawler.utils.logging import get_logger
from .models import CrawlerStats
from .thread_pool import ThreadPoolManager
from .thread_safe import ThreadSafeQueue, ThreadSafeSet


logger = get_logger(__name__)


class RequestRouter:
    """Deduplicates requests and fans them out to the worker pool."""
    
    def __init__(
        self,
        scraper_factory: Callable[[], EntityScraper],
        worker_count: int = 8,
        output_capacity: int = 8,
        stats: Optional[CrawlerStats] = None,
        gateway: Optional[OriginGateway] = None
    ):
        """
        Initialize router and start its workers.
        
        Args:
            scraper_factory: Builds one scraper per worker
            worker_count: Number of worker threads
            output_capacity: Responses buffered before workers block
            stats: Shared statistics; a fresh set is created when omitted
            gateway: Started gateway owned by this router, stopped on shutdown
        """
        self._stats = stats or CrawlerStats()
        self._gateway = gateway
        self._seen = ThreadSafeSet()
        self._input: ThreadSafeQueue = ThreadSafeQueue()
        self._output: ThreadSafeQueue = ThreadSafeQueue(maxsize=output_capacity)
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False
        
        self._pool = ThreadPoolManager(
            worker_count=worker_count,
            scraper_factory=scraper_factory,
            input_queue=self._input,
            output_queue=self._output,
            stats=self._stats
        )
        self._pool.start()
    
    @classmethod
    def create(cls, config, stats: Optional[CrawlerStats] = None) -> "RequestRouter":
        """
        Build a router with its cache, client and gateway from configuration.
        
        Args:
            config: CrawlerConfig
            stats: Optional shared statistics
            
        Returns:
            Running router
            
        Raises:
            CacheError: If the response cache cannot be opened
        """
        stats = stats or CrawlerStats()
        
        cache = ResponseCache(config.cache_dir)
        client = RateLimitedClient(
            min_interval=config.min_request_interval,
            timeout=config.request_timeout,
            user_agent=config.user_agent
        )
        gateway = OriginGateway(cache, client, stats)
        gateway.start()
        
        def scraper_factory() -> EntityScraper:
            return EntityScraper(
                gateway,
                origin=config.origin,
                collectors_page_size=config.collectors_page_size,
                collection_page_size=config.collection_page_size
            )
        
        logger.info(f"Crawler started with {config.worker_count} workers, cache in {config.cache_dir}")
        return cls(
            scraper_factory,
            worker_count=config.worker_count,
            output_capacity=config.output_capacity,
            stats=stats,
            gateway=gateway
        )
    
    @property
    def stats(self) -> CrawlerStats:
        return self._stats
    
    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown
    
    def submit(self, request: Request) -> bool:
        """
        Queue a request unless the same kind and URL was submitted before.
        
        Args:
            request: Request to scrape
            
        Returns:
            True if the request was queued, False if it was a duplicate
            
        Raises:
            PipelineClosedError: If the router has been shut down
        """
        if self._is_shutdown:
            raise PipelineClosedError("Router is shut down", {"request": str(request)})
        
        if not self._seen.add(request):
            self._stats.items_duplicate.increment()
            logger.debug(f"Skipping duplicate request {request}")
            return False
        
        self._stats.items_queued.increment()
        try:
            self._input.put(request)
        except ChannelClosedError:
            self._stats.items_queued.decrement()
            raise PipelineClosedError("Router is shut down", {"request": str(request)})
        
        logger.debug(f"Queued {request}")
        return True
    
    def try_receive(self) -> Optional[Response]:
        """Next available response, or None without waiting."""
        if self._is_shutdown:
            return None
        return self._output.get_nowait()
    
    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop the crawler and release its resources.
        
        In-flight requests either finish or stop at their next emission.
        Calling this more than once is harmless.
        
        Args:
            timeout: Maximum time to wait for each thread
            
        Raises:
            BaseException: Whatever crashed a worker thread
        """
        with self._shutdown_lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True
        
        logger.info("Shutting down crawler")
        self._input.close()
        self._output.close()
        
        try:
            self._pool.join(timeout)
        finally:
            self._stop_gateway(timeout)
        
        snapshot = self._stats.snapshot()
        logger.info(
            f"Crawler stopped: completed={snapshot.items_completed} "
            f"duplicates={snapshot.items_duplicate} web_requests={snapshot.web_requests}"
        )
    
    def _stop_gateway(self, timeout: Optional[float]) -> None:
        if self._gateway is None:
            return
        if self._gateway.shutdown(timeout):
            self._gateway.cache.close()
            self._gateway.client.close()
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
