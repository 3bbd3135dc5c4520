"""
Single-owner gateway serializing all origin traffic through the response cache.

One thread owns both the cache connection and the rate-limited client. Worker
threads hand it small jobs over a capacity-1 queue and block on a private
reply queue, so identical concurrent requests are served one after the other
and the second one is answered from the cache.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from music_graph_crawler.concurrent.models import CrawlerStats
from music_graph_crawler.concurrent.thread_safe import ThreadSafeQueue
from music_graph_crawler.data.response_cache import ResponseCache, encode_body
from music_graph_crawler.utils.errors import ChannelClosedError, GatewayClosedError
from music_graph_crawler.utils.logging import get_logger
from .http_client import RateLimitedClient


logger = get_logger(__name__)


GET = "get"
POST = "post"


@dataclass
class GatewayJob:
    """A fetch handed to the gateway thread, with its single-use reply queue."""
    method: str
    url: str
    body: Optional[Dict[str, Any]] = None
    reply: ThreadSafeQueue = field(default_factory=lambda: ThreadSafeQueue(maxsize=1))


class OriginGateway:
    """Actor that answers fetches from the cache or the network."""
    
    def __init__(self, cache: ResponseCache, client: RateLimitedClient, stats: CrawlerStats):
        """
        Initialize gateway.
        
        Args:
            cache: Open response cache; owned by the gateway from now on
            client: Rate-limited client; owned by the gateway from now on
            stats: Shared statistics
        """
        self.cache = cache
        self.client = client
        self.stats = stats
        self._jobs: ThreadSafeQueue = ThreadSafeQueue(maxsize=1)
        self._thread: Optional[threading.Thread] = None
    
    def start(self) -> None:
        """Start the gateway thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="web-gateway", daemon=True)
        self._thread.start()
        logger.debug("Origin gateway started")
    
    def get(self, url: str) -> str:
        """
        Fetch a page through the gateway.
        
        Args:
            url: Page URL
            
        Returns:
            Response body text
        """
        return self._submit(GatewayJob(GET, url))
    
    def post(self, url: str, body: Dict[str, Any]) -> str:
        """
        Send a JSON POST through the gateway.
        
        Args:
            url: API URL
            body: JSON request body
            
        Returns:
            Response body text
        """
        return self._submit(GatewayJob(POST, url, body))
    
    def _submit(self, job: GatewayJob) -> str:
        try:
            self._jobs.put(job)
            result: Union[str, BaseException] = job.reply.get()
        except ChannelClosedError:
            raise GatewayClosedError(
                "Origin gateway is shut down",
                {"method": job.method, "url": job.url}
            )
        
        if isinstance(result, BaseException):
            raise result
        return result
    
    def _run(self) -> None:
        """Serve jobs until the job queue is closed and drained."""
        while True:
            try:
                job = self._jobs.get()
            except ChannelClosedError:
                break
            
            try:
                result: Union[str, BaseException] = self.fetch(job.method, job.url, job.body)
            except Exception as e:
                result = e
            job.reply.put(result)
        
        logger.debug("Origin gateway stopped")
    
    def fetch(self, method: str, url: str, body: Optional[Dict[str, Any]] = None) -> str:
        """
        Serve one request from the cache, falling through to the network.
        
        Only called on the gateway thread.
        
        Args:
            method: "get" or "post"
            url: Request URL
            body: JSON body for POST requests
            
        Returns:
            Response body text
        """
        self.stats.web_requests.increment()
        
        cached = self.cache.lookup(url, method, body)
        if cached is not None:
            self.stats.web_cache_hits.increment()
            logger.debug(f"Cache hit: {method} {url} {encode_body(body)} (retrieved {cached.retrieved.isoformat()})")
            return cached.body
        
        self.stats.web_cache_misses.increment()
        logger.debug(f"Cache miss: {method} {url} {encode_body(body)}")
        
        if method == POST:
            response = self.client.post(url, body)
        else:
            response = self.client.get(url)
        
        self.cache.store(url, method, body, response)
        return response
    
    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting jobs and wait for the gateway thread to finish.
        
        Args:
            timeout: Maximum time to wait for the thread
            
        Returns:
            True if the thread stopped within the timeout
        """
        self._jobs.close()
        if self._thread is None:
            return True
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Origin gateway did not stop within timeout")
            return False
        return True
