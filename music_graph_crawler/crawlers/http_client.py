"""
HTTP client enforcing a global minimum delay between requests.
"""

import time
from typing import Any, Dict, Optional

import requests

from music_graph_crawler.utils.errors import FetchError
from music_graph_crawler.utils.logging import get_logger


logger = get_logger(__name__)


DEFAULT_USER_AGENT = "music-graph-crawler/0.1 (+https://github.com/music-graph-crawler)"


class RateLimitedClient:
    """
    Blocking HTTP client that spaces every call at least ``min_interval``
    seconds after the previous one.
    
    Not thread-safe: the gateway thread is its only caller.
    """
    
    def __init__(self,
                 min_interval: float = 1.0,
                 timeout: float = 30.0,
                 user_agent: str = DEFAULT_USER_AGENT,
                 session: Optional[requests.Session] = None):
        """
        Initialize HTTP client.
        
        Args:
            min_interval: Minimum seconds between the start of two calls
            timeout: Request timeout in seconds
            user_agent: User-Agent header sent with every request
            session: Optional pre-built session (mainly for tests)
        """
        self.min_interval = min_interval
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': user_agent})
        self._last_request = time.monotonic()
    
    def get(self, url: str) -> str:
        """
        Perform a GET request.
        
        Args:
            url: URL to request
            
        Returns:
            Response body text
            
        Raises:
            FetchError: If the request fails or returns an error status
        """
        return self._request("GET", url)
    
    def post(self, url: str, body: Dict[str, Any]) -> str:
        """
        Perform a POST request with a JSON body.
        
        Args:
            url: URL to request
            body: JSON-serializable request body
            
        Returns:
            Response body text
            
        Raises:
            FetchError: If the request fails or returns an error status
        """
        return self._request("POST", url, json=body)
    
    def _wait_for_slot(self) -> None:
        """Sleep until ``min_interval`` has passed since the last call."""
        elapsed = time.monotonic() - self._last_request
        delay = self.min_interval - elapsed
        if delay > 0:
            logger.debug(f"Delaying request by {delay:.3f}s")
            time.sleep(delay)
        self._last_request = time.monotonic()
    
    def _request(self, method: str, url: str, **kwargs) -> str:
        self._wait_for_slot()
        
        logger.debug(f"Making HTTP request: {method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            text = response.text
        except requests.exceptions.RequestException as e:
            raise FetchError(
                f"HTTP request failed: {method} {url}",
                {"method": method, "url": url, "error": str(e)}
            )
        
        logger.debug(f"HTTP request successful: {method} {url} (status={response.status_code}, size={len(text)})")
        return text
    
    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
