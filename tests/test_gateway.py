"""
Tests for the origin gateway: cache idempotence and single-owner serialization.
"""

import pytest
import threading
import tempfile
import shutil
from unittest.mock import Mock
from pathlib import Path
import sys

from hypothesis import given, strategies as st

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from music_graph_crawler.concurrent.models import CrawlerStats
from music_graph_crawler.crawlers.gateway import OriginGateway, GET, POST
from music_graph_crawler.data.response_cache import ResponseCache
from music_graph_crawler.utils.errors import FetchError, GatewayClosedError


PAGE_URL = "https://artist.bandcamp.com/album/a"
API_URL = "https://bandcamp.com/api/fancollection/1/collection_items"


class TestGatewayFetch:
    """Test cache-or-network behaviour of a single fetch."""
    
    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp(prefix="gateway_test_")
        self.cache = ResponseCache(self.temp_dir)
        self.client = Mock()
        self.client.get.side_effect = lambda url: f"<html>{url}</html>"
        self.client.post.side_effect = lambda url, body: f'{{"token": "{body["older_than_token"]}"}}'
        self.stats = CrawlerStats()
        self.gateway = OriginGateway(self.cache, self.client, self.stats)
    
    def teardown_method(self):
        self.gateway.shutdown(timeout=5)
        self.cache.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)
    
    def test_second_fetch_is_served_from_cache(self):
        first = self.gateway.fetch(GET, PAGE_URL)
        second = self.gateway.fetch(GET, PAGE_URL)
        
        assert first == second == f"<html>{PAGE_URL}</html>"
        self.client.get.assert_called_once_with(PAGE_URL)
        
        snapshot = self.stats.snapshot()
        assert snapshot.web_requests == 2
        assert snapshot.web_cache_misses == 1
        assert snapshot.web_cache_hits == 1
    
    def test_post_bodies_are_cached_separately(self):
        first = self.gateway.fetch(POST, API_URL, {"fan_id": 1, "older_than_token": "a", "count": 20})
        second = self.gateway.fetch(POST, API_URL, {"fan_id": 1, "older_than_token": "b", "count": 20})
        again = self.gateway.fetch(POST, API_URL, {"fan_id": 1, "older_than_token": "a", "count": 20})
        
        assert first == again == '{"token": "a"}'
        assert second == '{"token": "b"}'
        assert self.client.post.call_count == 2
    
    def test_network_failure_is_not_cached(self):
        self.client.get.side_effect = [FetchError("HTTP request failed"), "<html>ok</html>"]
        
        with pytest.raises(FetchError):
            self.gateway.fetch(GET, PAGE_URL)
        
        assert self.cache.lookup(PAGE_URL, GET) is None
        assert self.gateway.fetch(GET, PAGE_URL) == "<html>ok</html>"
        assert self.stats.snapshot().web_cache_misses == 2
    
    def test_existing_cache_rows_avoid_the_network(self):
        self.cache.store(PAGE_URL, GET, None, "<html>from an earlier run</html>")
        
        assert self.gateway.fetch(GET, PAGE_URL) == "<html>from an earlier run</html>"
        self.client.get.assert_not_called()
    
    @given(st.lists(st.sampled_from(["/a", "/b", "/c", "/d"]), min_size=1, max_size=20))
    def test_network_calls_equal_distinct_urls(self, paths):
        """Any sequence of fetches hits the network once per distinct URL."""
        temp_dir = tempfile.mkdtemp(prefix="gateway_property_")
        cache = ResponseCache(temp_dir)
        client = Mock()
        client.get.side_effect = lambda url: url.upper()
        stats = CrawlerStats()
        gateway = OriginGateway(cache, client, stats)
        
        try:
            for path in paths:
                url = f"https://artist.bandcamp.com{path}"
                assert gateway.fetch(GET, url) == url.upper()
            
            assert client.get.call_count == len(set(paths))
            snapshot = stats.snapshot()
            assert snapshot.web_cache_misses == len(set(paths))
            assert snapshot.web_cache_hits == len(paths) - len(set(paths))
        finally:
            cache.close()
            shutil.rmtree(temp_dir, ignore_errors=True)


class TestGatewayThread:
    """Test the gateway as a running actor."""
    
    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp(prefix="gateway_thread_test_")
        self.cache = ResponseCache(self.temp_dir)
        self.client = Mock()
        self.client.get.side_effect = lambda url: f"<html>{url}</html>"
        self.stats = CrawlerStats()
        self.gateway = OriginGateway(self.cache, self.client, self.stats)
        self.gateway.start()
    
    def teardown_method(self):
        self.gateway.shutdown(timeout=5)
        self.cache.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)
    
    def test_get_through_thread(self):
        assert self.gateway.get(PAGE_URL) == f"<html>{PAGE_URL}</html>"
        assert self.gateway.get(PAGE_URL) == f"<html>{PAGE_URL}</html>"
        
        self.client.get.assert_called_once()
        assert self.stats.snapshot().web_cache_hits == 1
    
    def test_errors_are_returned_to_the_caller(self):
        self.client.get.side_effect = FetchError("HTTP request failed", {"url": PAGE_URL})
        
        with pytest.raises(FetchError):
            self.gateway.get(PAGE_URL)
        
        # The gateway survives a failed job
        self.client.get.side_effect = lambda url: "recovered"
        assert self.gateway.get(PAGE_URL) == "recovered"
    
    def test_concurrent_identical_requests_hit_network_once(self):
        results = []
        results_lock = threading.Lock()
        
        def fetch():
            body = self.gateway.get(PAGE_URL)
            with results_lock:
                results.append(body)
        
        threads = [threading.Thread(target=fetch) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        
        assert len(results) == 8
        assert len(set(results)) == 1
        self.client.get.assert_called_once_with(PAGE_URL)
        
        snapshot = self.stats.snapshot()
        assert snapshot.web_cache_misses == 1
        assert snapshot.web_cache_hits == 7
    
    def test_shutdown_rejects_new_requests(self):
        assert self.gateway.shutdown(timeout=5)
        
        with pytest.raises(GatewayClosedError):
            self.gateway.get(PAGE_URL)
    
    def test_shutdown_is_repeatable(self):
        assert self.gateway.shutdown(timeout=5)
        assert self.gateway.shutdown(timeout=5)
