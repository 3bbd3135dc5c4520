"""
Unit tests for the rate-limited HTTP client.
"""

import pytest
import time
from unittest.mock import Mock, patch
from pathlib import Path
import sys

import requests

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from music_graph_crawler.crawlers.http_client import RateLimitedClient
from music_graph_crawler.utils.errors import FetchError


def make_session(text="ok", status_code=200):
    """Mock session whose requests all succeed with the given body."""
    session = Mock()
    session.headers = {}
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.raise_for_status.return_value = None
    session.request.return_value = response
    return session


class TestRequests:
    """Test request construction and error wrapping."""
    
    def test_get_returns_body_text(self):
        session = make_session("<html>page</html>")
        client = RateLimitedClient(min_interval=0, timeout=5, session=session)
        
        assert client.get("https://artist.bandcamp.com/") == "<html>page</html>"
        session.request.assert_called_once_with("GET", "https://artist.bandcamp.com/", timeout=5)
    
    def test_post_sends_json_body(self):
        session = make_session('{"results": []}')
        client = RateLimitedClient(min_interval=0, session=session)
        body = {"fan_id": 1, "older_than_token": "t", "count": 20}
        
        assert client.post("https://bandcamp.com/api/x", body) == '{"results": []}'
        args, kwargs = session.request.call_args
        assert args == ("POST", "https://bandcamp.com/api/x")
        assert kwargs["json"] == body
    
    def test_user_agent_is_set_on_session(self):
        session = make_session()
        RateLimitedClient(min_interval=0, user_agent="test-agent/1.0", session=session)
        
        assert session.headers["User-Agent"] == "test-agent/1.0"
    
    def test_http_error_status_raises_fetch_error(self):
        session = make_session(status_code=404)
        session.request.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError("404 Not Found")
        client = RateLimitedClient(min_interval=0, session=session)
        
        with pytest.raises(FetchError) as exc_info:
            client.get("https://artist.bandcamp.com/missing")
        
        assert exc_info.value.details["url"] == "https://artist.bandcamp.com/missing"
        assert exc_info.value.details["method"] == "GET"
    
    def test_transport_error_raises_fetch_error(self):
        session = make_session()
        session.request.side_effect = requests.exceptions.ConnectionError("connection refused")
        client = RateLimitedClient(min_interval=0, session=session)
        
        with pytest.raises(FetchError) as exc_info:
            client.post("https://bandcamp.com/api/x", {"a": 1})
        
        assert "connection refused" in exc_info.value.details["error"]
    
    def test_no_retry_after_failure(self):
        session = make_session()
        session.request.side_effect = requests.exceptions.Timeout("timed out")
        client = RateLimitedClient(min_interval=0, session=session)
        
        with pytest.raises(FetchError):
            client.get("https://artist.bandcamp.com/")
        
        assert session.request.call_count == 1
    
    def test_context_manager_closes_session(self):
        session = make_session()
        with RateLimitedClient(min_interval=0, session=session):
            pass
        
        session.close.assert_called_once()


class TestRateLimit:
    """Test spacing between consecutive network calls."""
    
    # Calls are timestamped slightly after the client takes its slot
    TOLERANCE = 0.01
    
    def test_consecutive_calls_are_spaced_by_min_interval(self):
        interval = 0.2
        call_times = []
        session = make_session()
        original_return = session.request.return_value
        
        def record(*args, **kwargs):
            call_times.append(time.monotonic())
            return original_return
        
        session.request.side_effect = record
        client = RateLimitedClient(min_interval=interval, session=session)
        
        for _ in range(3):
            client.get("https://artist.bandcamp.com/")
        
        assert len(call_times) == 3
        for earlier, later in zip(call_times, call_times[1:]):
            assert later - earlier >= interval - self.TOLERANCE
    
    def test_first_call_waits_from_construction(self):
        session = make_session()
        start = time.monotonic()
        client = RateLimitedClient(min_interval=0.15, session=session)
        
        client.get("https://artist.bandcamp.com/")
        
        assert time.monotonic() - start >= 0.15
    
    def test_no_sleep_when_interval_already_elapsed(self):
        session = make_session()
        client = RateLimitedClient(min_interval=0.05, session=session)
        time.sleep(0.1)
        
        with patch('music_graph_crawler.crawlers.http_client.time.sleep') as mock_sleep:
            client.get("https://artist.bandcamp.com/")
        
        mock_sleep.assert_not_called()
    
    def test_failed_call_still_counts_towards_interval(self):
        interval = 0.2
        session = make_session()
        call_times = []
        
        def fail_then_succeed(*args, **kwargs):
            call_times.append(time.monotonic())
            if len(call_times) == 1:
                raise requests.exceptions.ConnectionError("boom")
            return Mock(status_code=200, text="ok")
        
        session.request.side_effect = fail_then_succeed
        client = RateLimitedClient(min_interval=interval, session=session)
        
        with pytest.raises(FetchError):
            client.get("https://artist.bandcamp.com/a")
        client.get("https://artist.bandcamp.com/b")
        
        assert call_times[1] - call_times[0] >= interval - self.TOLERANCE
