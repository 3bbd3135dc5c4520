"""
Tests for error handling, log cleanup and the command-line helpers.
"""

import pytest
import os
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch
from pathlib import Path
import sys

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from music_graph_crawler.utils.errors import ExtractionError, FetchError, handle_error
from music_graph_crawler.utils.logging import cleanup_old_logs
from music_graph_crawler.data.models import (
    EntityKind,
    Request,
    Artist,
    Release,
    User,
    ReleaseType,
    ReleaseDetails,
    ReleaseScraped,
    Releases,
    Collection,
    Fans,
    ReleaseArtist,
)
from music_graph_crawler.main import CrawlerApp, create_cli_parser, collect_seeds, describe_response, discovered_requests
from config import SystemConfig, SeedConfig


RELEASE = Release(id=1, url="https://x.bandcamp.com/album/a")
ARTIST = Artist(id=2, url="https://x.bandcamp.com/")


class TestHandleError:
    
    def test_logs_details_and_context(self):
        logger = Mock()
        error = FetchError("HTTP request failed", {"url": "https://x.bandcamp.com/"})
        
        handle_error(error, logger, {"request": "artist:https://x.bandcamp.com/"}, reraise=False)
        
        message = logger.error.call_args[0][0]
        assert "error_type=FetchError" in message
        assert "url=https://x.bandcamp.com/" in message
        assert "request=artist:https://x.bandcamp.com/" in message
    
    def test_reraises_by_default(self):
        with pytest.raises(ExtractionError):
            handle_error(ExtractionError("missing element"), Mock())


class TestCleanupOldLogs:
    
    def test_removes_only_expired_logs(self, tmp_path):
        old_log = tmp_path / "crawler.log.2020-01-01"
        new_log = tmp_path / "crawler.log"
        other = tmp_path / "notes.txt"
        for path in (old_log, new_log, other):
            path.write_text("x")
        old_time = time.time() - 30 * 24 * 3600
        os.utime(old_log, (old_time, old_time))
        os.utime(other, (old_time, old_time))
        
        assert cleanup_old_logs(tmp_path, retention_days=7) == 1
        assert not old_log.exists()
        assert new_log.exists()
        assert other.exists()
    
    def test_missing_directory(self, tmp_path):
        assert cleanup_old_logs(tmp_path / "missing") == 0


class TestDiscoveredRequests:
    
    def test_release_batches_become_release_requests(self):
        releases = Releases(ARTIST, [RELEASE])
        collection = Collection(User(id=3, url="https://bandcamp.com/fan"), [RELEASE])
        
        assert discovered_requests(releases) == [Request.release(RELEASE.url)]
        assert discovered_requests(collection) == [Request.release(RELEASE.url)]
    
    def test_fans_become_user_requests(self):
        fans = Fans(RELEASE, [User(id=3, url="https://bandcamp.com/fan")])
        assert discovered_requests(fans) == [Request.user("https://bandcamp.com/fan")]
    
    def test_owning_artist_becomes_artist_request(self):
        assert discovered_requests(ReleaseArtist(RELEASE, ARTIST)) == [Request.artist(ARTIST.url)]
    
    def test_primary_responses_discover_nothing(self):
        details = ReleaseDetails(
            release_type=ReleaseType.ALBUM,
            title="A",
            artist="B",
            tracks=3,
            length=timedelta(minutes=10),
            released=datetime(2015, 2, 20, tzinfo=timezone.utc),
        )
        response = ReleaseScraped(RELEASE, details)
        
        assert discovered_requests(response) == []
        assert "'A' by 'B'" in describe_response(response)


class TestCommandLine:
    
    def test_seeds_from_config_and_flags(self):
        config = SystemConfig(seeds=[SeedConfig("user", "https://bandcamp.com/fan")])
        args = create_cli_parser().parse_args([
            "--artist", "https://x.bandcamp.com/",
            "--release", "https://x.bandcamp.com/album/a",
            "--release", "https://x.bandcamp.com/album/b",
        ])
        
        seeds = collect_seeds(config, args)
        
        assert seeds == [
            Request(EntityKind.USER, "https://bandcamp.com/fan"),
            Request.artist("https://x.bandcamp.com/"),
            Request.release("https://x.bandcamp.com/album/a"),
            Request.release("https://x.bandcamp.com/album/b"),
        ]
    
    def test_parser_defaults(self):
        args = create_cli_parser().parse_args([])
        
        assert args.follow is False
        assert args.max_requests == 100
        assert args.config == "config.json"
        assert collect_seeds(SystemConfig(), args) == []


class TestCrawlerApp:
    
    def setup_method(self):
        self.router = Mock()
        self.router.submit.return_value = True
        self.seeds = [Request.artist("https://x.bandcamp.com/"), Request.user("https://bandcamp.com/fan")]
    
    def start_app(self, **kwargs) -> CrawlerApp:
        with patch("music_graph_crawler.main.signal.signal"), \
             patch("music_graph_crawler.main.RequestRouter.create", return_value=self.router):
            app = CrawlerApp(SystemConfig(), **kwargs)
            app.start(self.seeds)
        return app
    
    def test_seeds_ignore_request_cap(self):
        app = self.start_app(follow=False, max_requests=1)
        
        assert [c.args[0] for c in self.router.submit.call_args_list] == self.seeds
        assert app.requests_accepted == 2
    
    def test_followed_requests_stop_at_cap(self):
        app = self.start_app(follow=True, max_requests=3)
        
        app._follow(Request.release("https://x.bandcamp.com/album/a"))
        app._follow(Request.release("https://x.bandcamp.com/album/b"))
        
        assert self.router.submit.call_count == 3
        assert app.requests_accepted == 3
    
    def test_duplicate_seed_not_counted(self):
        self.router.submit.side_effect = [True, False, True]
        
        app = self.start_app(follow=True, max_requests=2)
        app._follow(Request.release("https://x.bandcamp.com/album/a"))
        
        assert app.requests_accepted == 2
        assert self.router.submit.call_count == 3
