"""
Headless command-line runner for the music graph crawler.
"""

import sys
import signal
import time
import argparse
from typing import List, Optional

import schedule

from music_graph_crawler.concurrent.router import RequestRouter
from music_graph_crawler.data.models import (
    EntityKind,
    Request,
    Response,
    ArtistScraped,
    ReleaseScraped,
    UserScraped,
    Releases,
    Collection,
    Fans,
    ReleaseArtist,
)
from music_graph_crawler.utils.errors import MusicGraphCrawlerError
from music_graph_crawler.utils.logging import get_logger, setup_logging
from config import ConfigManager, SystemConfig


logger = get_logger(__name__)


def discovered_requests(response: Response) -> List[Request]:
    """Requests for every entity a response points at."""
    if isinstance(response, (Releases, Collection)):
        return [Request.release(release.url) for release in response.releases]
    if isinstance(response, Fans):
        return [Request.user(user.url) for user in response.users]
    if isinstance(response, ReleaseArtist):
        return [Request.artist(response.artist.url)]
    return []


def describe_response(response: Response) -> str:
    """One-line summary of a response for the log."""
    if isinstance(response, ArtistScraped):
        return f"artist {response.details.name!r} ({response.artist.url})"
    if isinstance(response, ReleaseScraped):
        details = response.details
        return (
            f"{details.release_type.name.lower()} {details.title!r} by {details.artist!r}, "
            f"{details.tracks if details.tracks is not None else 1} track(s), {details.length}, "
            f"released {details.released.date().isoformat()} ({response.release.url})"
        )
    if isinstance(response, UserScraped):
        return f"fan {response.details.name!r} ({response.user.url})"
    if isinstance(response, Releases):
        return f"{len(response.releases)} release(s) by {response.artist.url}"
    if isinstance(response, Collection):
        return f"{len(response.releases)} release(s) collected by {response.user.url}"
    if isinstance(response, Fans):
        return f"{len(response.users)} fan(s) of {response.release.url}"
    if isinstance(response, ReleaseArtist):
        return f"{response.release.url} is by {response.artist.url}"
    return repr(response)


class CrawlerApp:
    """Drives a router from seed requests until the crawl goes idle."""

    def __init__(
        self,
        config: SystemConfig,
        follow: bool = False,
        max_requests: Optional[int] = None,
        idle_timeout: float = 30.0,
        stats_interval: int = 10
    ):
        """
        Initialize the application.

        Args:
            config: Loaded system configuration
            follow: Submit every entity discovered in responses
            max_requests: Accepted submissions, seeds included, after which discovered
                requests are no longer followed
            idle_timeout: Seconds without responses or pending work before stopping
            stats_interval: Seconds between statistics reports
        """
        self.config = config
        self.follow = follow
        self.max_requests = max_requests
        self.idle_timeout = idle_timeout

        self.router: Optional[RequestRouter] = None
        self.responses_received = 0
        self.requests_accepted = 0
        self._shutdown_requested = False

        self._scheduler = schedule.Scheduler()
        self._scheduler.every(stats_interval).seconds.do(self._report_stats)

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

    def _signal_handler(self, signum: int, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, initiating graceful shutdown")
        self._shutdown_requested = True

    def start(self, seeds: List[Request]) -> None:
        """Open the cache, start the workers and submit the seeds."""
        self.router = RequestRouter.create(self.config.crawler)
        for request in seeds:
            if self.router.submit(request):
                self.requests_accepted += 1

    def _follow(self, request: Request) -> None:
        """Submit a discovered request unless the follow budget is spent."""
        if self.max_requests is not None and self.requests_accepted >= self.max_requests:
            return
        if self.router.submit(request):
            self.requests_accepted += 1

    def run(self) -> None:
        """Consume responses until idle, interrupted, or out of work."""
        logger.info("Entering main crawl loop")
        last_activity = time.monotonic()

        while not self._shutdown_requested:
            self._scheduler.run_pending()

            # Read the counters first: a worker emits before it stops counting as busy
            snapshot = self.router.stats.snapshot()
            response = self.router.try_receive()
            if response is None:
                if snapshot.items_queued == 0 and snapshot.items_processing == 0:
                    logger.info("All submitted requests are finished")
                    break
                if time.monotonic() - last_activity > self.idle_timeout:
                    logger.warning(f"No responses for {self.idle_timeout}s, stopping")
                    break
                time.sleep(0.1)
                continue

            last_activity = time.monotonic()
            self.responses_received += 1
            logger.info(f"Received {describe_response(response)}")

            if self.follow:
                for request in discovered_requests(response):
                    self._follow(request)

        logger.info("Exiting main crawl loop")

    def _report_stats(self) -> None:
        stats = self.router.stats.snapshot()
        logger.info(
            f"Stats: queued={stats.items_queued} processing={stats.items_processing} "
            f"completed={stats.items_completed} duplicates={stats.items_duplicate} "
            f"web_requests={stats.web_requests} cache_hits={stats.web_cache_hits} "
            f"cache_misses={stats.web_cache_misses} responses={self.responses_received}"
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Shut the router down, re-raising a crashed worker's exception."""
        if self.router is None:
            return
        self._report_stats()
        self.router.shutdown(timeout)


def create_cli_parser() -> argparse.ArgumentParser:
    """Create command-line interface parser."""
    parser = argparse.ArgumentParser(
        description='Music Graph Crawler - explore artists, releases and fans',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --artist https://artist.bandcamp.com/
  %(prog)s --release https://artist.bandcamp.com/album/name --follow --max-requests 50
  %(prog)s --config custom.json     # Seeds and settings from a configuration file
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config.json',
        help='Path to configuration file (default: config.json)'
    )

    # Seeds
    parser.add_argument('--artist', action='append', default=[], metavar='URL', help='Artist page to scrape')
    parser.add_argument('--release', action='append', default=[], metavar='URL', help='Release page to scrape')
    parser.add_argument('--user', action='append', default=[], metavar='URL', help='Fan page to scrape')

    parser.add_argument(
        '--follow',
        action='store_true',
        help='Also scrape every entity discovered along the way'
    )

    parser.add_argument(
        '--max-requests',
        type=int,
        default=100,
        help='With --follow, stop following once this many requests, seeds included, are accepted (default: 100)'
    )

    parser.add_argument(
        '--idle-timeout',
        type=float,
        default=60.0,
        help='Stop after this many seconds without progress (default: 60)'
    )

    parser.add_argument(
        '--stats-interval',
        type=int,
        default=10,
        help='Seconds between statistics reports (default: 10)'
    )

    # Logging options
    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Override log level from configuration'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output (equivalent to --log-level DEBUG)'
    )

    return parser


def collect_seeds(config: SystemConfig, args: argparse.Namespace) -> List[Request]:
    """Seeds from the configuration file followed by those on the command line."""
    seeds = [Request(EntityKind(seed.kind), seed.url) for seed in config.seeds]
    seeds.extend(Request.artist(url) for url in args.artist)
    seeds.extend(Request.release(url) for url in args.release)
    seeds.extend(Request.user(url) for url in args.user)
    return seeds


def main():
    """Main entry point with command-line interface."""
    parser = create_cli_parser()
    args = parser.parse_args()

    try:
        config = ConfigManager(args.config).load_config()
    except MusicGraphCrawlerError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.verbose:
        log_level = 'DEBUG'
    else:
        log_level = args.log_level or config.logging.log_level
    setup_logging(log_level, config.logging.log_file, config.logging.retention_days)

    seeds = collect_seeds(config, args)
    if not seeds:
        parser.error("no seeds: pass --artist, --release or --user, or list seeds in the configuration")

    app = None
    exit_code = 0

    try:
        app = CrawlerApp(
            config,
            follow=args.follow,
            max_requests=args.max_requests,
            idle_timeout=args.idle_timeout,
            stats_interval=args.stats_interval
        )
        app.start(seeds)
        app.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except MusicGraphCrawlerError as e:
        logger.error(f"Crawler error: {e}")
        exit_code = 1
    finally:
        if app:
            try:
                app.stop()
            except Exception as e:
                logger.error(f"Error during shutdown: {e!r}")
                exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
