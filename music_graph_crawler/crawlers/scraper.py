"""
Entity scrapers for artist, release and fan pages.

A scrape fetches the entity page, parses it completely, then reports what it
found through a ScrapeVisitor: relationship batches first (following the
origin's pagination APIs until they report nothing more), and the primary
entity with its details last.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import urljoin

from bs4 import Tag

from music_graph_crawler.data.models import (
    EntityKind,
    Request,
    Artist,
    Release,
    User,
    Entity,
    ReleaseType,
    ArtistDetails,
    ReleaseDetails,
    UserDetails,
)
from music_graph_crawler.utils.errors import ExtractionError
from music_graph_crawler.utils.logging import get_logger
from . import schemas
from .parsing import (
    EPOCH,
    parse_document,
    select_one,
    select_all,
    get_attribute,
    parse_json,
    json_attribute,
    parse_duration,
    parse_rfc2822,
    round_to_day,
    parse_item_id,
    element_text,
)


logger = get_logger(__name__)


DEFAULT_ORIGIN = "https://bandcamp.com"
COLLECTORS_API_PATH = "/api/tralbumcollectors/2/thumbs"
COLLECTION_API_PATH = "/api/fancollection/1/collection_items"


class Fetcher(Protocol):
    """Anything that can fetch pages and post to APIs (normally the gateway)."""
    
    def get(self, url: str) -> str: ...
    
    def post(self, url: str, body: Dict[str, Any]) -> str: ...


class ScrapeVisitor(ABC):
    """Receives the results of one scrape, in emission order."""
    
    @abstractmethod
    def on_primary(self, entity: Entity, details: Any) -> None:
        """Called once, last, with the scraped entity and its details."""
    
    @abstractmethod
    def on_relationship_batch(self, owner: Entity, items: List[Entity]) -> None:
        """Called for every group of related entities, before ``on_primary``."""
    
    @abstractmethod
    def on_owning_artist(self, release: Release, artist: Artist) -> None:
        """Called for release scrapes only, before any relationship batch."""


@dataclass
class ArtistPage:
    artist_id: int
    name: str
    grid_releases: List[Release]
    client_releases: Optional[List[Release]]


@dataclass
class ReleasePage:
    item_id: int
    item_type: str
    release_type: ReleaseType
    artist: Artist
    title: str
    artist_name: str
    tracks: Optional[int]
    length: timedelta
    released: datetime
    reviewers: List[User]
    thumbs: List[User]
    last_thumb_token: Optional[str]
    more_thumbs_available: bool


@dataclass
class FanPage:
    fan_id: int
    name: str
    username: str
    collection: List[Release]
    collection_count: int
    last_token: Optional[str]


class EntityScraper:
    """Stateless-between-calls scraper; each worker owns one."""
    
    def __init__(self,
                 fetcher: Fetcher,
                 origin: str = DEFAULT_ORIGIN,
                 collectors_page_size: int = 80,
                 collection_page_size: int = 20):
        """
        Initialize scraper.
        
        Args:
            fetcher: Page/API fetcher, normally the origin gateway
            origin: Site root used for fan URLs and the collection API
            collectors_page_size: Fans requested per collectors API call
            collection_page_size: Items requested per collection API call
        """
        self.fetcher = fetcher
        self.origin = origin.rstrip("/")
        self.collectors_page_size = collectors_page_size
        self.collection_page_size = collection_page_size
    
    def scrape(self, request: Request, visitor: ScrapeVisitor) -> None:
        """
        Scrape the entity a request points at.
        
        Args:
            request: What to scrape
            visitor: Receives the results
            
        Raises:
            ExtractionError: If the page or an API payload cannot be parsed
            FetchError: If fetching fails
        """
        if request.kind is EntityKind.ARTIST:
            self.scrape_artist(request.url, visitor)
        elif request.kind is EntityKind.RELEASE:
            self.scrape_release(request.url, visitor)
        elif request.kind is EntityKind.USER:
            self.scrape_user(request.url, visitor)
        else:
            raise ExtractionError(f"unsupported request kind {request.kind}", {"request": str(request)})
    
    # Artist
    
    def scrape_artist(self, url: str, visitor: ScrapeVisitor) -> None:
        """Scrape an artist storefront and the releases listed on it."""
        page = self.parse_artist_page(url, self.fetcher.get(url))
        artist = Artist(id=page.artist_id, url=url)
        
        visitor.on_relationship_batch(artist, page.grid_releases)
        if page.client_releases is not None:
            visitor.on_relationship_batch(artist, page.client_releases)
        
        visitor.on_primary(artist, ArtistDetails(name=page.name))
    
    def parse_artist_page(self, url: str, html: str) -> ArtistPage:
        document = parse_document(html)
        
        data_band = json_attribute(document, "[data-band]", "data-band", schemas.DATA_BAND_SCHEMA)
        
        grid_releases = [
            self._parse_music_grid_item(url, item)
            for item in select_all(document, "li.music-grid-item")
        ]
        
        # Items beyond the first screenful are rendered client-side from this blob
        music_grid = select_one(document, "#music-grid")
        client_items_blob = music_grid.get("data-client-items")
        client_releases = None
        if client_items_blob is not None:
            client_releases = [
                Release(id=int(item["id"]), url=urljoin(url, item["page_url"]))
                for item in parse_json(client_items_blob, schemas.CLIENT_ITEMS_SCHEMA)
            ]
        
        return ArtistPage(
            artist_id=int(data_band["id"]),
            name=data_band["name"],
            grid_releases=grid_releases,
            client_releases=client_releases,
        )
    
    def _parse_music_grid_item(self, url: str, item: Tag) -> Release:
        # data-item-id looks like "album-1234567890"
        item_type, separator, item_id = get_attribute(item, "data-item-id").partition("-")
        if not separator:
            raise ExtractionError("failed to parse id", {"data-item-id": item.get("data-item-id")})
        # The title is required markup even though only the id and link are kept
        select_one(item, ".title")
        href = get_attribute(select_one(item, "a"), "href")
        return Release(id=parse_item_id(item_id), url=urljoin(url, href))
    
    # Release
    
    def scrape_release(self, url: str, visitor: ScrapeVisitor) -> None:
        """Scrape a release page, its owning artist and all of its fans."""
        page = self.parse_release_page(url, self.fetcher.get(url))
        release = Release(id=page.item_id, url=url)
        
        visitor.on_owning_artist(release, page.artist)
        visitor.on_relationship_batch(release, page.reviewers)
        visitor.on_relationship_batch(release, page.thumbs)
        
        token = page.last_thumb_token
        more_available = page.more_thumbs_available
        while token is not None and more_available:
            results = self._fetch_collectors_page(url, page, token)
            if not results["results"] and results["more_available"]:
                raise ExtractionError("collectors page is empty but more are available", {"url": url})
            if results["results"]:
                token = results["results"][-1]["token"]
            more_available = results["more_available"]
            visitor.on_relationship_batch(release, [self._fan(fan) for fan in results["results"]])
        
        visitor.on_primary(release, ReleaseDetails(
            release_type=page.release_type,
            title=page.title,
            artist=page.artist_name,
            tracks=page.tracks,
            length=page.length,
            released=page.released,
        ))
    
    def parse_release_page(self, url: str, html: str) -> ReleasePage:
        document = parse_document(html)
        
        properties = json_attribute(
            document, 'meta[name="bc-page-properties"]', "content", schemas.PAGE_PROPERTIES_SCHEMA
        )
        release_type = ReleaseType.from_code(properties["item_type"])
        data_band = json_attribute(document, "[data-band]", "data-band", schemas.DATA_BAND_SCHEMA)
        data_tralbum = json_attribute(document, "[data-tralbum]", "data-tralbum", schemas.DATA_TRALBUM_SCHEMA)
        collectors = json_attribute(document, "#collectors-data", "data-blob", schemas.COLLECTORS_SCHEMA)
        ld_data = parse_json(
            element_text(select_one(document, 'script[type="application/ld+json"]')),
            schemas.RELEASE_LD_SCHEMA
        )
        
        discography = document.select_one("#discography a.link-and-title")
        discography_href = discography.get("href") if discography is not None else None
        
        thumbs = collectors["thumbs"]
        track_list = ld_data.get("track")
        
        return ReleasePage(
            item_id=int(properties["item_id"]),
            item_type=properties["item_type"],
            release_type=release_type,
            artist=Artist(id=int(data_band["id"]), url=urljoin(url, discography_href or "/")),
            title=ld_data["name"],
            artist_name=ld_data["byArtist"]["name"],
            tracks=track_list["numberOfItems"] if track_list is not None else None,
            length=self._release_length(ld_data),
            released=self._release_date(data_tralbum["current"]),
            reviewers=[self._fan(review) for review in collectors["reviews"]],
            thumbs=[self._fan(thumb) for thumb in thumbs],
            last_thumb_token=thumbs[-1]["token"] if thumbs else None,
            more_thumbs_available=collectors["more_thumbs_available"],
        )
    
    @staticmethod
    def _release_length(ld_data: Dict[str, Any]) -> timedelta:
        """Top-level duration, else the sum of the track durations, else zero."""
        if ld_data.get("duration") is not None:
            return parse_duration(ld_data["duration"])
        
        track_list = ld_data.get("track")
        if track_list is None:
            return timedelta(0)
        try:
            return sum(
                (parse_duration(element["item"]["duration"]) for element in track_list["itemListElement"]),
                timedelta(0)
            )
        except OverflowError:
            raise ExtractionError("total track length out of range")
    
    @staticmethod
    def _release_date(current: Dict[str, Any]) -> datetime:
        # Some releases have no release date; fall back to the publish date
        released = EPOCH
        if current.get("release_date") is not None:
            released = parse_rfc2822(current["release_date"])
        if released.timestamp() == EPOCH.timestamp():
            released = parse_rfc2822(current["publish_date"])
        return round_to_day(released)
    
    def _fetch_collectors_page(self, url: str, page: ReleasePage, token: str) -> Dict[str, Any]:
        api_url = urljoin(url, COLLECTORS_API_PATH)
        body = {
            "tralbum_type": page.item_type,
            "tralbum_id": page.item_id,
            "token": token,
            "count": self.collectors_page_size,
        }
        logger.debug(f"Fetching collectors page for {url}")
        return parse_json(self.fetcher.post(api_url, body), schemas.THUMBS_PAGE_SCHEMA)
    
    def _fan(self, fan: Dict[str, Any]) -> User:
        return User(id=int(fan["fan_id"]), url=f"{self.origin}/{fan['username']}")
    
    # Fan
    
    def scrape_user(self, url: str, visitor: ScrapeVisitor) -> None:
        """Scrape a fan page and the fan's whole collection."""
        page = self.parse_fan_page(self.fetcher.get(url))
        user = User(id=page.fan_id, url=f"{self.origin}/{page.username}")
        
        visitor.on_relationship_batch(user, page.collection)
        
        last_token = page.last_token
        more_available = len(page.collection) < page.collection_count
        while more_available:
            if last_token is None:
                raise ExtractionError("collection continues but has no token", {"url": url})
            results = self._fetch_collection_page(page.fan_id, last_token)
            more_available = results["more_available"]
            last_token = results["last_token"]
            visitor.on_relationship_batch(user, [self._collection_item(item) for item in results["items"]])
        
        visitor.on_primary(user, UserDetails(name=page.name, username=page.username))
    
    def parse_fan_page(self, html: str) -> FanPage:
        document = parse_document(html)
        blob = json_attribute(document, "#pagedata", "data-blob", schemas.FAN_PAGE_SCHEMA)
        
        # The first page of the collection is stored as an ordered list of
        # keys into the item cache
        item_cache = dict(blob["item_cache"]["collection"])
        collection = []
        for key in blob["collection_data"]["sequence"]:
            item = item_cache.pop(key, None)
            if item is None:
                raise ExtractionError("cache missing collection item", {"key": key})
            collection.append(self._collection_item(item))
        
        fan_data = blob["fan_data"]
        return FanPage(
            fan_id=int(fan_data["fan_id"]),
            name=fan_data["name"],
            username=fan_data["username"],
            collection=collection,
            collection_count=blob["collection_count"],
            last_token=blob["collection_data"]["last_token"],
        )
    
    def _fetch_collection_page(self, fan_id: int, token: str) -> Dict[str, Any]:
        body = {
            "fan_id": fan_id,
            "older_than_token": token,
            "count": self.collection_page_size,
        }
        logger.debug(f"Fetching collection page for fan {fan_id}")
        return parse_json(
            self.fetcher.post(f"{self.origin}{COLLECTION_API_PATH}", body),
            schemas.COLLECTION_PAGE_SCHEMA
        )
    
    @staticmethod
    def _collection_item(item: Dict[str, Any]) -> Release:
        return Release(id=int(item["item_id"]), url=item["item_url"])
