"""
Data models for scrape requests, catalog entities and streamed responses.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Union

from music_graph_crawler.utils.errors import ExtractionError


class EntityKind(Enum):
    """Kind of catalog entity a request targets."""
    ARTIST = "artist"
    RELEASE = "release"
    USER = "user"


@dataclass(frozen=True)
class Request:
    """A unit of scrape work, identified by entity kind and URL."""
    kind: EntityKind
    url: str
    
    @classmethod
    def artist(cls, url: str) -> "Request":
        return cls(EntityKind.ARTIST, url)
    
    @classmethod
    def release(cls, url: str) -> "Request":
        return cls(EntityKind.RELEASE, url)
    
    @classmethod
    def user(cls, url: str) -> "Request":
        return cls(EntityKind.USER, url)
    
    def __str__(self) -> str:
        return f"{self.kind.value}:{self.url}"


@dataclass(frozen=True)
class Artist:
    """Artist identity: numeric id plus canonical URL."""
    id: int
    url: str


@dataclass(frozen=True)
class Release:
    """Release (album or single track) identity."""
    id: int
    url: str


@dataclass(frozen=True)
class User:
    """Fan identity."""
    id: int
    url: str


Entity = Union[Artist, Release, User]


class ReleaseType(Enum):
    """Whether a release is a full album or a single track."""
    ALBUM = "a"
    TRACK = "t"
    
    @classmethod
    def from_code(cls, code: str) -> "ReleaseType":
        """
        Map the storefront's short type code to a release type.
        
        Args:
            code: Type code from the page properties
            
        Returns:
            Matching release type
            
        Raises:
            ExtractionError: If the code is unknown
        """
        for release_type in cls:
            if release_type.value == code:
                return release_type
        raise ExtractionError(f"unknown release type {code}", {"code": code})


@dataclass(frozen=True)
class ArtistDetails:
    name: str


@dataclass(frozen=True)
class ReleaseDetails:
    """Details parsed from a release page.
    
    ``artist`` is the credited album artist, which may differ from the
    storefront that sells the release (labels, featured artists).
    """
    release_type: ReleaseType
    title: str
    artist: str
    tracks: Optional[int]
    length: timedelta
    released: datetime


@dataclass(frozen=True)
class UserDetails:
    name: str
    username: str


class Response:
    """Base class for one streamed result of processing a request."""
    
    @property
    def is_primary(self) -> bool:
        """True for the entity-with-details responses."""
        return False


@dataclass(frozen=True)
class ArtistScraped(Response):
    artist: Artist
    details: ArtistDetails
    
    @property
    def is_primary(self) -> bool:
        return True


@dataclass(frozen=True)
class ReleaseScraped(Response):
    release: Release
    details: ReleaseDetails
    
    @property
    def is_primary(self) -> bool:
        return True


@dataclass(frozen=True)
class UserScraped(Response):
    user: User
    details: UserDetails
    
    @property
    def is_primary(self) -> bool:
        return True


@dataclass(frozen=True)
class Releases(Response):
    """Releases found on an artist page."""
    artist: Artist
    releases: List[Release]


@dataclass(frozen=True)
class Collection(Response):
    """Releases in a fan's collection."""
    user: User
    releases: List[Release]


@dataclass(frozen=True)
class Fans(Response):
    """Fans (reviewers and supporters) of a release."""
    release: Release
    users: List[User]


@dataclass(frozen=True)
class ReleaseArtist(Response):
    """The artist storefront that owns a release."""
    release: Release
    artist: Artist
