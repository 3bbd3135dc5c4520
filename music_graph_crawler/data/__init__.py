"""
Data layer: entity/request/response models and the persistent response cache.
"""

from .models import (
    EntityKind,
    Request,
    Artist,
    Release,
    User,
    ReleaseType,
    ArtistDetails,
    ReleaseDetails,
    UserDetails,
    Response,
    ArtistScraped,
    ReleaseScraped,
    UserScraped,
    Releases,
    Collection,
    Fans,
    ReleaseArtist,
)
from .response_cache import ResponseCache, CachedResponse

__all__ = [
    'EntityKind',
    'Request',
    'Artist',
    'Release',
    'User',
    'ReleaseType',
    'ArtistDetails',
    'ReleaseDetails',
    'UserDetails',
    'Response',
    'ArtistScraped',
    'ReleaseScraped',
    'UserScraped',
    'Releases',
    'Collection',
    'Fans',
    'ReleaseArtist',
    'ResponseCache',
    'CachedResponse',
]
