"""
Origin access and entity extraction.
"""

from .http_client import RateLimitedClient
from .gateway import OriginGateway, GatewayJob
from .scraper import EntityScraper, ScrapeVisitor, Fetcher

__all__ = [
    'RateLimitedClient',
    'OriginGateway',
    'GatewayJob',
    'EntityScraper',
    'ScrapeVisitor',
    'Fetcher',
]
