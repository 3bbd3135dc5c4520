"""
Persistent cache of origin responses, backed by SQLite.

Rows are keyed by (url, method, request body) and are append-only: once a
response is stored it is never updated or deleted.
"""

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from music_graph_crawler.utils.errors import CacheError
from music_graph_crawler.utils.logging import get_logger


logger = get_logger(__name__)


CACHE_FILE_NAME = "web-cache.sqlite"

# Each entry advances PRAGMA user_version by one. Never edit or reorder an
# existing entry; append new steps instead.
MIGRATIONS = (
    "create table pages (id integer primary key) strict",
    "alter table pages add column url text not null",
    "alter table pages add column method text not null",
    "alter table pages add column data text",
    "alter table pages add column response text not null",
    "alter table pages add column retrieved text not null",
    "create unique index pages_index on pages (url, method, data)",
    # NULLs are distinct in unique indexes, so GET rows need their own
    "create unique index pages_get_index on pages (url, method) where data is null",
)


@dataclass(frozen=True)
class CachedResponse:
    """A stored response body and when it was retrieved."""
    body: str
    retrieved: datetime


def encode_body(body: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Canonical text form of a request body used as part of the cache key.
    
    Args:
        body: JSON request body, or None for GET requests
        
    Returns:
        Compact JSON with sorted keys, or None
    """
    if body is None:
        return None
    return json.dumps(body, sort_keys=True, separators=(",", ":"))


class ResponseCache:
    """SQLite-backed response cache with incremental schema migrations."""
    
    def __init__(self, cache_dir: str):
        """
        Open (creating if needed) the cache database and apply migrations.
        
        Args:
            cache_dir: Directory that holds the cache database file
            
        Raises:
            CacheError: If the database cannot be opened or migrated
        """
        self.database_path = Path(cache_dir) / CACHE_FILE_NAME
        
        try:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            # Opened by the router thread, used afterwards only by the gateway thread
            self._conn = sqlite3.connect(
                str(self.database_path),
                timeout=30.0,
                isolation_level=None,
                check_same_thread=False
            )
        except (OSError, sqlite3.Error) as e:
            raise CacheError(
                "Failed to open response cache",
                {"path": str(self.database_path), "error": str(e)}
            )
        
        try:
            self._migrate()
        except sqlite3.Error as e:
            self._conn.close()
            raise CacheError(
                "Failed to migrate response cache schema",
                {"path": str(self.database_path), "error": str(e)}
            )
        
        logger.info(f"Response cache opened at {self.database_path} (schema version {self.schema_version})")
    
    @property
    def schema_version(self) -> int:
        """Current value of the schema version marker."""
        return self._conn.execute("PRAGMA user_version").fetchone()[0]
    
    def _migrate(self) -> None:
        """Apply every pending migration step inside a single transaction."""
        self._conn.execute("BEGIN")
        try:
            version = self._conn.execute("PRAGMA user_version").fetchone()[0]
            for index, migration in enumerate(MIGRATIONS, start=1):
                if version < index:
                    logger.debug(f"Applying cache migration {index}: {migration}")
                    self._conn.execute(migration)
                    self._conn.execute(f"PRAGMA user_version = {index}")
            self._conn.execute("COMMIT")
        except sqlite3.Error:
            self._conn.execute("ROLLBACK")
            raise
    
    def lookup(self, url: str, method: str, body: Optional[Dict[str, Any]] = None) -> Optional[CachedResponse]:
        """
        Look up a previously stored response.
        
        Args:
            url: Request URL
            method: HTTP method ("get" or "post")
            body: JSON request body for POST requests
            
        Returns:
            Cached response, or None on a miss
            
        Raises:
            CacheError: If the query fails
        """
        try:
            row = self._conn.execute(
                """
                SELECT retrieved, response
                FROM pages
                WHERE url = :url AND method = :method AND data IS :data
                """,
                {"url": url, "method": method.lower(), "data": encode_body(body)}
            ).fetchone()
        except sqlite3.Error as e:
            raise CacheError(
                "Response cache lookup failed",
                {"url": url, "method": method, "error": str(e)}
            )
        
        if row is None:
            return None
        
        retrieved, response = row
        return CachedResponse(body=response, retrieved=datetime.fromisoformat(retrieved))
    
    def store(self, url: str, method: str, body: Optional[Dict[str, Any]], response: str) -> None:
        """
        Record a new response.
        
        Callers must only store after a confirmed lookup miss.
        
        Args:
            url: Request URL
            method: HTTP method ("get" or "post")
            body: JSON request body for POST requests
            response: Response body text
            
        Raises:
            CacheError: If a row for the key already exists or the insert fails
        """
        try:
            self._conn.execute(
                """
                INSERT INTO pages (url, method, data, retrieved, response)
                VALUES (:url, :method, :data, :retrieved, :response)
                """,
                {
                    "url": url,
                    "method": method.lower(),
                    "data": encode_body(body),
                    "retrieved": datetime.now(timezone.utc).isoformat(),
                    "response": response,
                }
            )
        except sqlite3.IntegrityError as e:
            raise CacheError(
                "Response already cached",
                {"url": url, "method": method, "error": str(e)}
            )
        except sqlite3.Error as e:
            raise CacheError(
                "Response cache insert failed",
                {"url": url, "method": method, "error": str(e)}
            )
    
    def count(self) -> int:
        """Number of cached responses."""
        return self._conn.execute("SELECT COUNT(*) FROM pages").fetchone()[0]
    
    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
