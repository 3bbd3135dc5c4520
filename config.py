"""
Configuration management for the music graph crawler.
"""

import os
import threading
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, asdict
from pathlib import Path
import json
import logging
from jsonschema import validate, ValidationError

from music_graph_crawler.utils.errors import ConfigurationError


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
SEED_KINDS = ["artist", "release", "user"]


@dataclass
class CrawlerConfig:
    """Crawler configuration settings."""
    cache_dir: str = "data"
    worker_count: int = 8
    output_capacity: int = 8
    # Seconds between the start of two network calls
    min_request_interval: float = 1.0
    request_timeout: int = 30
    user_agent: str = "music-graph-crawler/0.1 (+https://github.com/music-graph-crawler)"
    origin: str = "https://bandcamp.com"
    collectors_page_size: int = 80
    collection_page_size: int = 20

    def __post_init__(self):
        if not self.cache_dir:
            raise ConfigurationError("cache_dir must not be empty")
        if not 1 <= self.worker_count <= 64:
            raise ConfigurationError("worker_count must be between 1 and 64", {"worker_count": self.worker_count})
        if self.output_capacity < 1:
            raise ConfigurationError("output_capacity must be at least 1", {"output_capacity": self.output_capacity})
        if self.min_request_interval < 0:
            raise ConfigurationError(
                "min_request_interval must not be negative",
                {"min_request_interval": self.min_request_interval}
            )
        if self.request_timeout < 1:
            raise ConfigurationError("request_timeout must be at least 1", {"request_timeout": self.request_timeout})
        if self.collectors_page_size < 1 or self.collection_page_size < 1:
            raise ConfigurationError("page sizes must be at least 1")


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    log_level: str = "INFO"
    log_file: Optional[str] = None
    retention_days: int = 7

    def __post_init__(self):
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level {self.log_level}", {"log_level": self.log_level})
        if self.retention_days < 1:
            raise ConfigurationError("retention_days must be at least 1", {"retention_days": self.retention_days})


@dataclass
class SeedConfig:
    """A request submitted when the crawler starts."""
    kind: str
    url: str

    def __post_init__(self):
        if self.kind not in SEED_KINDS:
            raise ConfigurationError(f"Unknown seed kind {self.kind}", {"kind": self.kind, "url": self.url})


@dataclass
class SystemConfig:
    """Main system configuration."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    seeds: List[SeedConfig] = field(default_factory=list)


# Configuration schema for validation
CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "crawler": {
            "type": "object",
            "properties": {
                "cache_dir": {"type": "string", "minLength": 1},
                "worker_count": {"type": "integer", "minimum": 1, "maximum": 64},
                "output_capacity": {"type": "integer", "minimum": 1, "maximum": 10000},
                "min_request_interval": {"type": "number", "minimum": 0, "maximum": 60.0},
                "request_timeout": {"type": "integer", "minimum": 1, "maximum": 300},
                "user_agent": {"type": "string", "minLength": 1},
                "origin": {"type": "string", "pattern": "^https?://"},
                "collectors_page_size": {"type": "integer", "minimum": 1, "maximum": 1000},
                "collection_page_size": {"type": "integer", "minimum": 1, "maximum": 1000}
            },
            "additionalProperties": False
        },
        "logging": {
            "type": "object",
            "properties": {
                "log_level": {"type": "string", "enum": LOG_LEVELS},
                "log_file": {"type": ["string", "null"]},
                "retention_days": {"type": "integer", "minimum": 1, "maximum": 3650}
            },
            "additionalProperties": False
        },
        "seeds": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "kind": {"type": "string", "enum": SEED_KINDS},
                    "url": {"type": "string", "pattern": "^https?://"}
                },
                "required": ["kind", "url"],
                "additionalProperties": False
            }
        }
    },
    "additionalProperties": False
}


class ConfigManager:
    """Loads configuration from a JSON file, falling back to environment variables."""

    def __init__(self, config_path: str = "config.json"):
        self.config_path = Path(config_path)
        self._config: Optional[SystemConfig] = None
        self._lock = threading.RLock()

    def validate_config(self, config_data: Dict[str, Any]) -> None:
        """Validate configuration data against schema."""
        try:
            validate(instance=config_data, schema=CONFIG_SCHEMA)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e.message}")

    def load_config(self) -> SystemConfig:
        """Load configuration from file or environment variables."""
        with self._lock:
            if self._config is None:
                if self.config_path.exists():
                    self._load_from_file()
                else:
                    self._load_from_env()
            return self._config

    def _load_from_file(self) -> None:
        """Load configuration from JSON file with validation."""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Failed to read config file: {e}", {"path": str(self.config_path)})

        self.validate_config(config_data)
        self._config = self._dict_to_config(config_data)
        self._override_with_env_vars()

        logging.info(f"Configuration loaded and validated from {self.config_path}")

    def _override_with_env_vars(self) -> None:
        """Override configuration with environment variables."""
        crawler = self._config.crawler
        log_config = self._config.logging

        try:
            if os.getenv("MGC_CACHE_DIR"):
                crawler.cache_dir = os.getenv("MGC_CACHE_DIR")
            if os.getenv("MGC_WORKERS"):
                crawler.worker_count = int(os.getenv("MGC_WORKERS"))
            if os.getenv("MGC_REQUEST_INTERVAL"):
                crawler.min_request_interval = float(os.getenv("MGC_REQUEST_INTERVAL"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable: {e}")

        if os.getenv("MGC_LOG_LEVEL"):
            log_config.log_level = os.getenv("MGC_LOG_LEVEL")
        if os.getenv("MGC_LOG_FILE"):
            log_config.log_file = os.getenv("MGC_LOG_FILE")

        # Re-run dataclass validation on the overridden values
        self._config.crawler = CrawlerConfig(**asdict(crawler))
        self._config.logging = LoggingConfig(**asdict(log_config))

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        self._config = SystemConfig()
        self._override_with_env_vars()
        logging.info("Configuration loaded from environment variables")

    def _dict_to_config(self, data: Dict[str, Any]) -> SystemConfig:
        """Convert dictionary to SystemConfig object."""
        config = SystemConfig()

        if "crawler" in data:
            config.crawler = CrawlerConfig(**data["crawler"])

        if "logging" in data:
            config.logging = LoggingConfig(**data["logging"])

        config.seeds = [SeedConfig(**seed) for seed in data.get("seeds", [])]

        return config

    def export_config(self) -> Dict[str, Any]:
        """Export current configuration as dictionary."""
        with self._lock:
            if not self._config:
                return {}

            return {
                "crawler": asdict(self._config.crawler),
                "logging": asdict(self._config.logging),
                "seeds": [asdict(seed) for seed in self._config.seeds]
            }

    def save_config(self, config_path: Optional[str] = None) -> None:
        """Save current configuration to file."""
        with self._lock:
            if not self._config:
                raise ConfigurationError("No configuration loaded to save")

            save_path = Path(config_path) if config_path else self.config_path
            config_dict = self.export_config()

            # Validate before saving
            self.validate_config(config_dict)

            with open(save_path, 'w', encoding='utf-8') as f:
                json.dump(config_dict, f, indent=2, ensure_ascii=False)

            logging.info(f"Configuration saved to {save_path}")

