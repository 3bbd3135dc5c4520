"""
Custom exception classes and error handling utilities.
"""

from typing import Optional, Dict, Any
import traceback


class MusicGraphCrawlerError(Exception):
    """Base exception for all music graph crawler errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FetchError(MusicGraphCrawlerError):
    """Exception raised when a network call to the origin fails."""
    pass


class CacheError(MusicGraphCrawlerError):
    """Exception raised by the response cache (I/O, schema or constraint)."""
    pass


class ExtractionError(MusicGraphCrawlerError):
    """Exception raised when a page or API payload cannot be parsed."""
    pass


class GatewayClosedError(MusicGraphCrawlerError):
    """Exception raised when a fetch is attempted after the gateway stopped."""
    pass


class PipelineClosedError(MusicGraphCrawlerError):
    """Exception raised when submitting to a router that has been shut down."""
    pass


class ChannelClosedError(MusicGraphCrawlerError):
    """Exception raised when a queue has been closed by its owner."""
    pass


class ConfigurationError(MusicGraphCrawlerError):
    """Exception raised for configuration-related issues."""
    pass


def handle_error(
    error: Exception,
    logger,
    context: Optional[Dict[str, Any]] = None,
    reraise: bool = True
) -> None:
    """
    Handle and log errors with context information.
    
    Args:
        error: The exception that occurred
        logger: Logger instance to use for logging
        context: Additional context information
        reraise: Whether to reraise the exception after logging
    """
    error_context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        **(context or {})
    }
    
    if isinstance(error, MusicGraphCrawlerError):
        error_context.update(error.details)
    
    summary = ", ".join(f"{key}={value}" for key, value in error_context.items())
    logger.error(f"Error occurred: {summary}")
    logger.debug(f"Error traceback: {traceback.format_exc()}")
    
    if reraise:
        raise error
