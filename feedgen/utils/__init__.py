"""Utils module for the Catalog Feed Generator."""

from feedgen.utils.logger import LogContext, get_logger, setup_logging
from feedgen.utils.errors import (
    ErrorHandler,
    FeedError,
    ValidationError,
    RecordNotFoundError,
    UnsupportedPlatformError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "LogContext",
    "ErrorHandler",
    "FeedError",
    "ValidationError",
    "RecordNotFoundError",
    "UnsupportedPlatformError",
]
