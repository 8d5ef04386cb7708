"""Data models module for the Catalog Feed Generator."""

from feedgen.models.schemas import (
    # Base Models
    BaseModel,
    TimestampMixin,

    # Enums
    ProductStatus,
    Platform,
    ProductType,
    RunStatus,
    RunOutcome,
    ErrorType,

    # Catalog Models
    ProductImage,
    Variant,
    GoogleTaxonomy,
    Product,

    # Feed Models
    FeedOptions,
    RunError,
    LastRun,
    HistoryEntry,
    FeedRun,

    # Results
    AssemblyStats,
    GenerationResult,
    ExclusionResult,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "ProductStatus",
    "Platform",
    "ProductType",
    "RunStatus",
    "RunOutcome",
    "ErrorType",
    "ProductImage",
    "Variant",
    "GoogleTaxonomy",
    "Product",
    "FeedOptions",
    "RunError",
    "LastRun",
    "HistoryEntry",
    "FeedRun",
    "AssemblyStats",
    "GenerationResult",
    "ExclusionResult",
]
