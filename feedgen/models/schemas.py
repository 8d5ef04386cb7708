"""
Pydantic models and schemas for the catalog feed generator.

This module defines all data structures used throughout the generator,
ensuring type safety, validation, and serialization consistency.

Models:
    - Product / Variant / ProductImage: Catalog records (read-only to the generator)
    - FeedOptions: Per-feed generation options
    - FeedRun: Lifecycle record of a feed and its runs
    - AssemblyStats: Counters produced while assembling a document
    - GenerationResult / ExclusionResult: Outcomes returned to callers
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Self

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


DEFAULT_CURRENCY_CODE = "BRL"
DEFAULT_PRIMARY_DOMAIN = "defaultdomain.com"
DEFAULT_LANGUAGE = "pt-BR"
HISTORY_LIMIT = 10


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# Base Configuration
# =============================================================================

class BaseModel(PydanticBaseModel):
    """Base model with common configuration for all schemas."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=False,
        populate_by_name=True,
        use_enum_values=True,
        ser_json_timedelta="iso8601",
    )

    def to_json(self, **kwargs) -> str:
        """Serialize model to JSON string."""
        return self.model_dump_json(indent=2, **kwargs)

    def to_dict(self, **kwargs) -> dict[str, Any]:
        """Serialize model to dictionary."""
        return self.model_dump(**kwargs)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize model from JSON string."""
        return cls.model_validate_json(json_str)


class TimestampMixin(BaseModel):
    """Mixin for models that need timestamp tracking."""

    created_at: datetime = Field(
        default_factory=utcnow,
        description="Record creation timestamp in ISO 8601 format",
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        description="Last update timestamp in ISO 8601 format",
    )

    @field_serializer("created_at", "updated_at")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        if not value:
            return None
        # If naive, assume UTC and append Z
        if value.tzinfo is None:
            return value.isoformat() + "Z"
        return value.isoformat()


# =============================================================================
# Enums
# =============================================================================

class ProductStatus(str, Enum):
    """Catalog lifecycle status of a product."""
    ACTIVE = "active"
    ARCHIVED = "archived"
    DRAFT = "draft"


class Platform(str, Enum):
    """Advertising platforms a feed record may target."""
    FACEBOOK = "facebook"
    GOOGLE = "google"
    INSTAGRAM = "instagram"
    PINTEREST = "pinterest"


class ProductType(str, Enum):
    """Product explosion mode."""
    GROUP = "group"
    VARIANT = "variant"


class RunStatus(str, Enum):
    """Status of a feed record."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RunOutcome(str, Enum):
    """Outcome stored on last_run and history entries."""
    SUCCESS = "success"
    FAILED = "failed"


class ErrorType(str, Enum):
    """Error type classification."""
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND_ERROR = "not_found_error"
    CONFLICT_ERROR = "conflict_error"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    CATALOG_ERROR = "catalog_error"
    STORAGE_ERROR = "storage_error"
    TIMEOUT_ERROR = "timeout_error"
    INTERNAL_ERROR = "internal_error"


# =============================================================================
# Validators (Reusable)
# =============================================================================

# Domain validation pattern: valid TLD, no path/query
DOMAIN_PATTERN = re.compile(
    r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*\.[A-Za-z]{2,}$"
)

CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


def normalize_domain(domain: str) -> str:
    """Strip protocol, path and query string from a store domain."""
    domain = domain.lower().strip()
    if "://" in domain:
        domain = domain.split("://", 1)[1]
    return domain.split("/")[0].split("?")[0]


def validate_domain(domain: str) -> str:
    """Validate domain format - valid TLD, no path/query."""
    domain = normalize_domain(domain)

    if not DOMAIN_PATTERN.match(domain):
        raise ValueError(
            f"Invalid domain format: '{domain}'. "
            "Must be a valid domain with TLD (e.g., 'minhaloja.com.br')"
        )

    return domain


def validate_currency_code(code: str) -> str:
    """Validate an ISO 4217 currency code."""
    code = code.strip().upper()
    if not CURRENCY_PATTERN.match(code):
        raise ValueError(f"Invalid currency code: '{code}'. Must be 3 letters (e.g., 'BRL')")
    return code


def _stringify_id(v: Any) -> Any:
    # Catalog sources hand out numeric ids as often as string ones
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(int(v))
    return v


# =============================================================================
# Catalog Models
# =============================================================================

class ProductImage(BaseModel):
    """Image entry of a product's gallery."""

    id: Optional[str] = None
    url: Optional[str] = None
    position: Optional[int] = None
    alt: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_image_id(cls, v: Any) -> Any:
        return _stringify_id(v)


class Variant(BaseModel):
    """Sellable unit of a product."""

    variant_id: str = Field(..., alias="variantId")
    title: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    compare_at_price: Optional[float] = Field(default=None, alias="compareAtPrice")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    position: Optional[int] = None

    @field_validator("variant_id", mode="before")
    @classmethod
    def coerce_variant_id(cls, v: Any) -> Any:
        return _stringify_id(v)

    @property
    def is_eligible(self) -> bool:
        """A variant may be advertised only with a positive price."""
        return self.price is not None and self.price > 0


class GoogleTaxonomy(BaseModel):
    """Google product taxonomy hint attached to a product."""

    product_category_id: Optional[str] = Field(default=None, alias="productCategoryID")
    product_category_name: Optional[str] = Field(default=None, alias="productCategoryName")

    @field_validator("product_category_id", mode="before")
    @classmethod
    def coerce_category_id(cls, v: Any) -> Any:
        return _stringify_id(v)


class Product(BaseModel):
    """
    Catalog product as stored by the catalog store.

    Accepts both the stored camelCase keys and snake_case field names.

    Example:
        >>> p = Product(productId="1", business_id="b1", title="Tee", variants=[{"variantId": "v1", "price": 10}])
        >>> p.variants[0].is_eligible
        True
    """

    product_id: str = Field(..., alias="productId")
    business_id: str
    status: ProductStatus = ProductStatus.ACTIVE
    title: str = ""
    description: Optional[str] = None
    product_type: Optional[str] = Field(default=None, alias="productType")
    vendor: Optional[str] = None
    brand: Optional[str] = None
    handle: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    featured_image: Optional[str] = Field(default=None, alias="featuredImage")
    images: list[ProductImage] = Field(default_factory=list)
    variants: list[Variant] = Field(default_factory=list)
    gender: Optional[str] = None
    age_group: Optional[str] = Field(default=None, alias="age")
    video_url: Optional[str] = Field(default=None, alias="videolinkurl")
    taxonomy: Optional[GoogleTaxonomy] = Field(default=None, alias="google")

    @field_validator("product_id", "business_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _stringify_id(v)

    @field_validator("tags", "images", "variants", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("title", mode="before")
    @classmethod
    def none_title(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE


# =============================================================================
# Feed Options
# =============================================================================

class FeedOptions(BaseModel):
    """
    Options steering one feed's generation.

    Missing domain or currency fall back to the placeholder domain and BRL.
    """

    primary_domain: str = Field(default=DEFAULT_PRIMARY_DOMAIN, alias="primaryDomain")
    currency_code: str = Field(default=DEFAULT_CURRENCY_CODE, alias="currencyCode")
    language: str = Field(default=DEFAULT_LANGUAGE)
    product_type: ProductType = Field(default=ProductType.GROUP, alias="productType")

    @field_validator("primary_domain", mode="before")
    @classmethod
    def default_domain(cls, v: Optional[str]) -> str:
        if not v or not str(v).strip():
            return DEFAULT_PRIMARY_DOMAIN
        return normalize_domain(str(v)) or DEFAULT_PRIMARY_DOMAIN

    @field_validator("currency_code", mode="before")
    @classmethod
    def default_currency(cls, v: Optional[str]) -> str:
        if not v or not str(v).strip():
            return DEFAULT_CURRENCY_CODE
        return str(v).strip().upper()

    @field_validator("product_type", mode="before")
    @classmethod
    def default_product_type(cls, v: Any) -> Any:
        return ProductType.GROUP if v is None else v

    def merged_with(self, overrides: Optional["FeedOptions"]) -> "FeedOptions":
        """Return these options with every field explicitly set on `overrides` replaced."""
        if overrides is None:
            return self
        return self.model_copy(update=overrides.model_dump(exclude_unset=True))


# =============================================================================
# Lifecycle Record
# =============================================================================

class RunError(BaseModel):
    """Captured failure of a run."""

    model_config = ConfigDict(frozen=True)

    message: str
    stack: Optional[str] = None


class LastRun(BaseModel):
    """Timing and outcome of the most recent run."""

    model_config = ConfigDict(frozen=True)

    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    status: Optional[RunOutcome] = None
    error: Optional[RunError] = None


class HistoryEntry(BaseModel):
    """One finished run in the bounded audit log."""

    model_config = ConfigDict(frozen=True)

    started_at: datetime
    finished_at: datetime
    duration_ms: int
    status: RunOutcome
    product_count: Optional[int] = None
    error_message: Optional[str] = None


class FeedRun(TimestampMixin):
    """
    Lifecycle record of one feed (one file key).

    Immutable: every state change produces a new value through the
    LifecycleTracker transitions. `version` is the optimistic-concurrency
    token checked by the record stores on every save.
    """

    model_config = ConfigDict(frozen=True)

    business_id: str
    name: str
    file_key: str
    platform: Platform
    options: FeedOptions = Field(default_factory=FeedOptions)
    active: bool = True
    status: RunStatus = RunStatus.PENDING
    product_count: int = 0
    variant_count: int = 0
    file_size: int = 0
    file_url: Optional[str] = None
    last_run: Optional[LastRun] = None
    history: tuple[HistoryEntry, ...] = Field(default=(), max_length=HISTORY_LIMIT)
    version: int = 0

    @property
    def product_type(self) -> ProductType:
        return ProductType(self.options.product_type)


# =============================================================================
# Assembly / Results
# =============================================================================

class AssemblyStats(BaseModel):
    """Counters accumulated while assembling one feed document."""

    product_count: int = 0
    variant_count: int = 0
    item_count: int = 0
    skipped_count: int = 0


class GenerationResult(BaseModel):
    """Outcome of a successful generation run, returned to the caller."""

    success: bool = True
    business_id: str
    file_key: str
    feed_name: str
    platform: Platform
    product_count: int = 0
    variant_count: int = 0
    item_count: int = 0
    skipped_count: int = 0
    file_size: int = 0
    file_url: Optional[str] = None
    duration_ms: Optional[int] = None


class ExclusionResult(BaseModel):
    """Independent outcomes of removing a feed's blob and record."""

    business_id: str
    file_key: str
    file_deleted: bool = False
    record_deleted: bool = False
