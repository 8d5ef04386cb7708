"""
Validation service for caller requests.

Request models mirror the payloads accepted by the feed endpoints; the
service turns pydantic failures into a ValidationError carrying a code and
one entry per invalid field.
"""

from typing import Any, Literal, Optional, TypeVar

from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from feedgen.models.schemas import (
    BaseModel,
    FeedOptions,
    ProductType,
    validate_currency_code,
    validate_domain,
)
from feedgen.utils.errors import ValidationError
from feedgen.utils.logger import get_logger

logger = get_logger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)

# Platforms with a feed assembler; the record model accepts more
RequestPlatform = Literal["facebook", "pinterest"]


# =============================================================================
# Request Models
# =============================================================================

class RequestOptions(BaseModel):
    """Options as sent by callers; every field optional."""

    primary_domain: Optional[str] = Field(default=None, alias="primaryDomain")
    currency_code: Optional[str] = Field(default=None, alias="currencyCode")
    language: Optional[str] = None
    product_type: Optional[ProductType] = Field(default=None, alias="productType")

    @field_validator("primary_domain")
    @classmethod
    def check_domain(cls, v: Optional[str]) -> Optional[str]:
        return validate_domain(v) if v else v

    @field_validator("currency_code")
    @classmethod
    def check_currency(cls, v: Optional[str]) -> Optional[str]:
        return validate_currency_code(v) if v else v

    def to_feed_options(self) -> FeedOptions:
        """FeedOptions with only the caller-supplied fields marked as set."""
        return FeedOptions(**self.model_dump(exclude_none=True))


class GenerateOptions(RequestOptions):
    """Generation needs at least the store domain."""

    primary_domain: str = Field(..., alias="primaryDomain")


class GenerateRequest(BaseModel):
    """
    Request to create and run a new feed.

    Example:
        >>> GenerateRequest(business_id="b1", name="Main", platform="facebook",
        ...                 options={"primaryDomain": "shop.com.br"})
    """

    business_id: str = Field(..., min_length=1, alias="businessId")
    name: str = Field(..., min_length=1)
    platform: RequestPlatform
    options: GenerateOptions
    file_key: Optional[str] = Field(default=None, min_length=1, alias="fileKey")

    @field_validator("platform", mode="before")
    @classmethod
    def lower_platform(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class UpdateRequest(BaseModel):
    """Request to regenerate an existing feed, optionally with new options."""

    business_id: str = Field(..., min_length=1, alias="businessId")
    file_key: str = Field(..., min_length=1, alias="fileKey")
    options: Optional[RequestOptions] = None

    def to_feed_options(self) -> Optional[FeedOptions]:
        return self.options.to_feed_options() if self.options else None


class ExcludeRequest(BaseModel):
    """Request to remove a feed's blob and record."""

    business_id: str = Field(..., min_length=1, alias="businessId")
    file_key: str = Field(..., min_length=1, alias="fileKey")


# =============================================================================
# Service
# =============================================================================

class ValidationService:
    """Service for validating caller requests."""

    def _parse(self, model: type[RequestT], data: dict[str, Any], code: str) -> RequestT:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            errors = [
                {
                    "field": ".".join(str(part) for part in err["loc"]) or "body",
                    "message": err["msg"],
                }
                for err in e.errors()
            ]
            logger.warning("Request validation failed", request=model.__name__, errors=errors)
            raise ValidationError(
                f"Invalid {model.__name__}: " + "; ".join(
                    f"{err['field']}: {err['message']}" for err in errors
                ),
                code=code,
                errors=errors,
            ) from e

    def validate_options(self, data: dict[str, Any]) -> RequestOptions:
        return self._parse(RequestOptions, data, "INVALID_FEED_OPTIONS")

    def validate_generate(self, data: dict[str, Any]) -> GenerateRequest:
        return self._parse(GenerateRequest, data, "INVALID_GENERATE_REQUEST")

    def validate_update(self, data: dict[str, Any]) -> UpdateRequest:
        return self._parse(UpdateRequest, data, "INVALID_UPDATE_REQUEST")

    def validate_exclude(self, data: dict[str, Any]) -> ExcludeRequest:
        return self._parse(ExcludeRequest, data, "INVALID_EXCLUDE_REQUEST")
