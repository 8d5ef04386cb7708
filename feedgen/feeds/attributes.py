"""
Optional feed attribute derivation and the item field table.

AttributeMapper derives the product-level attributes once per product. The
FIELD_TABLE then describes every element of a feed item as
(element name, extractor, presence predicate), so group and variant items
are rendered by the same table and always share one field set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from feedgen.feeds.pricing import PriceFields
from feedgen.feeds.text import strip_invalid_xml
from feedgen.models.schemas import Product

G_NAMESPACE = "http://base.google.com/ns/1.0"
G_PREFIX = "g"
MAX_CUSTOM_LABELS = 5


@dataclass(frozen=True)
class ProductAttributes:
    """Optional attributes shared by every item a product contributes."""
    category_id: Optional[str] = None
    gender: Optional[str] = None
    age_group: Optional[str] = None
    video_link: Optional[str] = None
    brand: Optional[str] = None
    product_type: Optional[str] = None
    labels: tuple[tuple[int, str], ...] = ()


class AttributeMapper:
    """Pure field derivations from a product record; None marks an absent value."""

    @staticmethod
    def category_id(product: Product) -> Optional[str]:
        if product.taxonomy and product.taxonomy.product_category_id:
            return product.taxonomy.product_category_id
        return None

    @staticmethod
    def gender(product: Product) -> Optional[str]:
        return product.gender or None

    @staticmethod
    def age_group(product: Product) -> Optional[str]:
        return product.age_group or None

    @staticmethod
    def video_link(product: Product) -> Optional[str]:
        if isinstance(product.video_url, str) and product.video_url.strip():
            return product.video_url.strip()
        return None

    @staticmethod
    def brand(product: Product) -> Optional[str]:
        return product.brand or product.vendor or None

    @staticmethod
    def product_type(product: Product) -> Optional[str]:
        return product.product_type or None

    @staticmethod
    def labels(product: Product) -> tuple[tuple[int, str], ...]:
        """
        (tag position, trimmed tag) for the non-empty tags among the first five.

        Labels keep their tag position, so an empty tag leaves its slot unused.
        """
        return tuple(
            (index, tag.strip())
            for index, tag in enumerate(product.tags[:MAX_CUSTOM_LABELS])
            if tag and tag.strip()
        )

    @classmethod
    def map(cls, product: Product) -> ProductAttributes:
        return ProductAttributes(
            category_id=cls.category_id(product),
            gender=cls.gender(product),
            age_group=cls.age_group(product),
            video_link=cls.video_link(product),
            brand=cls.brand(product),
            product_type=cls.product_type(product),
            labels=cls.labels(product),
        )


@dataclass(frozen=True)
class ItemContext:
    """Everything needed to render one feed item."""
    item_id: str
    group_id: str
    title: str
    description: str
    pricing: PriceFields
    link: str
    attributes: ProductAttributes
    image_link: Optional[str] = None
    additional_images: tuple[str, ...] = field(default_factory=tuple)


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


@dataclass(frozen=True)
class FeedField:
    """
    One row of the item field table.

    `repeated` fields yield one element per value under the same name;
    `indexed` fields take (index, value) pairs and yield elements named
    `<name>_<index>`. Text is stripped of characters XML cannot carry.
    """
    name: str
    extract: Callable[[ItemContext], Any]
    present: Callable[[Any], bool] = _is_present
    namespaced: bool = True
    repeated: bool = False
    indexed: bool = False

    @property
    def tag(self) -> str:
        return f"{G_PREFIX}:{self.name}" if self.namespaced else self.name

    def render(self, ctx: ItemContext) -> Iterator[tuple[str, str]]:
        """Yield (element tag, text) pairs for this field."""
        value = self.extract(ctx)
        if self.indexed:
            for index, item in value or ():
                if self.present(item):
                    yield f"{self.tag}_{index}", strip_invalid_xml(str(item))
        elif self.repeated:
            for item in value or ():
                if self.present(item):
                    yield self.tag, strip_invalid_xml(str(item))
        elif self.present(value):
            yield self.tag, strip_invalid_xml(str(value))


FIELD_TABLE: tuple[FeedField, ...] = (
    FeedField("availability", lambda ctx: "in stock"),
    FeedField("condition", lambda ctx: "new"),
    FeedField("id", lambda ctx: ctx.item_id),
    FeedField("item_group_id", lambda ctx: ctx.group_id),
    FeedField("title", lambda ctx: ctx.title, present=lambda v: v is not None, namespaced=False),
    FeedField("description", lambda ctx: ctx.description, present=lambda v: v is not None, namespaced=False),
    FeedField("price", lambda ctx: ctx.pricing.price),
    FeedField("sale_price", lambda ctx: ctx.pricing.sale_price),
    FeedField("link", lambda ctx: ctx.link, namespaced=False),
    FeedField("image_link", lambda ctx: ctx.image_link),
    FeedField("additional_image_link", lambda ctx: ctx.additional_images, repeated=True),
    FeedField("brand", lambda ctx: ctx.attributes.brand),
    FeedField("product_type", lambda ctx: ctx.attributes.product_type),
    FeedField("custom_label", lambda ctx: ctx.attributes.labels, indexed=True),
    FeedField("google_product_category", lambda ctx: ctx.attributes.category_id),
    FeedField("gender", lambda ctx: ctx.attributes.gender),
    FeedField("age_group", lambda ctx: ctx.attributes.age_group),
    FeedField("video_link", lambda ctx: ctx.attributes.video_link),
)
