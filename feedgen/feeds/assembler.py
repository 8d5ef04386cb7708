"""
Feed assembly: catalog products in, RSS 2.0 shopping feed document out.

Each advertising platform gets one FeedAssembler implementation registered
under its Platform key. The lifecycle layer only ever calls get_assembler(),
so adding a platform means adding a subclass here and nothing else.

Explosion modes:
    - group (default): one item per product, priced by its first variant.
    - variant: one item per eligible variant, grouped by the product id.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import ClassVar, Iterable, Optional

from feedgen.feeds.attributes import (
    FIELD_TABLE,
    G_NAMESPACE,
    G_PREFIX,
    AttributeMapper,
    FeedField,
    ItemContext,
    ProductAttributes,
)
from feedgen.feeds.images import select_additional_images, select_primary_image
from feedgen.feeds.pricing import resolve_price
from feedgen.feeds.text import sanitize_text, to_proper_case
from feedgen.models.schemas import (
    AssemblyStats,
    FeedOptions,
    Platform,
    Product,
    ProductType,
    Variant,
)
from feedgen.utils.errors import UnsupportedPlatformError
from feedgen.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Feed Document
# =============================================================================

class FeedDocument:
    """In-memory feed tree of a single run plus the counters gathered while building it."""

    def __init__(self, title: str, link: str, description: str):
        self.root = ET.Element("rss", {"version": "2.0", f"xmlns:{G_PREFIX}": G_NAMESPACE})
        self.channel = ET.SubElement(self.root, "channel")
        ET.SubElement(self.channel, "title").text = title
        ET.SubElement(self.channel, "link").text = link
        ET.SubElement(self.channel, "description").text = description
        self.stats = AssemblyStats()

    @property
    def items(self) -> list[ET.Element]:
        return self.channel.findall("item")

    def add_item(self, ctx: ItemContext, fields: Iterable[FeedField] = FIELD_TABLE) -> ET.Element:
        item = ET.SubElement(self.channel, "item")
        for field in fields:
            for tag, text in field.render(ctx):
                ET.SubElement(item, tag).text = text
        self.stats.item_count += 1
        return item

    def serialize(self) -> bytes:
        """UTF-8 encoded, indented XML with declaration."""
        ET.indent(self.root, space="  ")
        return ET.tostring(self.root, encoding="utf-8", xml_declaration=True)


# =============================================================================
# Assembler Interface
# =============================================================================

class FeedAssembler(ABC):
    """
    Abstract base class for platform feed assemblers.

    Subclasses declare their platform and channel description; the
    explosion algorithm and the item field table are shared.
    """

    platform: ClassVar[Platform]
    channel_title: ClassVar[str] = "Product Feed"

    def __init__(
        self,
        fields: tuple[FeedField, ...] = FIELD_TABLE,
        mapper: type[AttributeMapper] = AttributeMapper,
    ):
        self.fields = fields
        self.mapper = mapper

    @property
    @abstractmethod
    def channel_description(self) -> str:
        """Description element of the feed channel."""
        pass

    def assemble(self, products: Iterable[Product], options: FeedOptions) -> FeedDocument:
        """
        Build the feed document for a catalog.

        Args:
            products: Catalog products in storage order.
            options: Domain, currency and explosion mode of the feed.

        Returns:
            FeedDocument with its AssemblyStats filled in.
        """
        document = FeedDocument(
            title=self.channel_title,
            link=f"https://{options.primary_domain}",
            description=self.channel_description,
        )
        explode_variants = ProductType(options.product_type) == ProductType.VARIANT

        for product in products:
            if not product.is_active:
                continue

            attributes = self.mapper.map(product)

            if explode_variants and product.variants:
                self._add_variant_items(document, product, attributes, options)
            else:
                self._add_group_item(document, product, attributes, options)

        logger.info(
            "Feed document assembled",
            platform=str(Platform(self.platform).value),
            product_type=str(ProductType(options.product_type).value),
            product_count=document.stats.product_count,
            item_count=document.stats.item_count,
            variant_count=document.stats.variant_count,
            skipped_count=document.stats.skipped_count,
        )
        return document

    def _add_variant_items(
        self,
        document: FeedDocument,
        product: Product,
        attributes: ProductAttributes,
        options: FeedOptions,
    ) -> None:
        contributed = False
        for variant in product.variants:
            if not variant.is_eligible:
                document.stats.skipped_count += 1
                continue

            contributed = True
            document.add_item(
                self.build_context(product, attributes, options, variant=variant),
                self.fields,
            )
            document.stats.variant_count += 1

        if contributed:
            document.stats.product_count += 1

    def _add_group_item(
        self,
        document: FeedDocument,
        product: Product,
        attributes: ProductAttributes,
        options: FeedOptions,
    ) -> None:
        representative = product.variants[0] if product.variants else None
        if representative is None or not representative.is_eligible:
            document.stats.skipped_count += 1
            logger.debug("Product skipped without a positive price", product_id=product.product_id)
            return

        document.stats.product_count += 1
        document.add_item(
            self.build_context(product, attributes, options, pricing_variant=representative),
            self.fields,
        )

    def build_link(self, product: Product, options: FeedOptions, variant: Optional[Variant] = None) -> str:
        link = f"https://{options.primary_domain}/products/{product.handle or ''}"
        if variant is not None:
            link += f"?variant={variant.variant_id}"
        return link

    def build_context(
        self,
        product: Product,
        attributes: ProductAttributes,
        options: FeedOptions,
        variant: Optional[Variant] = None,
        pricing_variant: Optional[Variant] = None,
    ) -> ItemContext:
        """
        Collect the values of one item.

        `variant` is set in variant mode (item keyed by the variant);
        `pricing_variant` is the group-mode price representative.
        """
        priced = variant or pricing_variant
        image_link = select_primary_image(product, variant)
        return ItemContext(
            item_id=variant.variant_id if variant else product.product_id,
            group_id=product.product_id,
            title=to_proper_case(sanitize_text(product.title)),
            description=sanitize_text(product.description),
            pricing=resolve_price(priced.price, priced.compare_at_price, options.currency_code),
            link=self.build_link(product, options, variant),
            attributes=attributes,
            image_link=image_link,
            additional_images=tuple(select_additional_images(product, image_link)),
        )


# =============================================================================
# Registry
# =============================================================================

_ASSEMBLERS: dict[Platform, type[FeedAssembler]] = {}


def register_assembler(cls: type[FeedAssembler]) -> type[FeedAssembler]:
    """Class decorator registering an assembler under its platform."""
    _ASSEMBLERS[Platform(cls.platform)] = cls
    return cls


def get_assembler(platform: Platform | str) -> FeedAssembler:
    """
    Look up the assembler for a platform.

    Raises:
        UnsupportedPlatformError: No assembler is registered for the platform.
    """
    try:
        key = Platform(platform)
    except ValueError:
        raise UnsupportedPlatformError(str(platform))

    assembler_cls = _ASSEMBLERS.get(key)
    if assembler_cls is None:
        raise UnsupportedPlatformError(key.value)
    return assembler_cls()


def supported_platforms() -> list[str]:
    return sorted(p.value for p in _ASSEMBLERS)


# =============================================================================
# Platform Implementations
# =============================================================================

@register_assembler
class FacebookFeedAssembler(FeedAssembler):
    """Facebook / Meta Commerce catalog feed."""

    platform = Platform.FACEBOOK

    @property
    def channel_description(self) -> str:
        return "Product feed for Facebook Catalog"


@register_assembler
class PinterestFeedAssembler(FeedAssembler):
    """Pinterest catalog feed."""

    platform = Platform.PINTEREST

    @property
    def channel_description(self) -> str:
        return "Product feed for Pinterest Catalog"
