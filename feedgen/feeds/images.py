"""Primary and additional image selection for feed items."""

from typing import Optional

from feedgen.models.schemas import Product, Variant

MAX_ADDITIONAL_IMAGES = 10


def select_primary_image(product: Product, variant: Optional[Variant] = None) -> Optional[str]:
    """
    Pick the main image of an item.

    Precedence: variant image override, product featured image, first gallery
    image. Returns None when the product has no usable image.
    """
    if variant is not None and variant.image_url:
        return variant.image_url
    if product.featured_image:
        return product.featured_image
    if product.images and product.images[0].url:
        return product.images[0].url
    return None


def select_additional_images(
    product: Product,
    primary_url: Optional[str],
    limit: int = MAX_ADDITIONAL_IMAGES,
) -> list[str]:
    """Gallery URLs other than the primary one, in gallery order, at most `limit`."""
    additional: list[str] = []
    for image in product.images:
        if len(additional) >= limit:
            break
        if image.url and image.url != primary_url:
            additional.append(image.url)
    return additional
