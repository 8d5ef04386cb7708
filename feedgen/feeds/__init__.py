"""
Feed building package.

Modules:
    - text: Sanitization and proper-casing of free text
    - pricing: Regular vs. sale price resolution
    - images: Primary and additional image selection
    - attributes: Optional attribute derivation and the item field table
    - assembler: Platform assemblers and their registry
"""

from feedgen.feeds.assembler import (
    FacebookFeedAssembler,
    FeedAssembler,
    FeedDocument,
    PinterestFeedAssembler,
    get_assembler,
    register_assembler,
    supported_platforms,
)
from feedgen.feeds.pricing import PriceFields, format_money, resolve_price
from feedgen.feeds.text import sanitize_text, to_proper_case

__all__ = [
    "FeedAssembler",
    "FeedDocument",
    "FacebookFeedAssembler",
    "PinterestFeedAssembler",
    "get_assembler",
    "register_assembler",
    "supported_platforms",
    "PriceFields",
    "format_money",
    "resolve_price",
    "sanitize_text",
    "to_proper_case",
]
