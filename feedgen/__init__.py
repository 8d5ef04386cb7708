"""
Catalog Feed Generator.

Turns a merchant's product catalog into platform shopping-feed XML
(RSS 2.0 with the Google `g:` namespace), uploads it to blob storage and
tracks every generation run.
"""

__version__ = "1.0.0"
__author__ = "Catalog Feed Team"

# Lazy imports to avoid circular dependencies
def get_service():
    """Get the FeedGenerationService class (lazy import)."""
    from feedgen.pipeline.orchestrator import FeedGenerationService
    return FeedGenerationService

__all__ = ["get_service", "__version__"]
