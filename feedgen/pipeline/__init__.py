"""Pipeline module for the Catalog Feed Generator."""

from feedgen.pipeline.lifecycle import (
    KeyedLockRegistry,
    LifecycleTracker,
    append_history,
)
from feedgen.pipeline.orchestrator import (
    FeedGenerationService,
    build_service,
)

__all__ = [
    "FeedGenerationService",
    "KeyedLockRegistry",
    "LifecycleTracker",
    "append_history",
    "build_service",
]
