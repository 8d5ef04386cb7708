"""
Services package for the Catalog Feed Generator.

Services:
    - ValidationService: Caller request validation
"""

from feedgen.services.validation_service import (
    ExcludeRequest,
    GenerateRequest,
    UpdateRequest,
    ValidationService,
)

__all__ = [
    "ValidationService",
    "GenerateRequest",
    "UpdateRequest",
    "ExcludeRequest",
]
