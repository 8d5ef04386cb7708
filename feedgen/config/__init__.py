"""Configuration module for the Catalog Feed Generator."""

from feedgen.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
