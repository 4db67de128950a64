"""Exceptions raised by the trending template pipeline."""

from __future__ import annotations


class TemplateSourceError(Exception):
    """Generic wrapper for template source failures."""


class TemplateProviderError(TemplateSourceError):
    """Raised when the template provider list cannot be fetched."""


class CommunityFeedError(TemplateSourceError):
    """Raised when a single community feed cannot be fetched."""

    def __init__(self, community: str, message: str) -> None:
        super().__init__(message)
        self.community = community


class TemplateCatalogUnavailableError(Exception):
    """Raised when no catalog is cached and none can be built."""


__all__ = [
    "CommunityFeedError",
    "TemplateCatalogUnavailableError",
    "TemplateProviderError",
    "TemplateSourceError",
]
