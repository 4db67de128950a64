"""TTL configuration wrapper for cache components."""

from __future__ import annotations

from mememe.core.config import Settings, get_settings


class TTLConfig:
    """Centralized TTL configuration with validation."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()

        self.default_ttl = settings.cache_default_ttl_seconds
        self.captions_ttl = settings.cache_captions_ttl_seconds
        self.image_url_ttl = settings.cache_image_url_ttl_seconds

        self.lru_max_entries = settings.cache_lru_max_entries
        self.circuit_breaker_timeout = settings.cache_circuit_breaker_timeout_seconds

        self._validate_ttls()

    def _validate_ttls(self) -> None:
        """Validate that all TTL values are non-negative."""
        for attr_name, value in self.__dict__.items():
            if "ttl" in attr_name and isinstance(value, (int, float)) and value < 0:
                raise ValueError(f"TTL value for {attr_name} cannot be negative: {value}")

    def get_effective_ttl(self, ttl_seconds: int | None) -> int | None:
        """Get the effective TTL, using default if none provided."""
        if ttl_seconds is not None:
            return ttl_seconds if ttl_seconds > 0 else None
        return self.default_ttl if self.default_ttl > 0 else None


__all__ = ["TTLConfig"]
