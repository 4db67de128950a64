"""
Service availability helpers for tests.

Provides utilities and pytest markers for gracefully handling
tests that require a running Valkey instance.
"""

from __future__ import annotations

import socket
from functools import lru_cache

import pytest

VALKEY_HOST = "localhost"
VALKEY_PORT = 6379


def _check_service(host: str, port: int, timeout: float = 1.0) -> bool:
    """Check if a TCP service is reachable."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


@lru_cache(maxsize=1)
def is_valkey_available() -> bool:
    """Check if Valkey/Redis is available at localhost:6379."""
    return _check_service(VALKEY_HOST, VALKEY_PORT)


def skip_if_no_valkey() -> None:
    """Skip the current test if Valkey is not available."""
    if not is_valkey_available():
        pytest.skip(
            "Valkey not available at localhost:6379. "
            "Start one with: docker run -p 6379:6379 valkey/valkey"
        )


requires_valkey = pytest.mark.skipif(
    not is_valkey_available(),
    reason="Valkey not available at localhost:6379.",
)
