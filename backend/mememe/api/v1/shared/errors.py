"""Shared error handling utilities for API endpoints.

Standardized exceptions for authentication failures and unavailable
functionality.
"""

from fastapi import HTTPException, status


def unauthorized(detail: str = "Invalid or missing authorization") -> HTTPException:
    """Create a standardized HTTP 401 exception for bearer token checks."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def service_unavailable(detail: str) -> HTTPException:
    """Create a standardized HTTP 503 exception.

    Args:
        detail: Why the functionality cannot be served right now.

    Returns:
        An HTTPException with 503 status and detail message.
    """
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
    )
