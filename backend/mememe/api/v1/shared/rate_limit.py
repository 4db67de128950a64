"""Per-client rate limiting for API requests.

The limiter itself lives on ``app.state.rate_limiter`` so tests can swap it
for an isolated instance. Every checked response carries the
``X-RateLimit-*`` headers; rejected requests never reach the endpoint.
"""

import math

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from slowapi.util import get_remote_address

from mememe.core.config import Settings
from mememe.services.rate_limiter import RateLimiter, RateLimitResult

RATE_LIMIT_ERROR = "rate_limit_exceeded"


def get_client_ip(request: Request) -> str:
    """Resolve the client identity used as the rate limit key.

    Order: first ``X-Forwarded-For`` entry, ``X-Real-IP``, then the
    connection address.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    return get_remote_address(request)


def apply_rate_limit_headers(response: Response, result: RateLimitResult) -> None:
    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    # Epoch seconds, rounded up so clients never retry early
    response.headers["X-RateLimit-Reset"] = str(math.ceil(result.reset / 1000))


def rate_limit_exceeded_response(result: RateLimitResult) -> JSONResponse:
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": RATE_LIMIT_ERROR},
    )
    apply_rate_limit_headers(response, result)
    return response


async def check_request(request: Request) -> RateLimitResult:
    limiter: RateLimiter = request.app.state.rate_limiter
    return await limiter.check(get_client_ip(request))


def install_rate_limit_middleware(app: FastAPI, settings: Settings) -> None:
    """Reject over-limit requests before they reach a route."""
    exempt_paths = frozenset(settings.rate_limit_exempt_paths)

    @app.middleware("http")
    async def enforce_rate_limit(request: Request, call_next):
        if request.url.path in exempt_paths:
            return await call_next(request)

        result = await check_request(request)
        if not result.success:
            return rate_limit_exceeded_response(result)

        response = await call_next(request)
        apply_rate_limit_headers(response, result)
        return response
