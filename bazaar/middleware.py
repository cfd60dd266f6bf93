"""HTTP middleware that puts the rate limiter in front of the API routes."""
from __future__ import annotations

import logging
import math
from typing import Callable, Iterable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bazaar.rate_limit import FixedWindowRateLimiter, RateLimitDecision, RateLimitExceeded

LOGGER = logging.getLogger(__name__)

IdentityResolver = Callable[[Request], str]

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


def client_ip_identity(request: Request) -> str:
    """Bucket callers by peer address; callers without one share ``unknown``."""

    return request.client.host if request.client and request.client.host else "unknown"


def _limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
    }


def rate_limited_response(exc: RateLimitExceeded) -> JSONResponse:
    decision = exc.decision
    headers = _limit_headers(decision)
    headers["Retry-After"] = str(decision.retry_after_seconds)
    headers["X-RateLimit-Reset"] = str(math.ceil(decision.reset_at_ms / 1000))
    return JSONResponse(
        status_code=429,
        content={"success": False, "message": RATE_LIMIT_MESSAGE},
        headers=headers,
    )


def install_rate_limiting(
    app: FastAPI,
    limiter: FixedWindowRateLimiter,
    resolve_identity: IdentityResolver = client_ip_identity,
    exempt_paths: Iterable[str] = (),
) -> None:
    """Register the rate limiting middleware on ``app``."""

    exempt = frozenset(exempt_paths)

    @app.middleware("http")
    async def apply_rate_limiting(request: Request, call_next):  # type: ignore[no-untyped-def]
        if request.url.path in exempt:
            return await call_next(request)

        client_ip = resolve_identity(request)
        try:
            decision = limiter.check(client_ip)
        except RateLimitExceeded as exc:
            return rate_limited_response(exc)

        try:
            response = await call_next(request)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception(
                "Unhandled exception",
                extra={"client_ip": client_ip, "path": request.url.path},
            )
            raise exc
        response.headers.update(_limit_headers(decision))
        return response
