"""FastAPI application for the Twania Smart Bazaar API."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from bazaar.config import Settings, get_settings
from bazaar.logging_config import configure_logging
from bazaar.middleware import IdentityResolver, client_ip_identity, install_rate_limiting
from bazaar.rate_limit import FixedWindowRateLimiter
from bazaar.sweeper import RegistrySweeper

LOGGER = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(
    settings: Optional[Settings] = None,
    limiter: Optional[FixedWindowRateLimiter] = None,
    resolve_identity: IdentityResolver = client_ip_identity,
) -> FastAPI:
    """Build the API with its own rate limiter registry and sweeper."""

    if settings is None:
        settings = get_settings()
    if limiter is None:
        limiter = FixedWindowRateLimiter(settings.rate_limit_config())
    sweeper = RegistrySweeper(limiter, settings.rate_limit_sweep_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper.start()
        LOGGER.info(
            "Twania Smart Bazaar API ready",
            extra={"limit": settings.rate_limit_max_requests},
        )
        try:
            yield
        finally:
            sweeper.stop(timeout=5)

    app = FastAPI(title="Twania Smart Bazaar API", lifespan=lifespan)
    app.state.settings = settings
    app.state.rate_limiter = limiter
    app.state.sweeper = sweeper

    install_rate_limiting(
        app,
        limiter,
        resolve_identity=resolve_identity,
        exempt_paths=settings.rate_limit_exempt_paths,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Internal Server Error",
                "path": request.url.path,
                "timestamp": _timestamp(),
            },
        )

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return "Welcome to Twania Smart Bazaar API"

    @app.get("/api/health")
    async def health(request: Request) -> dict[str, Any]:
        """Report liveness and how many clients the limiter is tracking."""

        return {
            "success": True,
            "status": "healthy",
            "rateLimiter": {"trackedClients": len(request.app.state.rate_limiter)},
        }

    @app.get("/api/test")
    async def test_get() -> dict[str, Any]:
        return {
            "success": True,
            "message": "Test GET endpoint working",
            "timestamp": _timestamp(),
        }

    @app.post("/api/test")
    async def test_post(payload: Any = Body(None)) -> dict[str, Any]:
        LOGGER.info("POST /api/test received", extra={"detail": payload})
        return {
            "success": True,
            "message": "Test POST endpoint working",
            "data": payload,
            "timestamp": _timestamp(),
        }

    return app


configure_logging()
app = create_app()


def run() -> None:
    """Serve the API with uvicorn on the configured port."""

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)


if __name__ == "__main__":
    run()
