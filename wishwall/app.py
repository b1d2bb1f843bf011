"""
FastAPI application entry point for the wishwall backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from wishwall.config import get_settings
from wishwall.errors import RateLimitError, WishwallError
from wishwall.routes import router
from wishwall.schemas import HealthResponse

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


async def wishwall_error_handler(request: Request, exc: WishwallError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse({"error": exc.message}, status_code=exc.status_code, headers=headers)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse({"error": "Invalid request"}, status_code=400)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse({"error": "Server error"}, status_code=500)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Wishwall Backend (FastAPI)", version="0.1.0")
    app.add_exception_handler(WishwallError, wishwall_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(ok=True, in_memory_backends=settings.use_in_memory_backends)

    return app


app = create_app()
