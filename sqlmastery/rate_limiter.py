"""
Rate limiting for query execution and AI mentor endpoints
Per-IP limits kept in process memory by SlowAPI.
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import Config

limiter = Limiter(key_func=get_remote_address, enabled=Config.RATE_LIMIT_ENABLED)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return the same {error} body shape as the other API failures"""
    return JSONResponse(
        status_code=429,
        content={"error": f"Rate limit exceeded: {exc.detail}"},
    )
