import logging

from fastapi import FastAPI, Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from consent_service.config import settings

logger = logging.getLogger(__name__)

# Specific rate limits for sensitive endpoints
LOGIN_LIMIT = settings.RATE_LIMIT_LOGIN
REGISTRATION_LIMIT = settings.RATE_LIMIT_REGISTER

# Disabled limiters still accept the decorators; they just never count
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Custom handler for rate limit exceeded exceptions"""
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """Configure rate limiting for the FastAPI application"""
    app.state.limiter = limiter

    if limiter.enabled:
        logger.info(
            f"Rate limiting is enabled with the following limits: "
            f"Default={settings.RATE_LIMIT_DEFAULT}, Login={LOGIN_LIMIT}, "
            f"Registration={REGISTRATION_LIMIT}"
        )
    else:
        logger.info("Rate limiting is disabled by configuration")

    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
