import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.config import settings
from app.limiter import limiter
from app.routers import health, search
from app.utils.secure_logger import get_logger

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


app = FastAPI(
    title=settings.app_name,
    description="Checks whether an article exists on a domain via site-scoped search",
    version="0.1.0",
)

# Rate limiter state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.on_event("startup")
async def startup_event():
    """Log provider and routing configuration on startup (no secrets)."""
    logger.info(f"[Config] CORS allowed origins: {list(settings.cors_origins)}")
    logger.info(f"[Config] ValueSERP key: {'configured' if settings.valueserp_key else 'MISSING'}")
    logger.info(f"[Config] SerpApi key: {'configured' if settings.serpapi_key else 'MISSING'}")
    logger.info(f"[Config] Internal-search domains: {list(settings.internal_search_domains)}")
    logger.info(f"[Config] Alternate-engine domains: {list(settings.alternate_engine_domains)}")


app.include_router(health.router, tags=["health"])
app.include_router(search.router)


@app.get("/")
async def root():
    return {
        "status": "ok",
        "message": "Boolean Search API",
        "has_api_key": bool(settings.valueserp_key),
    }


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
