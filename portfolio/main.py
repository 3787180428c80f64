import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from portfolio.config import Settings
from portfolio.errors import BlogError
from portfolio.routes import auth, blog, medium, updates
from portfolio.services.medium import MediumFeed
from portfolio.services.posts import PostStore

logger = logging.getLogger(__name__)


async def blog_error_handler(request: Request, exc: BlogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Mohamed Elshawaf",
        description="Portfolio blog and Medium mirror",
    )

    app.state.settings = settings
    app.state.post_store = PostStore(settings.data_dir)
    app.state.medium_feed = MediumFeed(settings.medium)

    # Login rate limiting
    app.state.limiter = auth.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(BlogError, blog_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    # Include routes
    app.include_router(auth.router)
    app.include_router(blog.router)
    app.include_router(medium.router)
    app.include_router(updates.router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app
