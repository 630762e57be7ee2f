import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from blogapi import responses
from blogapi.cache import CacheManager
from blogapi.config import settings
from blogapi.database import Database
from blogapi.exceptions import AppError
from blogapi.middleware import TimingMiddleware
from blogapi.routers import articles, auth, comments, likes, taxonomy, users

logger = logging.getLogger(__name__)


def _caller_id(request: Request):
    return getattr(request.state, "caller_id", None)


async def app_error_handler(request: Request, exc: AppError):
    logger.warning(
        "%s %s -> %d %s (caller_id=%s): %s",
        request.method, request.url.path, exc.status_code, exc.code, _caller_id(request), exc.message,
    )
    return responses.error(exc.status_code, exc.code, exc.message, exc.details)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    logger.warning(
        "%s %s -> %d (caller_id=%s): %s",
        request.method, request.url.path, exc.status_code, _caller_id(request), exc.detail,
    )
    return responses.error(exc.status_code, code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    logger.warning(
        "%s %s -> 400 VALIDATION_ERROR (caller_id=%s): %s",
        request.method, request.url.path, _caller_id(request), details,
    )
    return responses.error(400, "VALIDATION_ERROR", "Invalid request data", details)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(
        "%s %s -> 500 (caller_id=%s)", request.method, request.url.path, _caller_id(request)
    )
    message = str(exc) if settings.DEBUG else "An unexpected error occurred"
    return responses.error(500, "INTERNAL_ERROR", message)


def create_app(database: Database | None = None, cache: CacheManager | None = None) -> FastAPI:
    """
    Build the application.  Production builds its own store and cache
    handles from ``settings``; tests inject theirs.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    database = database or Database(settings.DATABASE_URL, pool_pre_ping=True)
    cache = cache or CacheManager(settings.REDIS_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        await database.open()
        await cache.connect()  # App works without Redis
        yield
        # Shutdown
        await cache.disconnect()
        await database.close()

    app = FastAPI(
        title="Blog Platform API",
        description="Articles, comments, likes, categories, tags and accounts",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.cache = cache

    # Middleware
    app.add_middleware(TimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handlers
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routers
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(articles.router)
    app.include_router(comments.router)
    app.include_router(likes.router)
    app.include_router(taxonomy.categories_router)
    app.include_router(taxonomy.tags_router)

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "env": settings.APP_ENV,
            "cache": app.state.cache.stats,
        }

    return app


app = create_app()
