import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from blogserver.cache import cache
from blogserver.config import settings
from blogserver.errors import BlogServiceError, InternalServiceError
from blogserver.logging_config import configure_logging
from blogserver.middleware import RequestContextMiddleware
from blogserver.routers import posts

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the service keeps working without Redis.
    await cache.connect()
    logger.info("%s service %s started", settings.SERVICE_NAME, settings.VERSION)
    yield
    # Shutdown
    await cache.disconnect()


app = FastAPI(
    title="Blog post service",
    description="Create, fetch, search and delete posts of a blog",
    version=settings.VERSION,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error mapping
@app.exception_handler(BlogServiceError)
async def blog_service_error_handler(request: Request, exc: BlogServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    # Reached when the session fails outside a service call, e.g. on commit.
    logger.error("Unhandled database error: %s", exc, exc_info=exc)
    error = InternalServiceError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Routers
app.include_router(posts.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "service": settings.SERVICE_NAME, "version": settings.VERSION}
