import time
from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from routers import auth, users

# Import all models for SQLAlchemy relationship resolution
import models  # This triggers the imports in models/__init__.py

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

from core.config import settings
from core.database import Base, engine
from core.exceptions import AuthError, StoreUnavailableError, http_status_for
from core.logging_config import setup_logging
from middleware import RequestIDMiddleware, get_request_id
from services.token_sweeper import start_scheduler, shutdown_scheduler
from utils.logger import get_logger, log_request

setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    if settings.TOKEN_SWEEP_ENABLED:
        start_scheduler()

    logger.info("Application startup complete", extra={"event": "startup"})
    yield

    shutdown_scheduler()
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="Session Token Service",
    description="Issues, rotates and revokes session credentials",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,  # refresh token travels as a cookie
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    max_age=600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every HTTP request with method, path, status code and duration.
    """
    start_time = time.time()

    response = await call_next(request)

    duration = (time.time() - start_time) * 1000

    log_request(
        logger,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration,
        client_ip=request.client.host if request.client else None,
        request_id=get_request_id(request)
    )

    return response


# Added last so it runs first and the id is set before request logging
app.add_middleware(RequestIDMiddleware)


@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    """
    Map token lifecycle errors to responses through HTTP_STATUS_BY_ERROR.
    """
    status_code = http_status_for(exc)
    headers = {}

    if isinstance(exc, StoreUnavailableError):
        headers["Retry-After"] = str(exc.retry_after_seconds)
    elif status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"

    log_method = logger.error if status_code >= 500 else logger.warning
    log_method(
        f"Request rejected: {exc.code}",
        extra={
            "path": request.url.path,
            "error_code": exc.code,
            "status_code": status_code,
            "request_id": get_request_id(request)
        }
    )

    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch all unhandled exceptions, log them with full context, and return
    a generic 500 without exposing internals.
    """
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise

    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "request_id": get_request_id(request)
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


app.include_router(auth.router)
app.include_router(users.router)


app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
