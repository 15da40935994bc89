import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS, IS_PRODUCTION, REALTIME_ENABLED
from .database import Base, engine
from .domain.consultations import router as consultations_router
from .domain.forum import router as forum_router
from .errors import LawSphereError
from .realtime import BroadcastNotifier, NoopNotifier

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis unavailable - rate limiting is memory-only and caching is off: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="LawSphere API", version="1.0.0", lifespan=lifespan)

app.state.notifier = BroadcastNotifier() if REALTIME_ENABLED else NoopNotifier()
logger.info(f"Realtime notifications {'enabled' if REALTIME_ENABLED else 'disabled'}")


def error_envelope(
    status_code: int, message: str, error: Any = None, headers: Optional[dict] = None
) -> JSONResponse:
    content = {"success": False, "message": message}
    if error and not IS_PRODUCTION:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(LawSphereError)
async def domain_exception_handler(request: Request, exc: LawSphereError):
    """Render domain errors with their HTTP status"""
    if exc.status_code >= 403:
        logger.warning(f"{request.method} {request.url.path} - {exc.status_code}: {exc.message}")
    return error_envelope(exc.status_code, exc.message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} - Error: {str(exc)}")
    return error_envelope(500, "Server error", str(exc))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return error_envelope(
                401,
                "Not authenticated. Please provide a valid Bearer token in the Authorization header.",
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return error_envelope(422, "Invalid request", jsonable_encoder(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Wrap auth, rate limit and routing errors in the standard envelope"""
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("message") or "Request failed"
        error = {k: v for k, v in detail.items() if k != "message"} or None
    else:
        message = str(detail) if detail else "Request failed"
        error = None
    return error_envelope(exc.status_code, message, error, headers=getattr(exc, "headers", None))


# CORS Configuration
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(forum_router)
app.include_router(consultations_router)


@app.get("/")
def root():
    return {"message": "LawSphere API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
