from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jose import JWTError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import traceback
import uuid
import logging
from contextlib import asynccontextmanager

from natours.core.config import settings
from natours.core.database import engine
from natours.core.database import Base
from natours.core.errors import AppError, handle_duplicate_field_error, handle_token_error, handle_validation_error
from natours.api import health, auth, users, tours, reviews
from natours.auth.rate_limiter import rate_limiter
import natours.models  # noqa: F401  registers the tables on Base.metadata

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting Natours API ({settings.environment})")

    # Create database tables
    Base.metadata.create_all(bind=engine)

    yield

    # Shutdown
    logger.info("Shutting down Natours API")


# Create FastAPI app
app = FastAPI(
    title="Natours API",
    description="Tour booking backend: tours, users and reviews",
    version="1.0.0",
    lifespan=lifespan
)


# Rate limiting middleware
@app.middleware("http")
async def limit_api_requests(request: Request, call_next):
    """Reject clients that exceed their request quota on the API."""
    if settings.rate_limit_enabled and request.url.path.startswith(settings.api_prefix):
        client_id = request.client.host if request.client else "unknown"
        if not rate_limiter.check_api_rate_limit(client_id):
            logger.warning(f"Rate limit exceeded for {client_id}")
            return JSONResponse(
                status_code=429,
                content={
                    "status": "fail",
                    "msg": "Too many requests received from this IP. Try again later.",
                },
            )

    return await call_next(request)


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)

    # Security headers
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    return response


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID for tracing."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    return response


# Logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing."""
    start_time = time.time()

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        f"{request.method} {request.url.path} {response.status_code} {round(duration_ms, 2)}ms",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "client_ip": request.client.host if request.client else "unknown"
        }
    )

    return response


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
def error_response(error: AppError, exc: Exception = None) -> JSONResponse:
    """Render an operational error, adding debugging detail outside production."""
    content = {"status": error.status, "msg": error.message}
    if not settings.is_production:
        source = exc if exc is not None else error
        content["error"] = repr(source)
        content["stack"] = "".join(traceback.format_exception(type(source), source, source.__traceback__))
    return JSONResponse(status_code=error.status_code, content=content)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(handle_validation_error(exc.errors()), exc)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    return error_response(handle_duplicate_field_error(exc), exc)


@app.exception_handler(JWTError)
async def token_error_handler(request: Request, exc: JWTError):
    return error_response(handle_token_error(exc), exc)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent format."""
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Requested path {request.url.path} does not exist !"
    else:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(AppError(message, exc.status_code), exc)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "exception_type": type(exc).__name__
        },
        exc_info=True
    )

    message = "Something went wrong !" if settings.is_production else str(exc)
    return error_response(AppError(message, 500), exc)


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(users.router, prefix=settings.api_prefix)
app.include_router(tours.router, prefix=settings.api_prefix)
app.include_router(reviews.router, prefix=settings.api_prefix)
app.include_router(reviews.nested_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Natours API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "natours.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True if settings.environment == "development" else False,
        log_level="info"
    )
