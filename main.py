import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Import all models for SQLAlchemy relationship resolution
import models
from core.config import settings
from core.database import Base, engine
from core.exceptions import AppError
from core.logging_config import setup_logging
from middleware import RequestIDMiddleware, get_request_id, limiter
from routers import auth, users, numbers, rentals, payments, tickets, dashboard
from utils.logger import get_logger, log_request

setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Application startup complete", extra={"event": "startup", "env": settings.ENV})
    yield
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="SMS Number Store API",
    description="Temporary and long-term phone numbers for SMS verification",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with method, path, status code and duration."""
    start_time = time.time()
    response = await call_next(request)
    log_request(
        logger,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=(time.time() - start_time) * 1000,
        client_ip=request.client.host if request.client else "unknown"
    )
    return response


# Added last so it wraps the request logger and stamps its records too
app.add_middleware(RequestIDMiddleware)


@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(exc.message, extra={"path": request.url.path, "error_type": type(exc).__name__})
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message}
    )


def validation_message(exc: RequestValidationError) -> str:
    """Flatten the first validation error into a single readable sentence."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    field = str(error["loc"][-1]) if error.get("loc") else "body"
    if error["type"] == "missing":
        return f"{field.replace('_', ' ').capitalize()} is required"
    cause = error.get("ctx", {}).get("error")
    if isinstance(cause, ValueError):
        return str(cause)
    return f"{field}: {error['msg']}"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = validation_message(exc)
    logger.info("Request validation failed", extra={"path": request.url.path, "reason": message})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": message}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions with their stack trace and answer a generic 500."""
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

    content = {"success": False, "message": "Internal server error"}
    if settings.ENV != "production":
        content["error"] = f"{type(exc).__name__}: {exc}"

    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(numbers.router)
app.include_router(rentals.router)
app.include_router(payments.router)
app.include_router(tickets.router)
app.include_router(dashboard.router)


app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
