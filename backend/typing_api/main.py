"""FastAPI application entry point"""
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded as BackstopRateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from typing_api import __version__
from typing_api.api import auth, health, results, users
from typing_api.config import settings
from typing_api.database import init_db
from typing_api.errors import ApiError, RateLimitExceeded, ValidationFailed
from typing_api.middleware.monitoring import MonitoringMiddleware
from typing_api.middleware.rate_limit import limiter
from typing_api.middleware.security_headers import SECURITY_HEADERS, SecurityHeadersMiddleware
from typing_api.utils.logger import logger, setup_logging

# Setup logging
setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    init_db()
    logger.info("Typing speed test API starting up", extra={"action": "startup"})
    logger.info(
        f"environment={settings.ENVIRONMENT} rate_limiting={settings.RATE_LIMIT_ENABLED} "
        f"metrics={settings.METRICS_ENABLED} google_oauth={bool(settings.GOOGLE_CLIENT_ID)}"
    )
    yield
    logger.info("Typing speed test API shutting down", extra={"action": "shutdown"})


app = FastAPI(
    title="Typing Speed Test API",
    description="Accounts, authentication and typing test results",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ===== Middleware Setup =====

app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

if settings.METRICS_ENABLED:
    app.add_middleware(MonitoringMiddleware)

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=[settings.METRICS_PATH, "/health", "/health/ready"],
        inprogress_name="typing_api_requests_inprogress",
        inprogress_labels=True,
        should_instrument_requests_inprogress=True,
    )
    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint=settings.METRICS_PATH, include_in_schema=False)

# App-wide backstop; the auth routes carry their own tighter budgets
app.state.limiter = limiter
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(SlowAPIMiddleware)


# ===== Error Handlers =====

def _error_response(status_code: int, content: dict, headers: dict = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    """Render typed errors as the standard failure envelope"""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"{exc.code}: {exc.message}",
        extra={"path": request.url.path, "method": request.method, "code": exc.code, "status": exc.status_code},
    )
    return _error_response(exc.status_code, exc.to_dict(), exc.headers)


def _field_error(error: dict) -> dict:
    location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    message = error.get("msg", "Invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return {"field": ".".join(location), "message": message}


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Request schema violations are a 400, not FastAPI's default 422"""
    error = ValidationFailed(details=[_field_error(e) for e in exc.errors()])
    logger.info(
        "Request validation failed",
        extra={"path": request.url.path, "method": request.method, "code": error.code},
    )
    return _error_response(error.status_code, error.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        content = {"success": False, "error": "Route not found", "code": "NOT_FOUND"}
    else:
        content = {"success": False, "error": str(exc.detail), "code": "HTTP_ERROR"}
    return _error_response(exc.status_code, content, getattr(exc, "headers", None))


@app.exception_handler(BackstopRateLimitExceeded)
async def backstop_rate_limit_handler(request: Request, exc: BackstopRateLimitExceeded):
    """Handle the app-wide slowapi limit"""
    logger.warning(
        "Rate limit exceeded",
        extra={"path": request.url.path, "method": request.method, "action": "rate_limit:global"},
    )
    error = RateLimitExceeded(
        "Too many requests. Please try again later.",
        retry_after=exc.limit.limit.get_expiry() if exc.limit else 60,
    )
    return _error_response(error.status_code, error.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for uncaught errors"""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )
    content = {"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"}
    if not settings.is_production:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    # Served by the outermost error middleware, outside SecurityHeadersMiddleware
    return _error_response(500, content, SECURITY_HEADERS)


# ===== Route Setup =====

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(results.router)


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "service": "Typing Speed Test API",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
        "health": "/health",
        "metrics": settings.METRICS_PATH if settings.METRICS_ENABLED else None,
    }
