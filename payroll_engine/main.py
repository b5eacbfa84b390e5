"""
Payroll Engine - FastAPI Application

- /docs and /openapi.json at root level (no API prefix)
- Middleware order: CORS → CorrelationId
- init_db() only at startup
- Every error leaves as the same {"success": false, "errors": [...]} envelope
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text

from payroll_engine.core.config import settings
from payroll_engine.core.exceptions import AppException
from payroll_engine.core.schemas import ApiResponse, ErrorInfo
from payroll_engine.core.logging import setup_logging
from payroll_engine.core.middleware import CorrelationIdMiddleware
from payroll_engine.database import init_db, SessionLocal
from payroll_engine.routers.api_router import api_router

# ============================================================================
# LOGGING SETUP
# ============================================================================
setup_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# LIFESPAN MANAGEMENT
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} v{settings.version} ({settings.environment})")

    try:
        init_db()
        logger.info("✓ Database initialized successfully")
    except Exception as e:
        logger.error(f"✗ Database initialization failed: {e}")
        raise

    yield

    logger.info("Gracefully shutting down...")


# ============================================================================
# FASTAPI INSTANCE
# ============================================================================
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Monthly payroll computation and batch generation",
    docs_url="/docs",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# ============================================================================
# MIDDLEWARE STACK (last added runs first)
# ============================================================================
app.add_middleware(CorrelationIdMiddleware)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.environment == "development":
    origins.extend(["http://localhost", "http://127.0.0.1"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[settings.request_id_header, "X-Process-Time"],
)

# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body/query failed schema validation (422)."""
    errors = []
    for error in exc.errors():
        # loc is usually ('body', 'field_name')
        field = error["loc"][-1] if len(error["loc"]) > 0 else "unknown"
        errors.append(ErrorInfo(msg=error["msg"], code="VALIDATION_FAILED", field=str(field)))

    logger.warning(f"Validation Error: {[e.msg for e in errors]}")
    return JSONResponse(
        status_code=422,
        content=ApiResponse.from_errors(errors).to_dict()
    )


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Domain errors carry their own status code and error code."""
    logger.warning(f"AppException: {exc.message}", extra={"code": exc.error_code})
    violations = (exc.details or {}).get("violations")
    if violations:
        errors = [ErrorInfo(msg=v, code=exc.error_code) for v in violations]
    else:
        errors = [ErrorInfo(msg=exc.message, code=exc.error_code, details=exc.details)]
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse.from_errors(errors).to_dict()
    )


@app.exception_handler(StarletteHTTPException)
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: Union[HTTPException, StarletteHTTPException]):
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse.fail(exc.detail if isinstance(exc.detail, str) else "Request failed").to_dict()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Fallback handler for unhandled server errors."""
    logger.exception("Unhandled server error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content=ApiResponse.fail("An unexpected server error occurred.").to_dict()
    )


# ============================================================================
# ROUTER INCLUSION
# ============================================================================
app.include_router(api_router, prefix=settings.api_prefix)

# ============================================================================
# OPERATIONAL ENDPOINTS (at root level)
# ============================================================================
@app.get("/", tags=["Health"])
def root():
    return {
        "message": f"{settings.app_name} API",
        "version": settings.version,
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness probe for load balancers and orchestrators."""
    return {
        "status": "up",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
        "environment": settings.environment,
    }


@app.get("/readiness", tags=["Health"])
def readiness_check():
    """Readiness probe - verifies database connectivity."""
    try:
        with SessionLocal() as session:
            session.execute(text("SELECT 1"))
        return {
            "status": "ready",
            "components": {"database": "connected"},
        }
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail="Service not ready")
