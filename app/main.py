from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.exceptions import HTTPException

from app.config import settings
from app.api.v1.router import api_router
from app.api.v1.endpoints import auth
from app.core.exceptions import CampaignOpsError
from app.database import init_db, async_session_factory, get_db_session
from app.jobs.scheduler import start_scheduler, shutdown_scheduler


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


async def auto_seed_owner():
    """Create the owner role assignment from OWNER_EMAIL if it is missing."""
    if not settings.OWNER_EMAIL:
        return

    from app.services.auth_service import AuthService

    try:
        async with get_db_session() as session:
            await AuthService(session).ensure_owner(settings.OWNER_EMAIL, settings.OWNER_NAME)
    except Exception as e:
        logger.error(f"Owner seed failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables that do not exist yet
    - Seed the owner account
    - Start background scheduler
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()
    await auto_seed_owner()

    # Start background job scheduler
    start_scheduler()

    yield

    # Shutdown
    shutdown_scheduler()
    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Authentication", "description": "Email one-time-passcode login"},
    {"name": "Orders", "description": "Campaign orders, progress checklists, supplier payments"},
    {"name": "Client Tracking", "description": "Public order tracking by tracking code"},
    {"name": "Suppliers", "description": "Supplier management and supplier self-service profile"},
    {"name": "Packages", "description": "Campaign package pricing templates"},
    {"name": "Team", "description": "Role assignments for agency staff and suppliers"},
    {"name": "Activity Logs", "description": "Audit trail of dashboard actions with CSV export"},
]

API_DESCRIPTION = """
## Campaign Ops API

Backend for a TikTok affiliate campaign agency.

### Authentication

Request a code with `POST /api/send-otp`, exchange it with
`POST /api/verify-otp`, then send `Authorization: Bearer <token>`.
`/api/v1/track/{code}` and `/api/v1/packages` are public.

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Validation, compliance or package error |
| 401 | Invalid/expired token |
| 403 | Role not allowed to perform the action |
| 404 | Unknown order, supplier, package or tracking code |
| 409 | Supplier payment transition not allowed |
| 503 | Storage unavailable |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(auth.router, prefix="/api")
app.include_router(api_router, prefix="/api/v1")


def _error_response(status_code: int, message: str, error_type: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({
            "success": False,
            "error": message,
            "type": error_type,
            "details": details or {},
        }),
    )


@app.exception_handler(CampaignOpsError)
async def campaign_ops_exception_handler(request: Request, exc: CampaignOpsError):
    """Domain errors are recoverable; the dashboard shows the message."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return _error_response(exc.status_code, exc.message, type(exc).__name__, exc.details)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Preserve HTTP status code for HTTPException."""
    response = _error_response(exc.status_code, str(exc.detail), type(exc).__name__)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(422, "Invalid request", "RequestValidationError", {"errors": exc.errors()})


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "ok",
        "message": f"{settings.APP_NAME} Backend API is running",
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
