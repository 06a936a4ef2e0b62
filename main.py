"""
LabFlow - Dental Lab Order Tracking API
Order intake, production status tracking and analytics for a prosthesis lab
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import uvicorn
from contextlib import asynccontextmanager
import logging

from labflow.config import settings
from labflow.database import engine, Base, SessionLocal
from labflow.models import order, status_history, user  # noqa: F401  register tables
from labflow.routers import orders, auth, analytics, production, files
from labflow.services.user_service import UserService
from labflow.utils.datetime_utils import utcnow
from labflow.utils.error_handler import ErrorContext, ErrorHandler, DatabaseError, StorageError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Rate limiting
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def bootstrap_admin():
    """Create the configured admin account on first start"""
    if not (settings.bootstrap_admin_email and settings.bootstrap_admin_password):
        return
    db = SessionLocal()
    try:
        UserService(db).ensure_admin(
            settings.bootstrap_admin_username,
            settings.bootstrap_admin_email,
            settings.bootstrap_admin_password,
        )
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info(f"Starting {settings.app_name} API...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")
    bootstrap_admin()

    yield

    logger.info(f"Shutting down {settings.app_name} API...")

app = FastAPI(
    title=f"{settings.app_name} API",
    description="Order intake, production status tracking and analytics for a dental prosthesis lab",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/v1/auth", tags=["authentication"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["orders"])
app.include_router(files.router, prefix="/api/v1/files", tags=["files"])
app.include_router(analytics.router, prefix="/api/v1/analytics", tags=["analytics"])
app.include_router(production.router, prefix="/api/v1/production", tags=["production"])


@app.get("/")
@limiter.limit("10/minute")
async def root(request: Request):
    """Root endpoint with API information - publicly accessible"""
    return {
        "message": f"{settings.app_name} API",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
        "timestamp": utcnow().isoformat()
    }


@app.get("/health")
@limiter.limit("30/minute")
async def health_check(request: Request):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat()
    }


@app.exception_handler(DatabaseError)
async def database_exception_handler(request: Request, exc: DatabaseError):
    return ErrorHandler.create_error_response(ErrorContext(request), exc)


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError):
    return ErrorHandler.create_error_response(ErrorContext(request), exc)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all returning the JSON error envelope with a tracking id"""
    return ErrorHandler.create_error_response(ErrorContext(request), exc, status_code=500, error_code="INTERNAL_ERROR")

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower()
    )
