from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import uvicorn
from sqlalchemy import text

# Import routers
from guestpass.api.routes import (
    auth,
    categories,
    check_in,
    guests,
    health,
    invitations,
    rsvp,
    scanner,
    stats,
    upload_csv,
)
from guestpass.core.config import settings
from guestpass.core.exceptions import GuestNotFoundError, StoreUnavailableError
from guestpass.core.logging import setup_logging
from guestpass.db.session import SessionLocal, init_db

# Setup logging
setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    # Startup
    logger.info(f"Starting {settings.PROJECT_NAME}...")

    logger.info("Creating database tables...")
    init_db()

    # Test database connection
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        logger.info("Database connection successful")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise
    finally:
        db.close()

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Guest RSVP, invitations and QR pass check-in",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Store unavailable on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Guest records are unavailable. Please try again."})


@app.exception_handler(GuestNotFoundError)
async def guest_not_found_handler(request: Request, exc: GuestNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(auth.router, prefix="/api", tags=["Auth"])
app.include_router(rsvp.router, prefix="/api", tags=["RSVP"])
app.include_router(guests.router, prefix="/api", tags=["Guests"])
app.include_router(categories.router, prefix="/api", tags=["Categories"])
app.include_router(invitations.router, prefix="/api", tags=["Invitations"])
app.include_router(upload_csv.router, prefix="/api", tags=["Organizer"])
app.include_router(check_in.router, prefix="/api", tags=["Check-In"])
app.include_router(scanner.router, prefix="/api", tags=["Check-In"])
app.include_router(stats.router, prefix="/api", tags=["Dashboard"])


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "operational",
        "docs": "/docs",
        "endpoints": {
            "health": "/api/health",
            "rsvp": "/api/rsvp",
            "guests": "/api/guests",
            "upload_csv": "/api/upload-csv",
            "send_invitations": "/api/invitations/send",
            "check_in": "/api/check-in",
            "scanner": "/api/scanner/ws",
            "stats": "/api/stats"
        }
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, reload=False)
