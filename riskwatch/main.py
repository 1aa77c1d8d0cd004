"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from riskwatch import __version__
from riskwatch.config import settings
from riskwatch.detection import routes as job_routes
from riskwatch.detection.scheduler import setup_apscheduler
from riskwatch.notifications import routes as notification_routes

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler

        scheduler = AsyncIOScheduler()
        setup_apscheduler(scheduler)
        scheduler.start()
        logger.info("Background scheduler started")

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)


# Create FastAPI app
app = FastAPI(
    title="Riskwatch API",
    description="Project-health alerting and escalation",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(notification_routes.router, prefix=settings.API_V1_PREFIX)
app.include_router(job_routes.router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Riskwatch API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "riskwatch.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
