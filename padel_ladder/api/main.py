"""
Padel Ladder API Server

FastAPI server for the doubles match lifecycle: queue, matchmaking,
approval, scheduling and rating updates.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from padel_ladder.api.routes import router, limiter as routes_limiter
from padel_ladder.database import db
from padel_ladder.services.matchmaking_worker import get_matchmaking_worker

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up Padel Ladder API...")

    # Create tables that migrations have not created yet
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    # Periodic matchmaking sweeps
    try:
        get_matchmaking_worker().start()
    except Exception as e:
        logger.error(f"Failed to start matchmaking worker: {e}", exc_info=True)

    yield

    # Shutdown
    logger.info("Shutting down Padel Ladder API...")
    try:
        get_matchmaking_worker().stop()
    except Exception as e:
        logger.error(f"Error stopping matchmaking worker: {e}", exc_info=True)

    await db.engine.dispose()


app = FastAPI(
    title="Padel Ladder API",
    description="Matchmaking, approval, scheduling and rating updates for amateur doubles padel",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware, origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
