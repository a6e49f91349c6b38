"""
Task graph - task hierarchy and dependency graph engine.
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager

from taskgraph.database import init_db
from taskgraph.routes import tasks, dependencies
from taskgraph.exceptions import register_exception_handlers
from taskgraph.logging_config import setup_logging, get_logger

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting task graph API...")
    await init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down task graph API...")


app = FastAPI(
    title="Task Graph",
    description="Task hierarchy and dependency graph engine",
    version="0.1.0",
    lifespan=lifespan,
)

# Register custom exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
app.include_router(dependencies.router, prefix="/dependencies", tags=["Dependencies"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
