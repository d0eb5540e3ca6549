"""Mock Test Engine - FastAPI Application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mocktest.config import settings
from mocktest.db import init_db
from mocktest.db.database import async_session
from mocktest.routers import mock_test_router
from mocktest.services.content_store import SqlExamStore
from mocktest.services.exam_catalog import ExamCatalog
from mocktest.services.llm_generator import LLMGenerator
from mocktest.services.section_generators import SectionGenerators

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Initializing database...")
    await init_db()
    logger.info("Database initialized.")

    app.state.catalog = ExamCatalog(
        store=SqlExamStore(async_session),
        generators=SectionGenerators(LLMGenerator()),
    )

    logger.info("Startup complete.")
    yield

    # Shutdown
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.app_name,
    description="AI-generated listening and reading mock tests with timed attempts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(mock_test_router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "description": "Listening and reading mock tests",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
