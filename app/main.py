from contextlib import asynccontextmanager
from datetime import datetime
import logging
from fastapi import FastAPI

from app.config import settings
from app.context import build_context
from app.core.logging_utils import configure_logging
from app.api import health, sync


configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events for the application."""
    # Startup: configuration errors propagate and abort the process
    context = build_context(settings)
    app.state.context = context
    await context.scheduler.start()
    logger.info("GitHub to Jira relay started")

    yield

    # Shutdown
    logger.info("Stopping GitHub to Jira relay")
    await context.aclose()
    app.state.context = None


app = FastAPI(
    title="GitHub Jira Relay",
    description="Mirror open GitHub issues into Jira with AI-generated summaries",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(health.router)
app.include_router(sync.router)


@app.get("/health")
async def health_legacy():
    """Liveness check that does not touch the relay."""
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


def run():
    """Console entry point."""
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
