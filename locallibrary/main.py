import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from locallibrary.api.catalog import api_router
from locallibrary.config import Settings, settings as default_settings
from locallibrary.database import Database
from locallibrary.errors import register_exception_handlers
from locallibrary.rate_limiter import limiter
from locallibrary.templating import redirect

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the application around an explicit data-access handle
    """
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)
    database = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create tables at startup; an unreachable database is logged, not fatal
        if database.check_connection():
            database.create_all()
        yield
        database.dispose()

    app = FastAPI(
        title="Local Library",
        description="Catalog of books, authors, genres and book copies",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.db = database

    limiter.enabled = settings.RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)

    app.include_router(api_router, prefix="/catalog")

    @app.get("/")
    async def root():
        return redirect("/catalog/")

    @app.get("/health")
    async def health_check(request: Request):
        """
        Simple health check
        """
        if await run_in_threadpool(request.app.state.db.check_connection):
            return {"status": "healthy", "database": "connected"}
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "disconnected"},
        )

    logger.info(f"Local Library configured ({settings.ENVIRONMENT})")
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "locallibrary.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.is_development,
    )
