import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config import Settings
from database import Database
from errors import register_exception_handlers
from routers import attendance, auth, clubs, events
from storage import ObjectStorage
from utils import build_limiter

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    handlers: list = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def build_storage(settings: Settings) -> Optional[ObjectStorage]:
    if not settings.storage_bucket:
        logger.warning("STORAGE_BUCKET is not set, image uploads are disabled")
        return None
    return ObjectStorage(settings.storage_bucket, project=settings.google_cloud_project)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    storage: Optional[ObjectStorage] = None,
) -> FastAPI:
    """
    Build the API with explicitly constructed collaborators.
    Anything not passed in is created from the environment.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings)

    database = database or Database(settings.database_url)
    database.create_all()

    if storage is None:
        storage = build_storage(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down, releasing database and storage clients")
        database.dispose()
        if storage is not None:
            storage.close()

    #create api
    api = FastAPI(
        title="Campus Events API",
        description="Clubs publish events, students register, admins approve clubs",
        version="1.0.0",
        lifespan=lifespan,
    )

    api.state.settings = settings
    api.state.database = database
    api.state.storage = storage

    # add limiter
    limiter = build_limiter(enabled=settings.rate_limit_enabled)
    api.state.limiter = limiter
    api.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore

    register_exception_handlers(api)

    # middlewares
    api.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"]
    )

    api.include_router(auth.build_router(limiter))
    api.include_router(clubs.router)
    api.include_router(events.router)
    api.include_router(attendance.router)

    @api.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return api


if __name__ == "__main__":

    port = int(os.getenv("BACKEND_PORT", 4444))
    environment = os.getenv("ENVIRONMENT", "development")

    uvicorn.run(
        "main:create_app",
        factory=True,
        host="0.0.0.0",
        port=port,
        reload=(environment == "development")  # Only reload in dev mode
    )
