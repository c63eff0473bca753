"""Entry point for the FastAPI-powered watch history mirror."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager

import aioboto3
import httpx
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, settings
from .database import Database
from .models import UserListResponse
from .services.anilist import AniListClient, AniListError
from .services.history import HistoryService
from .services.images import ImageMaterializer, S3BlobStore
from .services.storage import StorageGateway

LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(config: Settings) -> None:
    """Configure root logging from the application settings."""

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))
    logging.basicConfig(
        level=config.log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
    )


configure_logging(settings)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    anilist_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(20.0, connect=10.0))
    )
    image_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0))
    )
    s3_client = await exit_stack.enter_async_context(
        aioboto3.Session().client(
            "s3",
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    anilist = AniListClient(settings, anilist_http_client)
    images = ImageMaterializer(
        settings, image_http_client, S3BlobStore(s3_client, settings.s3_bucket)
    )
    service = HistoryService(anilist, StorageGateway(database.session_factory), images)

    fastapi_app.state.history_service = service
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await service.wait_idle()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Mirror of AniList watch history with re-hosted artwork",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET"],
        allow_headers=["Authorization", "Accept"],
        allow_credentials=True,
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_history_service(app: FastAPI) -> HistoryService:
    service = getattr(app.state, "history_service", None)
    if not isinstance(service, HistoryService):
        raise RuntimeError("History service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/users/{username}", response_model=UserListResponse)
    async def user_list(username: str) -> UserListResponse:
        service = get_history_service(fastapi_app)
        try:
            payload = await service.get_list(username)
        except SQLAlchemyError as exc:
            logger.error("error getting list for user_name=%s: %s", username, exc)
            raise HTTPException(status_code=500, detail="Could not load list") from exc
        if payload is None:
            raise HTTPException(status_code=404, detail="User or list not found")
        return payload

    @fastapi_app.post("/users/{username}", status_code=202)
    async def update_user(username: str) -> dict[str, str]:
        service = get_history_service(fastapi_app)
        try:
            identity = await service.request_update(username)
        except AniListError as exc:
            logger.error("AniList lookup failed for user_name=%s: %s", username, exc)
            raise HTTPException(status_code=502, detail="AniList is unavailable") from exc
        except SQLAlchemyError as exc:
            logger.error("error saving profile for user_name=%s: %s", username, exc)
            raise HTTPException(status_code=500, detail="Could not save profile") from exc
        if identity is None:
            raise HTTPException(status_code=404, detail="User not found")
        return {"status": "Added to the queue"}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
