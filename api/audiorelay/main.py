from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import requests
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles

from audiorelay.config import Settings, load_settings
from audiorelay.errors import InvalidInput, RelayError
from audiorelay.providers.base import UpstreamProvider
from audiorelay.providers.factory import get_upstream_provider
from audiorelay.relay import StreamRelay
from audiorelay.schemas import ErrorResponse, StartRequest, StartResponse, StreamRequest
from audiorelay.upstream import CredentialPool, RotatingExecutor, SessionFactory
from audiorelay.utils.jobs import Job, JobRegistry
from audiorelay.utils.logging import configure_json_logging, get_logger
from audiorelay.utils.text import extract_video_id


logger = get_logger(__name__)

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


def get_provider(request: Request) -> UpstreamProvider:
    return request.app.state.provider


def get_registry(request: Request) -> JobRegistry:
    return request.app.state.registry


def get_relay(request: Request) -> StreamRelay:
    return request.app.state.relay


def create_app(settings: Optional[Settings] = None, session_factory: SessionFactory = requests.Session) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_json_logging(settings.log_level)
        logger.info(
            "Loaded config: %d API keys, host=%s, url=%s, mode=%s",
            len(settings.api_keys),
            settings.api_host,
            settings.api_url,
            settings.upstream_mode,
        )
        yield

    app = FastAPI(title="Audio Relay API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    executor = RotatingExecutor(CredentialPool.from_keys(settings.api_keys, settings.api_host), session_factory)
    app.state.settings = settings
    app.state.registry = JobRegistry(settings.job_ttl_seconds, settings.job_max_entries)
    app.state.provider = get_upstream_provider(settings, executor)
    app.state.relay = StreamRelay(settings.stream_timeout, settings.max_redirects, session_factory)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("%s %s rejected: invalid request body", request.method, request.url.path)
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.post("/api/start", response_model=StartResponse, response_model_exclude_none=True, responses=ERROR_RESPONSES)
    def start(
        req: StartRequest,
        provider: UpstreamProvider = Depends(get_provider),
        registry: JobRegistry = Depends(get_registry),
    ) -> StartResponse:
        video_id = extract_video_id(req.url)
        result = provider.start(video_id)
        purged = registry.purge_expired()
        if purged:
            logger.info("Purged %d expired jobs", purged)
        if result.download_url:
            registry.put(Job(job_id=result.job_id, download_url=result.download_url, title=result.title))
        logger.info("Conversion started", extra={"video_id": video_id, "job_id": result.job_id})
        return StartResponse(pid=result.job_id, title=result.title, downloadUrl=result.download_url)

    @app.get("/api/status", responses=ERROR_RESPONSES)
    def status(
        job_id: Optional[str] = Query(None, alias="id"),
        provider: UpstreamProvider = Depends(get_provider),
        registry: JobRegistry = Depends(get_registry),
    ) -> dict:
        if not job_id:
            raise InvalidInput("id required")
        return provider.status(job_id, registry)

    @app.post("/api/stream", responses=ERROR_RESPONSES)
    def stream(req: StreamRequest, relay: StreamRelay = Depends(get_relay)) -> StreamingResponse:
        if not req.downloadUrl:
            raise InvalidInput("downloadUrl required")
        return relay.respond(req.downloadUrl, req.title)

    @app.get("/health")
    def health() -> dict:
        return {"status": "healthy", "service": "audio-relay", "jobs": len(app.state.registry)}

    # Landing page and assets; mounted last so the API routes take precedence.
    if settings.public_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(settings.public_dir), html=True), name="public")

    return app


def run() -> None:
    import uvicorn

    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
