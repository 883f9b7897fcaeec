from contextlib import asynccontextmanager
from typing import Any, Dict

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Internal Imports
from connections.inference_client import ChatCompletionsVideoClient
from core.config import Settings, settings
from core.exceptions import ValidationException, VideoServiceError
from core.logging import configure_logging
from core.telemetry import setup_telemetry
from domain.interfaces import VideoInferenceClient
from domain.models import ErrorResponse, GenerateResponse, ServiceInfo
from handlers.generation_handler import GenerationHandler

# 1. Configure Logging and Tracing
configure_logging(json_logs=(settings.ENV == "production"), log_level=settings.LOG_LEVEL)
setup_telemetry()
logger = structlog.get_logger()


def create_app(app_settings: Settings = settings, client: VideoInferenceClient | None = None) -> FastAPI:
    """
    Builds the HTTP surface. The inference client is constructed from
    settings unless one is injected (tests pass a client over a mock transport).
    """

    # 2. Lifespan (Startup/Shutdown)
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("startup_initiated", env=app_settings.ENV)

        inference_client = client or ChatCompletionsVideoClient(app_settings)
        app.state.generation_handler = GenerationHandler(inference_client, app_settings)

        yield

        logger.info("shutdown_initiated")

    app = FastAPI(title=app_settings.APP_NAME, lifespan=lifespan, version=app_settings.APP_VERSION)

    # 3. Exception Handlers
    @app.exception_handler(VideoServiceError)
    async def video_service_error_handler(request: Request, exc: VideoServiceError):
        logger.warning(
            "request_failed",
            error_type=exc.__class__.__name__,
            status=exc.status_code,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("unhandled_exception", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Internal server error during video generation").model_dump(),
        )

    # 4. REST Endpoints
    @app.post("/api/generate-video")
    async def generate_video_endpoint(request: Request) -> Dict[str, Any]:
        """
        Generate a video from a text prompt. Single upstream round trip.
        """
        handler: GenerationHandler = request.app.state.generation_handler
        try:
            raw_input = await request.json()
        except ValueError as e:
            raise ValidationException("Valid prompt is required", e) from e

        video = await handler.handle(raw_input)
        return GenerateResponse(video=video).to_json_dict()

    @app.get("/api/generate-video", response_model=ServiceInfo)
    async def service_info_endpoint(request: Request) -> ServiceInfo:
        handler: GenerationHandler = request.app.state.generation_handler
        return handler.service_info()

    @app.get("/health")
    def health_check():
        return {"status": "ok", "env": app_settings.ENV}

    return app


app = create_app()
