import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, AsyncIterator, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import AppConfig
from .errors import DataUnavailableError, PlantMonitorError, UpstreamServiceError, ValidationError
from .evaluator import classify_reading, evaluate, window_start
from .messages import PlantMessenger
from .models import (
    AutoMessage,
    AutoMessageResponse,
    GenerateMessageRequest,
    GenerateMessageResponse,
    PlantSettings,
    SensorReading,
    SensorReadingPayload,
    SettingsUpdate,
    StatusResponse,
    TweetRequest,
    TweetResponse,
)
from .scheduler import DailyMessageScheduler
from .social import SocialPoster, XPoster, fit_post_length
from .store import PlantStore
from .text_generation import OpenAITextGenerator, TextGenerator

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    store: Optional[PlantStore] = None,
    text_generator: Optional[TextGenerator] = None,
    poster: Optional[SocialPoster] = None,
) -> FastAPI:
    """Build the API. Collaborators default to the production implementations."""
    config = config or AppConfig.from_env()
    store = store or PlantStore.from_config(config)
    text_generator = text_generator or OpenAITextGenerator.from_config(config)
    poster = poster or XPoster.from_config(config)
    messenger = PlantMessenger(config, store, text_generator, poster)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        scheduler: Optional[DailyMessageScheduler] = None
        if config.scheduler_enabled:
            scheduler = DailyMessageScheduler(
                partial(messenger.run_scheduled_cycle, claimed_by="api"),
                hour=config.daily_message_hour,
                minute=config.daily_message_minute,
            )
            scheduler.start()
        app.state.scheduler = scheduler
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.stop()

    app = FastAPI(title="Plant Monitor API", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.messenger = messenger
    app.state.scheduler = None

    cors_origins = config.cors_origins
    logger.info("CORS Configuration - Parsed origins: %s", cors_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    def _error_response(request: Request, status_code: int, detail: Any) -> JSONResponse:
        # Ensure CORS headers are present on error responses too
        origin = request.headers.get("origin")
        if cors_origins == ["*"]:
            cors_origin = "*"
        elif origin and origin in cors_origins:
            cors_origin = origin
        else:
            cors_origin = cors_origins[0]

        return JSONResponse(
            status_code=status_code,
            content={"detail": detail},
            headers={
                "Access-Control-Allow-Origin": cors_origin,
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(request, exc.status_code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
        return _error_response(request, 400, "Invalid request: " + "; ".join(problems))

    @app.exception_handler(PlantMonitorError)
    async def plant_monitor_error_handler(request: Request, exc: PlantMonitorError) -> JSONResponse:
        if isinstance(exc, ValidationError):
            status_code = 400
        elif isinstance(exc, UpstreamServiceError):
            status_code = exc.http_status
        elif isinstance(exc, DataUnavailableError):
            status_code = 404
        else:
            # ConfigurationError and anything unexpected
            status_code = 500
        return _error_response(request, status_code, str(exc))

    @app.exception_handler(ClientError)
    @app.exception_handler(BotoCoreError)
    async def persistence_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Persistence error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return _error_response(request, 500, "Database operation failed")

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/sensors", response_model=List[SensorReading])
    def list_sensor_readings(
        limit: Optional[int] = Query(None, ge=1, le=5000),
        hours: Optional[int] = Query(None, ge=1, le=24 * 365, description="Only readings from the trailing N hours"),
    ) -> List[SensorReading]:
        since = None
        if hours is not None:
            since = datetime.now(timezone.utc) - timedelta(hours=hours)
        readings = store.list_readings(since=since, limit=limit)
        logger.info("Found %d sensor readings", len(readings))
        return readings

    @app.post("/api/sensors", response_model=SensorReading, status_code=201)
    def create_sensor_reading(payload: SensorReadingPayload) -> SensorReading:
        return store.insert_reading(payload, received_at=datetime.now(timezone.utc))

    @app.get("/api/sensors/latest", response_model=SensorReading)
    def latest_sensor_reading() -> SensorReading:
        reading = store.latest_reading()
        if reading is None:
            raise DataUnavailableError("No sensor readings have been recorded yet")
        return reading

    @app.get("/api/settings", response_model=PlantSettings)
    def get_settings() -> PlantSettings:
        return store.get_or_create_settings()

    @app.post("/api/settings", response_model=PlantSettings)
    def update_settings(update: SettingsUpdate) -> PlantSettings:
        return store.update_settings(update)

    @app.get("/api/status", response_model=StatusResponse)
    def plant_status() -> StatusResponse:
        now = datetime.now(timezone.utc)
        settings = store.get_or_create_settings()
        window = store.list_readings(since=window_start(now, config.evaluation_window_hours), until=now)
        latest = window[0] if window else store.latest_reading()
        return StatusResponse(
            reading=latest,
            statuses=classify_reading(latest, settings) if latest else {},
            evaluation=evaluate(window, settings),
            windowHours=config.evaluation_window_hours,
        )

    @app.post("/api/generate-message", response_model=GenerateMessageResponse)
    def generate_message(request: GenerateMessageRequest) -> GenerateMessageResponse:
        snapshot = SensorReading(
            id="snapshot",
            timestamp=datetime.now(timezone.utc),
            temperature=request.temperature,
            humidity=request.humidity,
            soilMoisture=request.soil_moisture,
            light=request.light,
        )
        text, evaluation = messenger.generate_on_demand(snapshot, request.settings, request.owner_handle)
        return GenerateMessageResponse(message=text, status=evaluation)

    @app.post("/api/tweet", response_model=TweetResponse)
    def post_tweet(request: TweetRequest) -> TweetResponse:
        text = fit_post_length(request.message)
        post_id = poster.post(text)
        return TweetResponse(success=True, tweetId=post_id, text=text)

    @app.get("/api/auto-message", response_model=AutoMessageResponse)
    def latest_auto_message() -> AutoMessageResponse:
        message = store.latest_auto_message()
        if message is None:
            return AutoMessageResponse()
        return AutoMessageResponse(**message.model_dump())

    @app.get("/api/auto-messages", response_model=List[AutoMessage])
    def list_auto_messages(limit: int = Query(10, ge=1, le=100)) -> List[AutoMessage]:
        return store.list_auto_messages(limit=limit)

    @app.get("/")
    def root() -> Dict[str, str]:
        return {"message": "Plant Monitor API is running"}

    return app
