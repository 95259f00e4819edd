"""Main entry point for the Rubber Duck voice debugger API."""
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional
import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from logger import setup_logging
from models.api import VoiceRequest, VoiceResponse, ErrorResponse, HealthResponse
from services.errors import ErrorKind, ValidationError
from services.llm_client import LLMClient
from services.orchestrator import VoicePipeline
from services.remote_call import RetryPolicy
from services.response_shaper import shape_success, shape_error, error_body, shape_http_error
from services.session_store import SessionStore, InMemorySessionStore, SessionSweeper
from services.stt_client import SpeechToTextClient
from services.tts_client import TextToSpeechClient

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def build_store() -> SessionStore:
    """Create the session store selected by SESSION_BACKEND."""
    if config.SESSION_BACKEND == "supabase":
        from services.supabase_session_store import SupabaseSessionStore
        return SupabaseSessionStore(
            session_timeout_ms=config.SESSION_TIMEOUT,
            max_turns=config.MAX_TURNS
        )
    return InMemorySessionStore(
        session_timeout_ms=config.SESSION_TIMEOUT,
        max_turns=config.MAX_TURNS
    )


def build_pipeline(store: SessionStore, http_client: httpx.AsyncClient) -> VoicePipeline:
    """Wire provider clients and policy from configuration."""
    return VoicePipeline(
        stt=SpeechToTextClient(http_client=http_client),
        llm=LLMClient(),
        tts=TextToSpeechClient(http_client=http_client),
        store=store,
        policy=RetryPolicy(delay_ms=config.RETRY_DELAY, timeout_ms=config.REQUEST_TIMEOUT)
    )


def create_app(
    pipeline: Optional[VoicePipeline] = None,
    store: Optional[SessionStore] = None,
    sweep_interval_ms: int = config.SWEEP_INTERVAL
) -> FastAPI:
    """
    Create the FastAPI application.

    Services passed in are used as-is; anything missing is built from the
    environment on startup.

    Args:
        pipeline: Pre-built voice pipeline (tests inject fakes here)
        store: Session store swept in the background
        sweep_interval_ms: Cadence of the idle-session sweep

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Rubber Duck Voice Debugger",
        description="Talk through a bug out loud; a rubber duck talks back",
        version="1.0.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.state.pipeline = pipeline
    app.state.store = store if store is not None else (pipeline.store if pipeline else None)
    app.state.sweeper = None
    app.state.started_at = time.time()
    app.state.http_client = None

    @app.on_event("startup")
    async def startup_event():
        """Build missing services and start the session sweeper."""
        if app.state.pipeline is None:
            setup_logging(config.LOG_LEVEL, json_output=config.LOG_FORMAT == "json")
            logger.info("Initializing Rubber Duck voice debugger services...")

            errors: List[str] = config.validate_environment()
            if errors:
                for error in errors:
                    logger.error(f"Invalid configuration: {error}")
                raise RuntimeError("Environment validation failed: " + "; ".join(errors))
            config.log_configuration()

            if app.state.store is None:
                app.state.store = build_store()
            app.state.http_client = httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT / 1000 + 1)
            app.state.pipeline = build_pipeline(app.state.store, app.state.http_client)
            logger.info("All services initialized successfully")

        if app.state.store is not None:
            app.state.sweeper = SessionSweeper(app.state.store, interval_ms=sweep_interval_ms)
            app.state.sweeper.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop background work and release HTTP connections."""
        if app.state.sweeper is not None:
            await app.state.sweeper.stop()
        if app.state.http_client is not None:
            await app.state.http_client.aclose()
        if app.state.pipeline is not None and isinstance(app.state.pipeline.llm, LLMClient):
            await app.state.pipeline.llm.aclose()

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"{request.method} {request.url.path} - {response.status_code} ({duration_ms}ms)",
            extra={"endpoint": request.url.path, "status_code": response.status_code, "duration_ms": duration_ms}
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies get the same shape as missing fields."""
        status_code, body = error_body(ErrorKind.VALIDATION, ValidationError().message)
        return JSONResponse(status_code=status_code, content=body.model_dump())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Routing errors (404, 405, ...) use the same error body as the pipeline."""
        body = shape_http_error(exc.status_code, request.method, request.url.path, str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=exc.headers)

    @app.get("/")
    async def root():
        """Liveness check."""
        return {"status": "ok", "message": "Rubber Duck Voice Debugger API"}

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc).isoformat(),
            uptime=round(time.time() - app.state.started_at, 3)
        )

    @app.post("/debug/voice", response_model=VoiceResponse, responses=ERROR_RESPONSES)
    async def debug_voice(body: VoiceRequest, request: Request):
        """
        Main endpoint for voice-based debugging.

        Runs the STT -> LLM -> TTS pipeline for one utterance and records
        the exchange in the user's session.

        Returns:
            VoiceResponse on success, ErrorResponse with matching status otherwise
        """
        logger.info("Request received", extra={"user_id": body.userId, "endpoint": "/debug/voice"})

        try:
            pipeline: Optional[VoicePipeline] = request.app.state.pipeline
            if pipeline is None:
                raise RuntimeError("Voice pipeline is not initialized")
            result = await pipeline.run(body.audio, body.userId)
        except Exception as e:
            status_code, error = shape_error(e)
            if status_code >= 500:
                logger.error(f"Error in /debug/voice: {e}", exc_info=True, extra={"user_id": body.userId})
            return JSONResponse(status_code=status_code, content=error.model_dump())

        if result.reasoning.is_fallback:
            logger.warning("Responded with fallback reply", extra={"user_id": body.userId})
        return shape_success(result)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    setup_logging(config.LOG_LEVEL, json_output=config.LOG_FORMAT == "json")
    logger.info(f"Starting Rubber Duck Voice Debugger API on port {config.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
