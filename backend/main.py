"""
FastAPI Backend for the Veo Video Generation Service
"""

import logging
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from pathlib import Path
import time

from config import settings

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if settings.DEBUG else logging.INFO),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=False,
)

logger = structlog.get_logger()

from pipeline.error_handler import PipelineError
from pipeline.job_registry import JobRegistry
from pipeline.orchestrator import create_video_job_orchestrator
from pipeline.status_reporter import StatusReporter
from pipeline.voiceover_generator import VoiceoverGenerator
from services.google_auth import GoogleAccessTokenProvider
from services.s3_storage import create_artifact_store
from services.tts_client import TextToSpeechClient
from services.veo_client import VeoClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events: build the job engine and tear it down"""
    logger.info("application_startup", message="FastAPI application starting up")

    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

    token_provider = GoogleAccessTokenProvider()
    try:
        token_provider.ensure_configured()
    except PipelineError as e:
        # The service still starts; generation requests answer 503 until configured
        logger.warning("google_credentials_missing", error=e.message)

    registry = JobRegistry()
    veo_client = VeoClient()
    tts_client = TextToSpeechClient()
    artifact_store = create_artifact_store()

    app.state.registry = registry
    app.state.orchestrator = create_video_job_orchestrator(
        registry=registry,
        provider=veo_client,
        token_provider=token_provider,
        artifact_store=artifact_store,
    )
    app.state.status_reporter = StatusReporter(registry, artifact_store)
    app.state.voiceover_generator = VoiceoverGenerator(tts_client, token_provider)

    logger.info(
        "job_engine_ready",
        veo_model=settings.VEO_MODEL_ID,
        durable_storage=artifact_store is not None,
    )

    yield

    await app.state.orchestrator.supervisor.shutdown()
    await veo_client.aclose()
    await tts_client.aclose()

    logger.info("application_shutdown", message="FastAPI application shutting down")


# Initialize FastAPI app
app = FastAPI(
    title="Veo Video Generation API",
    description="Backend API for generating scene videos and voice-overs",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG,
    swagger_ui_parameters={
        "persistAuthorization": True,
    }
)

# Configure OpenAPI schema to include API key authentication
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "ApiKeyAuth": {
            "type": "apiKey",
            "in": "header",
            "name": "X-API-Key",
            "description": "API key for authentication. Use the value from your .env file (API_KEY)"
        }
    }
    # Apply security globally to all endpoints
    openapi_schema["security"] = [{"ApiKeyAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API Authentication middleware - applies to all /api/ routes
@app.middleware("http")
async def api_authentication_middleware(request: Request, call_next):
    """Authenticate all /api/ routes with API key"""
    # Skip authentication for non-API routes
    if not request.url.path.startswith("/api/"):
        return await call_next(request)

    # Skip authentication for CORS preflight requests
    if request.method == "OPTIONS":
        return await call_next(request)

    import auth

    if not auth.configured_api_keys():
        return await call_next(request)

    # Get API key from header or query parameter
    api_key = request.headers.get(auth.API_KEY_HEADER) or request.query_params.get(auth.API_KEY_QUERY)

    if not api_key:
        return JSONResponse(
            status_code=401,
            content={
                "error": "Unauthorized",
                "message": "API key missing. Provide X-API-Key header or ?api_key=YOUR_KEY",
                "detail": "Authentication required for /api/ endpoints"
            },
            headers={"WWW-Authenticate": "ApiKey"}
        )

    if not auth.check_api_key(api_key):
        return JSONResponse(
            status_code=401,
            content={
                "error": "Unauthorized",
                "message": "Invalid API key",
                "detail": "The provided API key is not valid"
            },
            headers={"WWW-Authenticate": "ApiKey"}
        )

    return await call_next(request)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    start_time = time.time()

    logger.info(
        "request_started",
        method=request.method,
        path=request.url.path,
        client_host=request.client.host if request.client else None
    )

    try:
        response = await call_next(request)
        process_time = time.time() - start_time

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time=f"{process_time:.3f}s"
        )

        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(
            "request_failed",
            method=request.method,
            path=request.url.path,
            error=str(e),
            process_time=f"{process_time:.3f}s"
        )
        raise


@app.exception_handler(PipelineError)
async def pipeline_exception_handler(request: Request, exc: PipelineError):
    """Pipeline errors that escaped a route carry their own status code"""
    exc.log_error(path=request.url.path, method=request.method)
    body = exc.to_dict()
    return JSONResponse(
        status_code=exc.http_status,
        content={
            "error": body["error_code"],
            "message": body["user_message"],
            "details": body["details"] if app.debug else None
        }
    )


# Global error handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions"""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
            "details": str(exc) if app.debug else None
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint

    Returns:
        dict: Health status of the API
    """
    return {
        "status": "healthy",
        "service": "veo-video-generator",
        "version": "1.0.0"
    }


# Include routers
from routers import videos

app.include_router(videos.router)

# Local artifacts (videos, placeholders, voice-overs) are served from here
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Veo Video Generation API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "generate_video": "/api/videos/generate-video",
            "job_status": "/api/videos/jobs/{job_id}",
            "job_video": "/api/videos/jobs/{job_id}/video",
            "generate_voiceover": "/api/videos/generate-voiceover",
            "uploads": "/uploads/{path}"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
