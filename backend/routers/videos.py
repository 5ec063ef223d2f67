"""
Video generation endpoint router

Handles:
- POST /api/videos/generate-video: start a background generation job
- GET /api/videos/jobs/{job_id}: job status and progress
- GET /api/videos/jobs/{job_id}/video: where to fetch a finished video
- POST /api/videos/generate-voiceover: synthesize a scene voice-over
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Request

from pipeline.error_handler import PipelineError, http_status_for
from pipeline.orchestrator import VideoJobOrchestrator
from pipeline.status_reporter import StatusReporter
from pipeline.voiceover_generator import VoiceoverGenerator
from schemas import (
    ErrorResponse,
    JobStatusData,
    JobStatusResponse,
    VideoGenerateRequest,
    VideoGenerateResponse,
    VideoJobAccepted,
    VideoLocationData,
    VideoLocationResponse,
    VoiceoverData,
    VoiceoverRequest,
    VoiceoverResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/videos", tags=["Video Generation"])


def get_orchestrator(request: Request) -> VideoJobOrchestrator:
    return request.app.state.orchestrator


def get_status_reporter(request: Request) -> StatusReporter:
    return request.app.state.status_reporter


def get_voiceover_generator(request: Request) -> VoiceoverGenerator:
    return request.app.state.voiceover_generator


def pipeline_http_exception(error: PipelineError) -> HTTPException:
    """Translate a pipeline error into the API's error body."""
    return HTTPException(
        status_code=http_status_for(error),
        detail={
            "error": error.code.value,
            "message": error.message,
            "details": error.details or None,
        },
    )


@router.post(
    "/generate-video",
    response_model=VideoGenerateResponse,
    status_code=202,
    responses={
        202: {"description": "Job accepted"},
        400: {"model": ErrorResponse, "description": "Missing prompt and scene id"},
        503: {"model": ErrorResponse, "description": "Video generation not configured"},
    },
    summary="Generate Video",
    description="Start a background video generation job and return its id immediately"
)
async def generate_video(
    request: VideoGenerateRequest,
    orchestrator: VideoJobOrchestrator = Depends(get_orchestrator),
):
    """
    Start a video generation job.

    The job is driven in the background; poll `GET /api/videos/jobs/{job_id}`
    for progress. A job always ends `completed` with a playable video: when
    generation fails, `error` explains why and a placeholder video is served.
    """
    prompt = request.resolved_prompt()
    if not prompt:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "INVALID_INPUT",
                "message": "Prompt or scene ID is required",
                "details": None,
            },
        )

    try:
        submitted = await orchestrator.submit_job(prompt, request.to_options())
    except PipelineError as e:
        e.log_error(scene_id=request.scene_id)
        raise pipeline_http_exception(e)

    logger.info("video_generation_requested", job_id=submitted.job_id, scene_id=request.scene_id)

    return VideoGenerateResponse(
        message="Video generation started",
        data=VideoJobAccepted(
            job_id=submitted.job_id,
            status=submitted.status,
            scene_id=request.scene_id,
            estimated_time=submitted.estimated_time,
        ),
    )


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
    summary="Get Job Status",
)
async def get_job_status(
    job_id: str = Path(..., description="Job identifier returned by generate-video"),
    reporter: StatusReporter = Depends(get_status_reporter),
):
    """
    Status, progress and remaining-time estimate of a job.

    When the video was uploaded to durable storage, `artifact_url` is a
    freshly signed URL; otherwise `local_path` is served under `/uploads`.
    """
    try:
        view = await reporter.get_status(job_id)
    except PipelineError as e:
        logger.warning("job_status_lookup_failed", job_id=job_id, error=e.message)
        raise pipeline_http_exception(e)

    return JobStatusResponse(message="Job status retrieved", data=JobStatusData(job=view))


@router.get(
    "/jobs/{job_id}/video",
    response_model=VideoLocationResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
        409: {"model": ErrorResponse, "description": "Video not ready yet"},
    },
    summary="Get Video Location",
)
async def get_job_video(
    job_id: str = Path(..., description="Job identifier returned by generate-video"),
    reporter: StatusReporter = Depends(get_status_reporter),
):
    try:
        location = await reporter.get_artifact_location(job_id)
    except PipelineError as e:
        logger.warning("job_video_lookup_failed", job_id=job_id, error=e.message)
        raise pipeline_http_exception(e)

    return VideoLocationResponse(
        message="Video location retrieved",
        data=VideoLocationData(job_id=job_id, location=location),
    )


@router.post(
    "/generate-voiceover",
    response_model=VoiceoverResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing text and scene id"},
        502: {"model": ErrorResponse, "description": "Text-to-speech failed"},
        503: {"model": ErrorResponse, "description": "Text-to-speech not configured"},
    },
    summary="Generate Voice-over",
)
async def generate_voiceover(
    request: VoiceoverRequest,
    generator: VoiceoverGenerator = Depends(get_voiceover_generator),
):
    """
    Synthesize a voice-over MP3, served under `/uploads/audio`.
    """
    if not request.scene_id and not request.text:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "INVALID_INPUT",
                "message": "Scene ID or text required",
                "details": None,
            },
        )

    try:
        result = await generator.generate_voiceover(
            text=request.text,
            voice_type=request.voice_type,
            scene_id=request.scene_id,
        )
    except PipelineError as e:
        e.log_error(scene_id=request.scene_id)
        raise pipeline_http_exception(e)

    return VoiceoverResponse(
        message="Voice-over generated successfully",
        data=VoiceoverData(audio_url=result.audio_url, scene_id=request.scene_id),
    )
