"""
Pydantic schemas for request/response validation
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any

from pipeline.models import CaptionSettings, GenerationOptions, JobStatus, JobStatusView


class VideoGenerateRequest(BaseModel):
    """Request model for video generation. Either prompt or scene_id is required."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "prompt": "A drone shot over a foggy pine forest at sunrise",
                "project_id": "project-42",
                "quality": "standard",
                "duration": 8,
                "captions": {"enabled": True, "type": "bold", "fontSize": "large"}
            }
        }
    )

    prompt: Optional[str] = Field(None, description="Text prompt describing the video")
    scene_id: Optional[str] = Field(None, alias="sceneId", description="Scene the video belongs to")
    project_id: Optional[str] = Field(None, alias="projectId", description="Project namespace for storage")
    quality: str = Field("standard", description="Quality tier: fast, standard or high")
    resolution: str = Field("1080p", description="Output resolution")
    aspect_ratio: str = Field("16:9", alias="aspectRatio", description="Output aspect ratio")
    duration: int = Field(5, ge=1, le=60, description="Video duration in seconds")
    style: Optional[str] = Field(None, description="Visual style hint")
    captions: Optional[CaptionSettings] = None

    def resolved_prompt(self) -> Optional[str]:
        """The prompt to generate from, falling back to a scene-derived one."""
        if self.prompt and self.prompt.strip():
            return self.prompt.strip()
        if self.scene_id:
            return f"Video scene {self.scene_id}"
        return None

    def to_options(self) -> GenerationOptions:
        return GenerationOptions(
            duration=self.duration,
            quality=self.quality,
            resolution=self.resolution,
            aspect_ratio=self.aspect_ratio,
            style=self.style,
            captions=self.captions,
            project_id=self.project_id,
        )


class VideoJobAccepted(BaseModel):
    """Data returned when a generation job is accepted"""
    job_id: str = Field(..., description="Unique job identifier")
    status: JobStatus = Field(..., description="Initial job status")
    scene_id: Optional[str] = None
    estimated_time: int = Field(..., description="Estimated processing time in seconds")


class VideoGenerateResponse(BaseModel):
    """Response model for video generation endpoint"""
    message: str
    data: VideoJobAccepted

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "Video generation started",
                "data": {
                    "job_id": "job_1737072000000_k3j9x0a2q",
                    "status": "queued",
                    "scene_id": None,
                    "estimated_time": 60
                }
            }
        }
    )


class JobStatusData(BaseModel):
    job: JobStatusView


class JobStatusResponse(BaseModel):
    """Response model for job status endpoint"""
    message: str
    data: JobStatusData


class VideoLocationData(BaseModel):
    job_id: str
    location: str = Field(..., description="Signed URL, or local path when durable storage is unavailable")


class VideoLocationResponse(BaseModel):
    message: str
    data: VideoLocationData


class VoiceoverRequest(BaseModel):
    """Request model for voice-over generation. Either text or scene_id is required."""
    model_config = ConfigDict(populate_by_name=True)

    scene_id: Optional[str] = Field(None, alias="sceneId")
    text: Optional[str] = Field(None, max_length=5000, description="Text to speak")
    voice_type: Optional[str] = Field(
        None,
        alias="voiceType",
        description="male-professional, female-professional, male-casual or female-casual"
    )


class VoiceoverData(BaseModel):
    audio_url: str
    scene_id: Optional[str] = None


class VoiceoverResponse(BaseModel):
    message: str
    data: VoiceoverData


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
