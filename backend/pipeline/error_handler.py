"""
Error handling for the video generation job pipeline.

Provides structured error handling with:
- Categorized error codes for every failure the job engine can hit
- User-friendly error messages
- HTTP status mapping for the API layer
- Detailed error context for debugging
"""

from enum import Enum
from typing import Optional, Dict, Any

import structlog

logger = structlog.get_logger(__name__)


class ErrorCode(Enum):
    """
    Enumeration of all possible error codes in the job pipeline.

    Organized by category:
    - Request Errors: surfaced synchronously to the caller
    - Generation Errors: recorded on the job, resolved by fallback
    - Storage Errors: never fatal, degrade to the local artifact
    """

    # Request Errors (surfaced to caller)
    INVALID_INPUT = "INVALID_INPUT"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    JOB_NOT_READY = "JOB_NOT_READY"

    # Generation Errors (recorded on the job, trigger fallback)
    PROVIDER_ERROR = "PROVIDER_ERROR"
    GENERATION_TIMEOUT = "GENERATION_TIMEOUT"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    VOICE_GENERATION_FAILED = "VOICE_GENERATION_FAILED"

    # System Errors
    STORAGE_ERROR = "STORAGE_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"


# Error codes that never reach the caller of the job engine
_RECOVERED_CODES = {
    ErrorCode.PROVIDER_ERROR,
    ErrorCode.GENERATION_TIMEOUT,
    ErrorCode.EXTRACTION_FAILED,
    ErrorCode.STORAGE_ERROR,
}

_HTTP_STATUS = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.JOB_NOT_FOUND: 404,
    ErrorCode.JOB_NOT_READY: 409,
    ErrorCode.CONFIGURATION_ERROR: 503,
    ErrorCode.AUTHENTICATION_ERROR: 502,
    ErrorCode.PROVIDER_ERROR: 502,
    ErrorCode.VOICE_GENERATION_FAILED: 502,
    ErrorCode.GENERATION_TIMEOUT: 504,
}


class PipelineError(Exception):
    """
    Base exception for job pipeline errors.

    Provides structured error information including:
    - Error code for categorization
    - Detailed message for logging
    - Context dictionary for debugging
    - User-friendly message for API responses

    Example:
        >>> raise PipelineError(
        ...     "Job not found",
        ...     {"job_id": "job_123"},
        ...     code=ErrorCode.JOB_NOT_FOUND,
        ... )
    """

    default_code = ErrorCode.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        code: Optional[ErrorCode] = None,
    ):
        """
        Initialize pipeline error.

        Args:
            message: Detailed error message for logging
            details: Additional context (job id, status code, etc.)
            user_message: Optional override for user-friendly message
            code: Error code, defaults to the subclass's code
        """
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        self._user_message = user_message
        super().__init__(self.message)

    @property
    def recovered_in_background(self) -> bool:
        """True when the job engine resolves this error instead of raising it."""
        return self.code in _RECOVERED_CODES

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for API responses.

        Example:
            >>> JobNotFoundError("job_1").to_dict()["error_code"]
            'JOB_NOT_FOUND'
        """
        return {
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
            "user_message": self.get_user_friendly_message()
        }

    def get_user_friendly_message(self) -> str:
        """
        Returns user-friendly error message.

        If a custom user message was provided, returns that.
        Otherwise, returns a predefined friendly message based on error code.
        """
        if self._user_message:
            return self._user_message

        friendly_messages = {
            ErrorCode.INVALID_INPUT: "Please check your input and try again.",
            ErrorCode.CONFIGURATION_ERROR: "Video generation is not configured on this server. Please contact support.",
            ErrorCode.JOB_NOT_FOUND: "Job not found. It may have expired.",
            ErrorCode.JOB_NOT_READY: "Video is not ready yet. Please check back shortly.",
            ErrorCode.PROVIDER_ERROR: "Video generation service temporarily unavailable. Please try again.",
            ErrorCode.GENERATION_TIMEOUT: "Video generation took too long. Please try again.",
            ErrorCode.EXTRACTION_FAILED: "The generated video could not be read. Please try again.",
            ErrorCode.VOICE_GENERATION_FAILED: "Failed to generate voice-over. Please try again.",
            ErrorCode.STORAGE_ERROR: "Storage error occurred. Please try again or contact support.",
            ErrorCode.AUTHENTICATION_ERROR: "Could not authenticate with the generation service.",
        }

        return friendly_messages.get(
            self.code,
            "An error occurred. Please try again or contact support."
        )

    def log_error(self, **context) -> None:
        """
        Log error with appropriate level and context.

        Errors the engine recovers from are warnings, everything else is an error.
        """
        log = logger.warning if self.recovered_in_background else logger.error
        log(
            "pipeline_error",
            error_code=self.code.value,
            message=self.message,
            details=self.details,
            **context
        )

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ConfigurationError(PipelineError):
    """Required provider credentials or settings are missing."""

    default_code = ErrorCode.CONFIGURATION_ERROR


class AuthenticationError(PipelineError):
    """An access token could not be obtained."""

    default_code = ErrorCode.AUTHENTICATION_ERROR


class ProviderError(PipelineError):
    """
    The generation provider reported a failure.

    Convenience subclass that records the HTTP status code when there is one.
    """

    default_code = ErrorCode.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if status_code:
            error_details["status_code"] = status_code
        super().__init__(message, error_details)


class GenerationTimeoutError(PipelineError):
    """Polling bound exceeded without a terminal result."""

    default_code = ErrorCode.GENERATION_TIMEOUT


class ExtractionError(PipelineError):
    """Terminal result carried no artifact content in any known shape."""

    default_code = ErrorCode.EXTRACTION_FAILED


class StorageError(PipelineError):
    """Durable upload or signed-URL generation failed."""

    default_code = ErrorCode.STORAGE_ERROR


class JobNotFoundError(PipelineError):
    """Status or location requested for an unknown job id."""

    default_code = ErrorCode.JOB_NOT_FOUND

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}", {"job_id": job_id})
        self.job_id = job_id


class JobNotReadyError(PipelineError):
    """Artifact location requested before the job completed."""

    default_code = ErrorCode.JOB_NOT_READY

    def __init__(self, job_id: str, status: str):
        super().__init__(
            f"Video not ready yet for job {job_id} (status: {status})",
            {"job_id": job_id, "status": status}
        )
        self.job_id = job_id


class VoiceoverGenerationError(PipelineError):
    """Text-to-speech synthesis failed."""

    default_code = ErrorCode.VOICE_GENERATION_FAILED


def describe_failure(error: BaseException) -> str:
    """
    Human-readable failure reason stored on a job.

    Pipeline errors already carry a clean message; anything else gets its
    exception type prefixed so network faults stay recognizable.

    Example:
        >>> describe_failure(GenerationTimeoutError("operation took too long"))
        'operation took too long'
        >>> describe_failure(ConnectionError("reset by peer"))
        'ConnectionError: reset by peer'
    """
    if isinstance(error, PipelineError):
        return error.message
    message = str(error)
    if not message:
        return type(error).__name__
    return f"{type(error).__name__}: {message}"


def http_status_for(error: BaseException) -> int:
    """HTTP status code for an error reaching the API layer."""
    if isinstance(error, PipelineError):
        return error.http_status
    return 500
