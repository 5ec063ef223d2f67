"""
Video generation job pipeline package.

This package contains the core components of the job engine:
- Job registry and data models
- Orchestrator driving each job to a terminal state
- Status reporting with fresh signed URLs
- Artifact extraction and the placeholder fallback
- Error handling shared by the whole service
"""

__version__ = "0.1.0"

from .error_handler import PipelineError, ErrorCode, describe_failure

__all__ = [
    "PipelineError",
    "ErrorCode",
    "describe_failure",
]
