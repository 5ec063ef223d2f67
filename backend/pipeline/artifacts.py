"""
Artifact extraction and placeholder handling for generated videos.

The provider's terminal result can carry the video in one of two shapes:

- ``{"videos": [{"bytesBase64Encoded": ...}]}`` (current Veo format)
- ``{"predictions": [{"video" | "bytesBase64Encoded": ...}]}`` (legacy format)

Results are decoded into one of the variants below and checked in that
order; the first entry with decodable, non-empty content wins.
"""

import base64
import binascii
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import aiofiles
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pipeline.error_handler import ExtractionError

logger = structlog.get_logger(__name__)

ARTIFACT_SUFFIX = ".mp4"

# Minimal playable MP4 (short black H.264 clip) written when generation fails
PLACEHOLDER_MP4_BASE64 = (
    "AAAAIGZ0eXBpc29tAAACAGlzb21pc28yYXZjMW1wNDEAAAAIZnJlZQAACKBtZGF0AAAC"
    "rgYF//+q3EXpvebZSLeWLNgg2SPu73gyNjQgLSBjb3JlIDE0OCByMjc0MyA1Yzc5ZGMy"
    "IC0gSC4yNjQvTVBFRy00IEFWQyBjb2RlYyAtIENvcHlsZWZ0IDIwMDMtMjAxNiAtIGh0"
    "dHA6Ly93d3cudmlkZW9sYW4ub3JnL3gyNjQuaHRtbCAtIG9wdGlvbnM6IGNhYmFjPTEg"
    "cmVmPTMgZGVibG9jaz0xOjA6MCBhbmFseXNlPTB4MzoweDExMyBtZT1oZXggc3VibWU9"
    "NyBwc3k9MSBwc3lfcmQ9MS4wMDowLjAwIG1peGVkX3JlZj0xIG1lX3JhbmdlPTE2IGNo"
    "cm9tYV9tZT0xIHRyZWxsaXM9MSA4eDhkY3Q9MSBjcW09MCBkZWFkem9uZT0yMSwxMSBm"
    "YXN0X3Bza2lwPTEgY2hyb21hX3FwX29mZnNldD0tMiB0aHJlYWRzPTYgbG9va2FoZWFk"
    "X3RocmVhZHM9MSBzbGljZWRfdGhyZWFkcz0wIG5yPTAgZGVjaW1hdGU9MSBpbnRlcmxh"
    "Y2VkPTAgYmx1cmF5X2NvbXBhdD0wIGNvbnN0cmFpbmVkX2ludHJhPTAgYmZyYW1lcz0z"
    "IGJfcHlyYW1pZD0yIGJfYWRhcHQ9MSBiX2JpYXM9MCBkaXJlY3Q9MSB3ZWlnaHRiPTEg"
    "b3Blbl9nb3A9MCB3ZWlnaHRwPTIga2V5aW50PTI1MCBrZXlpbnRfbWluPTI1IHNjZW5l"
    "Y3V0PTQwIGludHJhX3JlZnJlc2g9MCByY19sb29rYWhlYWQ9NDAgcmM9Y3JmIG1idHJl"
    "ZT0xIGNyZj0yMy4wIHFjb21wPTAuNjAgcXBtaW49MCBxcG1heD02OSBxcHN0ZXA9NCBp"
    "cF9yYXRpbz0xLjQwIGFxPTE6MS4wMACAAAAAD2WIhAA3//728P4FNjuZQQAAAu5tb292"
    "AAAAbG12aGQAAAAAAAAAAAAAAAAAAAPoAAAAZAABAAABAAAAAAAAAAAAAAAAAQAAAAAA"
    "AAAAAAAAAAAAAQAAAAAAAAAAAAAAAAAAQAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA"
    "AAAAAAIAAAIddHJhawAAAFx0a2hkAAAAAwAAAAAAAAAAAAAAAQAAAAAAAABkAAAAAAAA"
    "AAAAAAAAAAAAAAABAAAAAAAAAAAAAAAAAAEAAAAAAAAAAAAAAAAAAEAAAAACWAAAAZAA"
    "AAAAACRlZHRzAAAAHGVsc3QAAAAAAAAAAQAAAGQAAAAAAAEAAAAAAeFtZGlhAAAAIG1k"
    "aGQAAAAAAAAAAAAAAAAAADwAAAAEAFXEAAAAAAAtaGRscgAAAAAAAAAAdmlkZQAAAAAA"
    "AAAAAAAAAFZpZGVvSGFuZGxlcgAAAAGMbWluZgAAABR2bWhkAAAAAQAAAAAAAAAAAAAA"
    "JGRpbmYAAAAcZHJlZgAAAAAAAAABAAAADHVybCAAAAABAAABTHN0YmwAAAC0c3RzZAAA"
    "AAAAAAABAAAApGF2YzEAAAAAAAAAAQAAAAAAAAAAAAAAAAAAAAADIAGQAEgAAABIAAAA"
    "AAAAAAEAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAY//8AAAAyYXZjQwFk"
    "AAr/4QAYZ2QACqzZQDgQAAAAAwAEAAADAPA8WLZYAQAGaOvjyyLAAAAAGHN0dHMAAAAA"
    "AAAAAQAAAAEAAAQAAAAAFHN0c3MAAAAAAAAAAQAAAAEAAAAYY3R0cwAAAAAAAAABAAAA"
    "AgAABAAAAAAcc3RzYwAAAAAAAAABAAAAAQAAAAEAAAABAAAAFHN0c3oAAAAAAAACOQAA"
    "AAEAAAAUc3RjbwAAAAAAAAABAAAAMAAAAGJ1ZHRhAAAAWm1ldGEAAAAAAAAAIWhkbHIA"
    "AAAAAAAAAG1kaXJhcHBsAAAAAAAAAAAAAAAALWlsc3QAAAAlqXRvbwAAAB1kYXRhAAAA"
    "AQAAAABMYXZmNTYuNDAuMTAx"
)


class EncodedVideo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    bytes_base64_encoded: Optional[str] = Field(None, alias="bytesBase64Encoded")
    mime_type: Optional[str] = Field(None, alias="mimeType")


class LegacyPrediction(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    video: Optional[str] = None
    bytes_base64_encoded: Optional[str] = Field(None, alias="bytesBase64Encoded")


class VideosResult(BaseModel):
    kind: Literal["videos"] = "videos"
    videos: List[EncodedVideo]


class PredictionsResult(BaseModel):
    kind: Literal["predictions"] = "predictions"
    predictions: List[LegacyPrediction]


class UnrecognizedResult(BaseModel):
    kind: Literal["unrecognized"] = "unrecognized"
    keys: List[str] = Field(default_factory=list)


GenerationResult = Union[VideosResult, PredictionsResult, UnrecognizedResult]


def decode_generation_result(response: Optional[Dict[str, Any]]) -> List[GenerationResult]:
    """
    Decode a terminal provider result into its known variants.

    Returns the recognized variants in precedence order, or a single
    UnrecognizedResult when neither shape is present (or both are malformed).
    """
    if not isinstance(response, dict):
        return [UnrecognizedResult()]

    variants: List[GenerationResult] = []
    if response.get("videos"):
        try:
            variants.append(VideosResult(videos=response["videos"]))
        except ValidationError:
            logger.warning("videos_shape_invalid")
    if response.get("predictions"):
        try:
            variants.append(PredictionsResult(predictions=response["predictions"]))
        except ValidationError:
            logger.warning("predictions_shape_invalid")

    return variants or [UnrecognizedResult(keys=sorted(response.keys()))]


def _decode_base64(value: Optional[str]) -> Optional[bytes]:
    if not isinstance(value, str) or not value:
        return None
    try:
        # MIME-wrapped payloads carry line breaks
        data = base64.b64decode("".join(value.split()), validate=True)
    except (binascii.Error, ValueError):
        return None
    return data or None


def _candidate_payloads(variant: GenerationResult) -> List[Optional[str]]:
    if isinstance(variant, VideosResult):
        return [video.bytes_base64_encoded for video in variant.videos]
    if isinstance(variant, PredictionsResult):
        return [p.video or p.bytes_base64_encoded for p in variant.predictions]
    return []


def extract_video_bytes(response: Optional[Dict[str, Any]]) -> bytes:
    """
    Pull the generated video out of a terminal provider result.

    Raises:
        ExtractionError: If no recognized shape holds decodable, non-empty content
    """
    variants = decode_generation_result(response)

    for variant in variants:
        for payload in _candidate_payloads(variant):
            data = _decode_base64(payload)
            if data:
                logger.info("video_content_extracted", shape=variant.kind, size_bytes=len(data))
                return data

    kinds = [variant.kind for variant in variants]
    details: Dict[str, Any] = {"shapes": kinds}
    if isinstance(variants[0], UnrecognizedResult):
        details["keys"] = variants[0].keys
    raise ExtractionError("No video content in response", details)


def artifact_path(directory: Path, job_id: str) -> Path:
    """Where a job's artifact lives; the same path for real and placeholder videos."""
    return Path(directory) / f"{job_id}{ARTIFACT_SUFFIX}"


async def write_artifact(directory: Path, job_id: str, data: bytes) -> Path:
    """Write artifact bytes for a job, creating the directory if absent."""
    path = artifact_path(directory, job_id)
    path.parent.mkdir(parents=True, exist_ok=True)

    async with aiofiles.open(path, "wb") as f:
        await f.write(data)

    logger.info("artifact_saved", job_id=job_id, path=str(path), size_bytes=len(data))
    return path


def placeholder_bytes() -> bytes:
    return base64.b64decode(PLACEHOLDER_MP4_BASE64)


async def write_placeholder(directory: Path, job_id: str, prompt: str) -> Path:
    """Write the minimal MP4 in place of a failed generation."""
    path = await write_artifact(directory, job_id, placeholder_bytes())
    logger.info("placeholder_video_created", job_id=job_id, prompt=prompt[:80])
    return path
