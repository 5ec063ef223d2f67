"""
Google Cloud Text-to-Speech REST client.

Calls ``text:synthesize`` with a bearer token and returns raw MP3 bytes.
"""

import base64
import binascii
import logging
from typing import Optional

import httpx
import structlog
from tenacity import (
    retry,
    wait_exponential,
    retry_if_exception,
    before_sleep_log,
)

from pipeline.error_handler import VoiceoverGenerationError
from services.veo_client import is_transient_http_error, stop_after_configured_attempts

logger = structlog.get_logger(__name__)
retry_logger = logging.getLogger(__name__)

TTS_SYNTHESIZE_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
TTS_API_NOT_ENABLED = (
    "Text-to-Speech API not enabled. Visit "
    "https://console.cloud.google.com/apis/library/texttospeech.googleapis.com "
    "and enable it for your project."
)


class TextToSpeechClient:
    """
    Thin async wrapper around the Text-to-Speech REST API.

    Example:
        >>> client = TextToSpeechClient()
        >>> audio = await client.synthesize("Welcome back", "en-US-Neural2-C", token)
        >>> len(audio) > 0
        True
    """

    def __init__(
        self,
        url: str = TTS_SYNTHESIZE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    @retry(
        stop=stop_after_configured_attempts("TTS_MAX_RETRIES"),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception(is_transient_http_error),
        before_sleep=before_sleep_log(retry_logger, logging.INFO),
        reraise=True,
    )
    async def _post(self, payload: dict, access_token: str) -> dict:
        response = await self._http.post(
            self.url,
            json=payload,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        response.raise_for_status()
        return response.json()

    async def synthesize(
        self,
        text: str,
        voice_name: str,
        access_token: str,
        language_code: str = "en-US",
        speaking_rate: float = 1.0,
        pitch: float = 0.0,
    ) -> bytes:
        """
        Synthesize ``text`` to MP3.

        Raises:
            VoiceoverGenerationError: On any API, network or decoding failure
        """
        payload = {
            "input": {"text": text},
            "voice": {"languageCode": language_code, "name": voice_name},
            "audioConfig": {
                "audioEncoding": "MP3",
                "speakingRate": speaking_rate,
                "pitch": pitch,
            },
        }

        try:
            data = await self._post(payload, access_token)
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error("tts_request_rejected", status_code=status_code, body=e.response.text[:500])
            if status_code == 403:
                raise VoiceoverGenerationError(TTS_API_NOT_ENABLED, {"status_code": status_code})
            raise VoiceoverGenerationError(
                f"Text-to-speech synthesis failed: HTTP {status_code}",
                {"status_code": status_code},
            )
        except httpx.HTTPError as e:
            logger.error("tts_request_failed", error=str(e))
            raise VoiceoverGenerationError(f"Text-to-speech synthesis failed: {type(e).__name__}: {e}")
        except ValueError as e:
            raise VoiceoverGenerationError(f"Text-to-speech synthesis failed: invalid JSON ({e})")

        audio_content = data.get("audioContent") if isinstance(data, dict) else None
        if not audio_content:
            raise VoiceoverGenerationError("Text-to-speech synthesis failed: No audio content in response")

        try:
            audio = base64.b64decode(audio_content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise VoiceoverGenerationError(f"Text-to-speech synthesis failed: undecodable audio ({e})")

        logger.info("tts_synthesized", voice=voice_name, characters=len(text), audio_bytes=len(audio))
        return audio
