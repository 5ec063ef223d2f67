"""
Voiceover Generator

Generates scene voice-overs with Google Cloud Text-to-Speech and saves them
under the uploads directory, where they are served at ``/uploads/audio``.

Features:
- Voice type mapping (male/female, professional/casual)
- Sample text when none is given
- Token handling shared with video generation
"""

import re
import time
from pathlib import Path
from typing import Optional

import aiofiles
import structlog
from pydantic import BaseModel

from config import settings
from services.google_auth import AccessTokenProvider
from services.tts_client import TextToSpeechClient

logger = structlog.get_logger(__name__)

SAMPLE_VOICEOVER_TEXT = "This is a sample voice-over for your video scene."


class VoiceoverResult(BaseModel):
    audio_url: str
    file_path: str
    voice: str
    scene_id: Optional[str] = None


class VoiceoverGenerator:
    """
    Generate voice-overs for video scenes.

    Voice Type Mapping:
    - male-professional: en-US-Neural2-A
    - female-professional: en-US-Neural2-C
    - male-casual: en-US-Neural2-E
    - female-casual: en-US-Neural2-F

    Example:
        >>> generator = VoiceoverGenerator(TextToSpeechClient(), GoogleAccessTokenProvider())
        >>> result = await generator.generate_voiceover(
        ...     text="Introducing the future of innovation",
        ...     voice_type="female-casual",
        ...     scene_id="scene-3",
        ... )
        >>> result.audio_url
        '/uploads/audio/voiceover_scene-3.mp3'
    """

    VOICE_MAP = {
        "male-professional": "en-US-Neural2-A",
        "female-professional": "en-US-Neural2-C",
        "male-casual": "en-US-Neural2-E",
        "female-casual": "en-US-Neural2-F",
    }

    def __init__(
        self,
        tts_client: TextToSpeechClient,
        token_provider: AccessTokenProvider,
        upload_dir: Optional[str] = None,
        language_code: Optional[str] = None,
        default_voice: Optional[str] = None,
    ):
        self.tts_client = tts_client
        self.token_provider = token_provider
        self.audio_dir = Path(upload_dir or settings.UPLOAD_DIR) / "audio"
        self.language_code = language_code or settings.TTS_LANGUAGE_CODE
        self.default_voice = default_voice or settings.TTS_DEFAULT_VOICE

    def get_voice(self, voice_type: Optional[str]) -> str:
        """Map a voice type to a TTS voice name; unknown types get the default voice."""
        return self.VOICE_MAP.get((voice_type or "").lower(), self.default_voice)

    async def generate_voiceover(
        self,
        text: Optional[str] = None,
        voice_type: Optional[str] = None,
        scene_id: Optional[str] = None,
    ) -> VoiceoverResult:
        """
        Synthesize speech and save it as MP3.

        Args:
            text: Text to speak (a sample sentence when empty)
            voice_type: Voice type key, see VOICE_MAP
            scene_id: Used in the filename; a millisecond timestamp otherwise

        Raises:
            ConfigurationError: If credentials are missing
            AuthenticationError: If no access token could be obtained
            VoiceoverGenerationError: If synthesis fails
        """
        self.token_provider.ensure_configured()

        voice = self.get_voice(voice_type)
        text = text or SAMPLE_VOICEOVER_TEXT
        logger.info("voiceover_generation_started", voice=voice, scene_id=scene_id, characters=len(text))

        token = await self.token_provider.get_access_token()
        audio = await self.tts_client.synthesize(
            text,
            voice,
            token,
            language_code=self.language_code,
        )

        # scene ids come from the client; keep them inside the audio directory
        stem = re.sub(r"[^A-Za-z0-9_-]", "_", scene_id) if scene_id else str(int(time.time() * 1000))
        filename = f"voiceover_{stem}.mp3"
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        path = self.audio_dir / filename
        async with aiofiles.open(path, "wb") as f:
            await f.write(audio)

        logger.info("voiceover_saved", path=str(path), audio_bytes=len(audio))

        return VoiceoverResult(
            audio_url=f"/uploads/audio/{filename}",
            file_path=str(path),
            voice=voice,
            scene_id=scene_id,
        )
