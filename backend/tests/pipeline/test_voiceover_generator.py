"""
Tests for VoiceoverGenerator

Tests cover:
- Voice selection
- File naming and the served URL
- Sample text fallback
- Error handling
"""

import pytest
from unittest.mock import AsyncMock, Mock

from pipeline.error_handler import ConfigurationError, VoiceoverGenerationError
from pipeline.voiceover_generator import SAMPLE_VOICEOVER_TEXT, VoiceoverGenerator
from services.tts_client import TextToSpeechClient
from tests.fakes import FakeTokenProvider


@pytest.fixture
def mock_tts_client():
    client = Mock(spec=TextToSpeechClient)
    client.synthesize = AsyncMock(return_value=b"ID3-mp3-audio")
    return client


@pytest.fixture
def voiceover_generator(mock_tts_client, tmp_path):
    return VoiceoverGenerator(
        mock_tts_client,
        FakeTokenProvider(),
        upload_dir=str(tmp_path),
        language_code="en-US",
        default_voice="en-US-Neural2-A",
    )


class TestVoiceSelection:

    @pytest.mark.parametrize(
        "voice_type,voice",
        [
            ("male-professional", "en-US-Neural2-A"),
            ("female-professional", "en-US-Neural2-C"),
            ("male-casual", "en-US-Neural2-E"),
            ("female-casual", "en-US-Neural2-F"),
            ("Female-Casual", "en-US-Neural2-F"),
            ("robot", "en-US-Neural2-A"),
            (None, "en-US-Neural2-A"),
        ],
    )
    def test_get_voice(self, voiceover_generator, voice_type, voice):
        assert voiceover_generator.get_voice(voice_type) == voice


class TestGenerateVoiceover:

    @pytest.mark.asyncio
    async def test_saves_audio_for_scene(self, voiceover_generator, mock_tts_client, tmp_path):
        result = await voiceover_generator.generate_voiceover(
            text="Welcome to the show",
            voice_type="female-casual",
            scene_id="scene-3",
        )

        assert result.audio_url == "/uploads/audio/voiceover_scene-3.mp3"
        assert result.voice == "en-US-Neural2-F"
        assert (tmp_path / "audio" / "voiceover_scene-3.mp3").read_bytes() == b"ID3-mp3-audio"
        mock_tts_client.synthesize.assert_awaited_once_with(
            "Welcome to the show",
            "en-US-Neural2-F",
            "token-1",
            language_code="en-US",
        )

    @pytest.mark.asyncio
    async def test_sample_text_when_missing(self, voiceover_generator, mock_tts_client):
        await voiceover_generator.generate_voiceover(scene_id="scene-1")
        assert mock_tts_client.synthesize.await_args.args[0] == SAMPLE_VOICEOVER_TEXT

    @pytest.mark.asyncio
    async def test_timestamp_filename_without_scene(self, voiceover_generator):
        result = await voiceover_generator.generate_voiceover(text="Hello")
        assert result.audio_url.startswith("/uploads/audio/voiceover_")
        assert result.audio_url.endswith(".mp3")
        assert result.audio_url[len("/uploads/audio/voiceover_"):-len(".mp3")].isdigit()

    @pytest.mark.asyncio
    async def test_scene_id_cannot_escape_audio_dir(self, voiceover_generator, tmp_path):
        result = await voiceover_generator.generate_voiceover(text="Hello", scene_id="../../etc/passwd")
        assert result.audio_url == "/uploads/audio/voiceover_______etc_passwd.mp3"
        assert (tmp_path / "audio" / "voiceover_______etc_passwd.mp3").exists()

    @pytest.mark.asyncio
    async def test_synthesis_failure_propagates(self, voiceover_generator, mock_tts_client, tmp_path):
        mock_tts_client.synthesize.side_effect = VoiceoverGenerationError("Text-to-Speech API not enabled.")

        with pytest.raises(VoiceoverGenerationError):
            await voiceover_generator.generate_voiceover(text="Hello", scene_id="scene-1")
        assert not (tmp_path / "audio" / "voiceover_scene-1.mp3").exists()

    @pytest.mark.asyncio
    async def test_missing_credentials(self, mock_tts_client, tmp_path):
        generator = VoiceoverGenerator(mock_tts_client, FakeTokenProvider(configured=False), upload_dir=str(tmp_path))

        with pytest.raises(ConfigurationError):
            await generator.generate_voiceover(text="Hello")
        mock_tts_client.synthesize.assert_not_awaited()
