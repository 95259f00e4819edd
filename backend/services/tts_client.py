"""Text-to-speech integration with the ElevenLabs API."""
import logging
from typing import Optional
import httpx

from config import ELEVENLABS_API_KEY, ELEVENLABS_DEFAULT_VOICE

logger = logging.getLogger(__name__)


class TextToSpeechError(Exception):
    """A single synthesis attempt failed."""


class SynthesisUnavailable(TextToSpeechError):
    """Synthesis is not configured; retrying cannot help."""


class TextToSpeechClient:
    """Client for the ElevenLabs text-to-speech endpoint."""

    API_URL = "https://api.elevenlabs.io/v1/text-to-speech"
    MODEL_ID = "eleven_turbo_v2_5"
    VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: str = ELEVENLABS_DEFAULT_VOICE,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key if api_key is not None else ELEVENLABS_API_KEY
        self.voice_id = voice_id
        self.http_client = http_client or httpx.AsyncClient()

        if not self.api_key:
            logger.warning("ELEVENLABS_API_KEY not configured - TTS will be disabled")
        else:
            logger.info(f"TextToSpeechClient initialized (voice={voice_id})")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def synthesize_once(self, text: str) -> bytes:
        """
        Make a single synthesis request.

        Returns:
            MP3 audio bytes

        Raises:
            SynthesisUnavailable: If no API key is configured
            TextToSpeechError: On transport or API failure, or an empty body
        """
        if not self.is_configured:
            raise SynthesisUnavailable("ELEVENLABS_API_KEY not set")

        try:
            response = await self.http_client.post(
                f"{self.API_URL}/{self.voice_id}",
                headers={
                    "xi-api-key": self.api_key,
                    "Content-Type": "application/json",
                    "Accept": "audio/mpeg"
                },
                json={
                    "text": text,
                    "model_id": self.MODEL_ID,
                    "voice_settings": self.VOICE_SETTINGS
                }
            )
        except httpx.TimeoutException as e:
            raise TextToSpeechError("TTS API request timeout") from e
        except httpx.RequestError as e:
            raise TextToSpeechError(f"TTS API error: {e}") from e

        if response.status_code != 200:
            raise TextToSpeechError(f"TTS API error: {response.status_code} {response.text[:200]}")
        if not response.content:
            raise TextToSpeechError("TTS API returned no audio")

        logger.debug(f"Synthesized {len(text)} chars into {len(response.content)} bytes")
        return response.content

    async def aclose(self) -> None:
        await self.http_client.aclose()
