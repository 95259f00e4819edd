"""Speech-to-text integration with the ElevenLabs API."""
import base64
import binascii
import logging
import time
from typing import Optional
import httpx

from config import ELEVENLABS_API_KEY, STT_LANGUAGE

logger = logging.getLogger(__name__)

# Shorter payloads are rejected before calling the API
MIN_AUDIO_BYTES = 1000


class SpeechToTextError(Exception):
    """A single transcription attempt failed."""


def decode_audio(audio_base64: str) -> bytes:
    """
    Decode base64 audio, accepting either raw base64 or a data: URL.

    Raises:
        ValueError: If the payload is not valid base64
    """
    data = audio_base64.split(",", 1)[1] if "," in audio_base64 else audio_base64
    # Line breaks are tolerated, any other non-alphabet character is not
    data = "".join(data.split())
    try:
        audio = base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Audio payload is not valid base64: {e}") from e
    if not audio:
        raise ValueError("Audio payload is empty")
    return audio


def detect_audio_format(audio: bytes) -> str:
    """
    Guess the container from its magic bytes.

    Returns:
        MIME type; audio/mpeg when nothing matches
    """
    header = audio[:12]

    # MP3: frame sync (11 set bits) or ID3 tag
    if len(header) >= 2 and header[0] == 0xFF and (header[1] & 0xE0) == 0xE0:
        return "audio/mpeg"
    if header[:3] == b"ID3":
        return "audio/mpeg"

    # WAV: RIFF....WAVE
    if header[:4] == b"RIFF" and header[8:12] == b"WAVE":
        return "audio/wav"

    # WebM / Matroska EBML header
    if header[:4] == b"\x1a\x45\xdf\xa3":
        return "audio/webm"

    # MP4 / M4A: ftyp box
    if header[4:8] == b"ftyp":
        return "audio/mp4"

    return "audio/mpeg"


FILE_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/webm": "webm",
    "audio/mp4": "mp4",
}


class SpeechToTextClient:
    """Client for the ElevenLabs speech-to-text endpoint."""

    API_URL = "https://api.elevenlabs.io/v1/speech-to-text"
    MODEL_ID = "scribe_v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        language: str = STT_LANGUAGE,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the transcription client.

        Args:
            api_key: ElevenLabs API key (defaults to ELEVENLABS_API_KEY)
            language: Language hint sent with every request
            http_client: Shared async HTTP client; one is created if omitted
        """
        self.api_key = api_key or ELEVENLABS_API_KEY
        if not self.api_key:
            raise ValueError("ELEVENLABS_API_KEY is required for speech-to-text")

        self.language = language
        self.http_client = http_client or httpx.AsyncClient()
        logger.info("SpeechToTextClient initialized")

    async def transcribe_once(self, audio: bytes) -> str:
        """
        Make a single transcription request.

        Args:
            audio: Raw audio bytes in any supported container

        Returns:
            Transcribed text (may be empty if nothing was recognised)

        Raises:
            SpeechToTextError: On short input, transport or API failure, or a malformed body
        """
        if len(audio) < MIN_AUDIO_BYTES:
            raise SpeechToTextError("Audio input is empty or too short")

        content_type = detect_audio_format(audio)
        logger.debug(f"Detected audio format: {content_type}, size: {len(audio)} bytes")

        start_time = time.time()
        try:
            response = await self.http_client.post(
                self.API_URL,
                headers={"xi-api-key": self.api_key},
                files={"file": (f"audio.{FILE_EXTENSIONS[content_type]}", audio, content_type)},
                data={"model_id": self.MODEL_ID, "language_code": self.language}
            )
        except httpx.TimeoutException as e:
            raise SpeechToTextError("STT API request timeout") from e
        except httpx.RequestError as e:
            raise SpeechToTextError(f"STT API error: {e}") from e

        if response.status_code != 200:
            raise SpeechToTextError(
                f"STT API error: status {response.status_code}: {response.text[:200]}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise SpeechToTextError("STT API returned a non-JSON body") from e

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise SpeechToTextError("STT API response has no text field")

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Transcribed {len(audio)} bytes in {elapsed_ms}ms")
        return text.strip()

    async def aclose(self) -> None:
        await self.http_client.aclose()
