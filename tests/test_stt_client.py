"""Unit tests for the speech-to-text client and audio helpers."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import base64
import httpx
import pytest
from unittest.mock import patch
from services.stt_client import (
    SpeechToTextClient,
    SpeechToTextError,
    decode_audio,
    detect_audio_format,
    MIN_AUDIO_BYTES,
)

WEBM_AUDIO = b"\x1a\x45\xdf\xa3" + b"\x00" * 2000


def make_client(handler):
    """Build a client whose HTTP calls go to ``handler``."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SpeechToTextClient(api_key="test_key", http_client=http_client)


class TestAudioHelpers:
    """Test suite for decode_audio and detect_audio_format."""

    def test_decode_raw_base64(self):
        assert decode_audio(base64.b64encode(b"abc").decode()) == b"abc"

    def test_decode_data_url(self):
        """Test that a data: URL prefix is stripped."""
        encoded = "data:audio/webm;base64," + base64.b64encode(b"abc").decode()
        assert decode_audio(encoded) == b"abc"

    def test_decode_invalid(self):
        with pytest.raises(ValueError):
            decode_audio("abc")

    @pytest.mark.parametrize("payload", ["!!!!", "YWJj$", "data:audio/webm;base64,@@@@", "data:audio/webm;base64,"])
    def test_decode_rejects_non_alphabet_and_empty(self, payload):
        """Test that characters outside the base64 alphabet are not silently dropped."""
        with pytest.raises(ValueError):
            decode_audio(payload)

    def test_decode_tolerates_line_breaks(self):
        encoded = base64.b64encode(b"abcdef").decode()
        assert decode_audio(encoded[:4] + "\n" + encoded[4:]) == b"abcdef"

    def test_detect_mp3_frame_sync(self):
        assert detect_audio_format(b"\xff\xfb\x90\x00" + b"\x00" * 8) == "audio/mpeg"

    def test_detect_mp3_id3(self):
        assert detect_audio_format(b"ID3\x04" + b"\x00" * 8) == "audio/mpeg"

    def test_detect_wav(self):
        assert detect_audio_format(b"RIFF\x24\x08\x00\x00WAVE") == "audio/wav"

    def test_detect_webm(self):
        assert detect_audio_format(WEBM_AUDIO) == "audio/webm"

    def test_detect_mp4(self):
        assert detect_audio_format(b"\x00\x00\x00\x20ftypM4A ") == "audio/mp4"

    def test_detect_unknown_defaults_to_mpeg(self):
        assert detect_audio_format(b"\x00" * 12) == "audio/mpeg"
        assert detect_audio_format(b"") == "audio/mpeg"


class TestSpeechToTextClient:
    """Test suite for SpeechToTextClient."""

    def test_initialization_without_api_key(self):
        """Test initialization fails without API key."""
        with patch('services.stt_client.ELEVENLABS_API_KEY', None):
            with pytest.raises(ValueError, match="ELEVENLABS_API_KEY"):
                SpeechToTextClient(api_key=None)

    @pytest.mark.asyncio
    async def test_transcribe_success(self):
        """Test a successful transcription request."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["api_key"] = request.headers["xi-api-key"]
            seen["body"] = request.content
            return httpx.Response(200, json={"text": " my loop never terminates "})

        client = make_client(handler)
        text = await client.transcribe_once(WEBM_AUDIO)

        assert text == "my loop never terminates"
        assert seen["url"] == SpeechToTextClient.API_URL
        assert seen["api_key"] == "test_key"
        assert b"scribe_v1" in seen["body"]
        assert b"audio/webm" in seen["body"]
        assert b'name="language_code"' in seen["body"]

    @pytest.mark.asyncio
    async def test_short_audio_rejected_without_request(self):
        """Test that too-short audio fails before any HTTP call."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"text": "x"})

        client = make_client(handler)
        with pytest.raises(SpeechToTextError, match="too short"):
            await client.transcribe_once(b"\x00" * (MIN_AUDIO_BYTES - 1))

        assert calls == []

    @pytest.mark.asyncio
    async def test_api_error_status(self):
        """Test that a non-200 response raises."""
        client = make_client(lambda request: httpx.Response(500, text="server exploded"))

        with pytest.raises(SpeechToTextError, match="status 500"):
            await client.transcribe_once(WEBM_AUDIO)

    @pytest.mark.asyncio
    async def test_missing_text_field(self):
        """Test that a malformed body raises."""
        client = make_client(lambda request: httpx.Response(200, json={"words": []}))

        with pytest.raises(SpeechToTextError, match="no text"):
            await client.transcribe_once(WEBM_AUDIO)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(SpeechToTextError, match="non-JSON"):
            await client.transcribe_once(WEBM_AUDIO)

    @pytest.mark.asyncio
    async def test_transport_timeout(self):
        """Test that transport timeouts are reported as STT errors."""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)
        with pytest.raises(SpeechToTextError, match="timeout"):
            await client.transcribe_once(WEBM_AUDIO)

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(SpeechToTextError, match="STT API error"):
            await client.transcribe_once(WEBM_AUDIO)
