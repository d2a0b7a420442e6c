"""
Audio Processing Layer for the daily check-in

Handles:
- Speech-to-Text (STT) via the transcription service
- Text-to-Speech (TTS) via the speech-synthesis service

Both are remote collaborators. Transcription enforces its own timeout and
reports a timeout distinctly from other failures; synthesis treats every
failure as "no audio".
"""

import asyncio
import logging

import httpx

from checkin.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

TRANSCRIPTION_FAILED_MESSAGE = "Transcription failed. Please try again or type your reply."
TRANSCRIPTION_TIMEOUT_MESSAGE = "Transcription timed out. Please try again or type your reply."

_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
}


class TranscriptionError(Exception):
    """Raised when audio could not be transcribed."""

    user_message = TRANSCRIPTION_FAILED_MESSAGE


class TranscriptionTimeoutError(TranscriptionError):
    """Raised when the transcription service did not answer in time."""

    user_message = TRANSCRIPTION_TIMEOUT_MESSAGE


class AudioProcessor:
    """
    Client for the transcription and speech-synthesis services.

    STT: multipart upload, {text} response
    TTS: {text, voice} request, raw audio response
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        """Initialize audio processor."""
        self.settings = settings or get_settings()

        # HTTP client for API-based services
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.api_base_url.rstrip("/"),
            headers=self.settings.auth_headers,
            timeout=60.0,
        )

    async def close(self):
        """Clean up resources."""
        await self.client.aclose()

    # =========================================================================
    # SPEECH-TO-TEXT
    # =========================================================================

    async def speech_to_text(
        self,
        audio_data: bytes,
        mime_type: str = "audio/webm",
    ) -> str:
        """
        Transcribe recorded audio.

        Args:
            audio_data: Captured audio bytes
            mime_type: Container type of the recording

        Returns:
            Transcribed text

        Raises:
            TranscriptionTimeoutError: The service exceeded the configured timeout
            TranscriptionError: Any other failure, including an empty result
        """
        timeout = self.settings.transcription_timeout_seconds
        extension = _EXTENSIONS.get(mime_type.split(";")[0], "webm")
        files = {
            "file": (f"recording.{extension}", audio_data, mime_type),
        }

        try:
            response = await asyncio.wait_for(
                self.client.post(self.settings.transcribe_path, files=files),
                timeout=timeout,
            )
            response.raise_for_status()
            result = response.json()

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"Transcription timed out after {timeout}s")
            raise TranscriptionTimeoutError(f"Transcription timed out after {timeout}s") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Transcription API error: {e}")
            raise TranscriptionError(str(e)) from e

        text = None
        if isinstance(result, dict):
            text = result.get("text")
            if text is None and isinstance(result.get("data"), dict):
                # Handle alternate {success, data: {text}} envelope
                text = result["data"].get("text")

        if not isinstance(text, str) or not text.strip():
            raise TranscriptionError("No transcription returned")

        return text.strip()

    # =========================================================================
    # TEXT-TO-SPEECH
    # =========================================================================

    async def text_to_speech(
        self,
        text: str,
        voice: str | None = None,
    ) -> bytes | None:
        """
        Convert text to speech.

        Text longer than the service limit is truncated, never rejected.

        Args:
            text: Text to synthesize
            voice: Voice to use (optional, uses default)

        Returns:
            Audio bytes, or None if the service did not produce audio
        """
        limit = self.settings.tts_max_chars
        if len(text) > limit:
            text = text[:limit]

        payload = {
            "text": text,
            "voice": voice or self.settings.tts_voice,
        }

        try:
            response = await self.client.post(self.settings.tts_path, json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"TTS request failed: {e}")
            return None

        if not response.is_success:
            logger.warning(f"TTS returned HTTP {response.status_code}")
            return None

        return response.content or None
