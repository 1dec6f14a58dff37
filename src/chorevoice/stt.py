"""
Speech-to-text boundary.

The engine only needs a transcript; how audio becomes text is delegated to a
Transcriber. WhisperTranscriber uses the OpenAI audio transcription API.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

from openai import OpenAI

from .errors import TranscriptionError

logger = logging.getLogger(__name__)

WAV_MIMETYPES = {"audio/wav", "audio/wave", "audio/x-wav", "audio/vnd.wave"}


def is_wav(audio: bytes, filename: Optional[str] = None, mimetype: Optional[str] = None) -> bool:
    """
    True when the upload looks like a WAV file.

    The RIFF/WAVE header is authoritative; filename and mimetype are only
    consulted when the payload is too short to carry one.
    """
    if len(audio) >= 12:
        return audio[:4] == b"RIFF" and audio[8:12] == b"WAVE"
    if mimetype and mimetype.lower() in WAV_MIMETYPES:
        return True
    return bool(filename and filename.lower().endswith(".wav"))


class Transcriber(ABC):
    """Turns raw audio into a transcript."""

    @abstractmethod
    def transcribe(self, audio: bytes, filename: str = "audio.wav") -> str:
        """
        Raises:
            TranscriptionError: If the audio could not be transcribed
        """


class WhisperTranscriber(Transcriber):
    """
    OpenAI transcription client.

    Args:
        model: Transcription model (default: whisper-1)
        api_key: Optional API key (uses OPENAI_API_KEY env var if not provided)
        client: Pre-built OpenAI client (tests inject a mock here)
    """

    def __init__(self, model: str = "whisper-1", api_key: Optional[str] = None, client: Optional[Any] = None):
        self.model = model
        if client is not None:
            self.client = client
        else:
            self.client = OpenAI(api_key=api_key) if api_key else OpenAI()

    def transcribe(self, audio: bytes, filename: str = "audio.wav") -> str:
        if not audio:
            raise TranscriptionError("Empty audio upload")

        start_time = time.time()
        try:
            response = self.client.audio.transcriptions.create(
                model=self.model,
                file=(filename, audio),
            )
        except Exception as e:
            logger.error(
                f"Transcription failed: {e}",
                extra={"model": self.model, "error_type": type(e).__name__},
                exc_info=True,
            )
            raise TranscriptionError(f"Transcription failed: {e}") from e

        transcript = (getattr(response, "text", None) or "").strip()
        logger.info(
            "Audio transcribed",
            extra={
                "model": self.model,
                "audio_bytes": len(audio),
                "transcript_chars": len(transcript),
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            },
        )
        return transcript
