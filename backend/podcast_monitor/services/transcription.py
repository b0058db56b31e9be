import asyncio
from pathlib import Path
from typing import Optional
import logging

from openai import AsyncOpenAI, OpenAIError

from ..config import get_settings

logger = logging.getLogger(__name__)


class TranscriptionError(Exception):
    """Raised when an audio file cannot be transcribed."""


def _detect_device() -> str:
    """Detect best available compute device."""
    import torch

    if torch.cuda.is_available():
        return "cuda"
    try:
        if torch.backends.mps.is_available():
            return "mps"
    except AttributeError:
        pass
    return "cpu"


def _check_audio_path(audio_path: str) -> Path:
    path = Path(audio_path)
    if not path.exists():
        raise TranscriptionError(f"Audio file not found: {audio_path}")
    return path


class TranscriptionService:
    """Transcribe audio with the hosted Whisper API."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        settings = get_settings()
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.transcription_model

    async def transcribe(self, audio_path: str, language: Optional[str] = None) -> str:
        """
        Transcribe an audio file.

        Args:
            audio_path: Path to the audio file
            language: Optional language code (e.g., 'en', 'es')

        Returns:
            Transcribed text
        """
        path = _check_audio_path(audio_path)

        options = {}
        if language:
            options["language"] = language

        logger.info(f"Transcribing {path.name} with {self.model}")
        try:
            with path.open("rb") as audio_file:
                result = await self.client.audio.transcriptions.create(
                    model=self.model, file=audio_file, **options
                )
        except OpenAIError as e:
            raise TranscriptionError(f"Transcription request failed: {e}") from e

        return (result.text or "").strip()


class LocalTranscriptionService:
    """Transcribe audio with a Whisper model running in-process."""

    def __init__(self, model_name: str = "base"):
        """
        Load the local Whisper model.

        Args:
            model_name: Whisper model size - 'tiny', 'base', 'small', 'medium', 'large'
                       Larger models are more accurate but slower.
        """
        import whisper

        device = _detect_device()
        logger.info(f"Loading Whisper model: {model_name} on {device}")
        try:
            self.model = whisper.load_model(model_name, device=device)
            self.device = device
        except Exception as e:
            if device != "cpu":
                logger.warning(f"Failed to load Whisper on {device} ({e}), falling back to CPU")
                self.model = whisper.load_model(model_name, device="cpu")
                self.device = "cpu"
            else:
                raise
        logger.info(f"Whisper model loaded on {self.device}")

    async def transcribe(self, audio_path: str, language: Optional[str] = None) -> str:
        path = _check_audio_path(audio_path)

        options = {}
        if language:
            options["language"] = language

        try:
            result = await asyncio.to_thread(self.model.transcribe, str(path), **options)
        except Exception as e:
            raise TranscriptionError(f"Local transcription failed: {e}") from e
        return result["text"].strip()


# Local model is loaded once to avoid expensive re-initialisation per episode
_local_service: Optional[LocalTranscriptionService] = None


def get_transcription_service():
    """Return the transcriber selected by the transcription_backend setting."""
    global _local_service
    settings = get_settings()
    if settings.transcription_backend == "local":
        if _local_service is None:
            _local_service = LocalTranscriptionService(settings.local_whisper_model)
        return _local_service
    return TranscriptionService()
