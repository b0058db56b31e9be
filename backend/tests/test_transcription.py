from types import SimpleNamespace

import httpx
import openai
import pytest

from podcast_monitor.services.transcription import (
    LocalTranscriptionService,
    TranscriptionError,
    TranscriptionService,
)


class FakeTranscriptions:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append({"model": kwargs["model"], "name": kwargs["file"].name,
                           "language": kwargs.get("language")})
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


def _client(transcriptions):
    return SimpleNamespace(audio=SimpleNamespace(transcriptions=transcriptions))


async def test_transcribe_uploads_the_file(tmp_path):
    audio = tmp_path / "episode.mp3"
    audio.write_bytes(b"ID3")
    transcriptions = FakeTranscriptions(text="  Welcome back.  ")

    text = await TranscriptionService(client=_client(transcriptions)).transcribe(str(audio), language="en")

    assert text == "Welcome back."
    assert transcriptions.calls == [{"model": "whisper-1", "name": str(audio), "language": "en"}]


async def test_missing_file(tmp_path):
    service = TranscriptionService(client=_client(FakeTranscriptions(text="x")))
    with pytest.raises(TranscriptionError, match="Audio file not found"):
        await service.transcribe(str(tmp_path / "missing.mp3"))


async def test_api_errors_become_transcription_errors(tmp_path):
    audio = tmp_path / "episode.mp3"
    audio.write_bytes(b"ID3")
    request = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
    transcriptions = FakeTranscriptions(error=openai.APIConnectionError(request=request))

    with pytest.raises(TranscriptionError):
        await TranscriptionService(client=_client(transcriptions)).transcribe(str(audio))


class BrokenWhisperModel:
    def transcribe(self, path, **options):
        raise ValueError("ffmpeg could not decode audio")


async def test_local_model_errors_become_transcription_errors(tmp_path):
    audio = tmp_path / "episode.mp3"
    audio.write_bytes(b"ID3")
    # Skip __init__ so no Whisper weights are loaded
    service = LocalTranscriptionService.__new__(LocalTranscriptionService)
    service.model = BrokenWhisperModel()

    with pytest.raises(TranscriptionError, match="ffmpeg could not decode audio"):
        await service.transcribe(str(audio))


async def test_local_missing_file(tmp_path):
    service = LocalTranscriptionService.__new__(LocalTranscriptionService)
    service.model = BrokenWhisperModel()

    with pytest.raises(TranscriptionError, match="Audio file not found"):
        await service.transcribe(str(tmp_path / "missing.mp3"))
