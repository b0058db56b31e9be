import httpx
import tempfile
import os
from pathlib import Path
from typing import Optional


class AudioTooLargeError(ValueError):
    """Raised when a download exceeds the configured size limit."""


class AudioService:
    SUPPORTED_FORMATS = [".mp3", ".m4a", ".wav", ".ogg", ".webm"]
    MAX_FILE_SIZE = 50 * 1024 * 1024  # Hosted Whisper caps uploads at 25 MB; larger files need the local backend

    def __init__(
        self,
        temp_dir: Optional[str] = None,
        max_size: int = MAX_FILE_SIZE,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.temp_dir = temp_dir or tempfile.gettempdir()
        self.max_size = max_size
        self.timeout = timeout
        self._transport = transport

    async def download_audio(self, url: str) -> str:
        """
        Download audio file from URL to a temporary file.
        Returns the path to the downloaded file.
        """
        # Determine file extension from URL
        url_path = url.split("?")[0]  # Remove query params
        ext = Path(url_path).suffix.lower()
        if ext not in self.SUPPORTED_FORMATS:
            ext = ".mp3"

        fd, temp_path = tempfile.mkstemp(prefix="audio_", suffix=ext, dir=self.temp_dir)
        os.close(fd)

        try:
            async with httpx.AsyncClient(
                follow_redirects=True, timeout=self.timeout, transport=self._transport
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()

                    total_size = 0
                    with open(temp_path, "wb") as f:
                        async for chunk in response.aiter_bytes(chunk_size=8192):
                            total_size += len(chunk)
                            if total_size > self.max_size:
                                raise AudioTooLargeError(
                                    f"File too large (>{self.max_size / 1024 / 1024:.1f}MB)"
                                )
                            f.write(chunk)

            return temp_path
        except BaseException:
            self.cleanup(temp_path)
            raise

    def cleanup(self, file_path: str) -> None:
        """Remove a temporary file."""
        try:
            if file_path and os.path.exists(file_path):
                os.unlink(file_path)
        except OSError:
            pass  # Ignore cleanup errors
