from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    database_url: str = "sqlite:///./podcast_monitor.db"

    # Outbound mail relay
    email_host: str = ""
    email_port: int = 587
    email_user: str = ""
    email_password: str = ""
    email_from: str = ""
    email_use_tls: bool = True
    digest_recipient: str = ""  # Used when no user settings row exists

    # Schedule
    timezone: str = "UTC"
    feed_check_hours: str = "8,14,20"
    digest_hour: int = 8
    scheduler_enabled: bool = True

    # Pipeline
    feed_delay_seconds: float = 2.0
    digest_window_hours: int = 24
    transcription_backend: str = "api"  # api or local
    transcription_model: str = "whisper-1"
    local_whisper_model: str = "base"
    summary_model: str = "claude-sonnet-4-20250514"
    summary_max_tokens: int = 2000
    summary_transcript_chars: int = 8000
    flagging_max_tokens: int = 3000
    flagging_transcript_chars: int = 12000
    audio_max_bytes: int = 50 * 1024 * 1024
    audio_timeout_seconds: float = 300.0

    port: int = 3000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"

    @property
    def email_sender(self) -> str:
        return self.email_from or self.email_user


@lru_cache
def get_settings() -> Settings:
    return Settings()
