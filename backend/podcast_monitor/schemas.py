from pydantic import BaseModel
from datetime import datetime
from typing import Optional


# Topic schemas
class InterestTopicCreate(BaseModel):
    topic: str


class InterestTopicUpdate(BaseModel):
    is_active: Optional[bool] = None


class InterestTopic(BaseModel):
    id: int
    topic: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TopicFlag(BaseModel):
    id: int
    topic_id: int
    topic_name: str
    timestamp_start: int
    timestamp_end: int
    snippet: Optional[str] = None
    analysis: Optional[str] = None
    relevance_score: Optional[float] = None

    class Config:
        from_attributes = True


# Episode schemas
class EpisodeCompact(BaseModel):
    """Compact episode representation for lists."""
    id: int
    podcast_id: int
    title: str
    status: str
    published_at: Optional[datetime] = None
    is_priority: bool = False

    class Config:
        from_attributes = True


class Episode(EpisodeCompact):
    guid: Optional[str] = None
    description: Optional[str] = None
    audio_url: Optional[str] = None
    duration_seconds: Optional[int] = None
    processing_step: Optional[str] = None
    error: Optional[str] = None
    transcript: Optional[str] = None
    ai_summary: Optional[dict] = None
    priority_topics: Optional[list[str]] = None
    created_at: Optional[datetime] = None
    topic_flags: list[TopicFlag] = []

    class Config:
        from_attributes = True


class ProcessingStatus(BaseModel):
    episode_id: int
    status: str
    message: Optional[str] = None


# Podcast schemas
class PodcastCreate(BaseModel):
    rss_url: str
    name: Optional[str] = None  # Defaults to the feed title


class PodcastUpdate(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None


class Podcast(BaseModel):
    id: int
    name: str
    rss_url: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True
    last_checked: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PodcastSummary(Podcast):
    episode_count: int = 0
    processed_count: int = 0


class PodcastCheck(BaseModel):
    podcast_id: int
    new_episodes: int
    processed: int


# Control surface
class FeedCheckResponse(BaseModel):
    success: bool
    message: str
    podcasts_checked: int = 0
    podcasts_failed: int = 0
    new_episodes: int = 0
    processed: int = 0


class DigestResponse(BaseModel):
    success: bool
    message: str
    sent: bool = False
    recipient: Optional[str] = None
    episode_count: int = 0
    priority_count: int = 0


class UserSettings(BaseModel):
    email: Optional[str] = None


# Scheduler status
class SchedulerStatus(BaseModel):
    running: bool
    timezone: str
    feed_check_hours: str
    digest_hour: Optional[int] = None
    next_feed_check: Optional[datetime] = None
    next_digest: Optional[datetime] = None
