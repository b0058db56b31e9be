from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey, JSON, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base


class Podcast(Base):
    __tablename__ = "podcasts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    rss_url = Column(String, unique=True, nullable=False)
    description = Column(Text)
    image_url = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
    last_checked = Column(DateTime)  # UTC; null means never checked
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    episodes = relationship("Episode", back_populates="podcast", cascade="all, delete-orphan")


class Episode(Base):
    __tablename__ = "episodes"

    id = Column(Integer, primary_key=True, index=True)
    podcast_id = Column(Integer, ForeignKey("podcasts.id"), nullable=False)
    guid = Column(String, index=True)  # Unique episode identifier from RSS
    title = Column(String, nullable=False)
    description = Column(Text)
    audio_url = Column(String)
    published_at = Column(DateTime, index=True)  # UTC
    duration_seconds = Column(Integer)
    status = Column(String, default="pending", nullable=False)  # pending, processing, completed, failed, skipped
    processing_step = Column(String)  # Current step: downloading, transcribing, summarizing, flagging
    error = Column(Text)
    transcript = Column(Text)
    ai_summary = Column(JSON)  # guest, summary_paragraphs, key_topics, main_arguments, notable_quotes
    is_priority = Column(Boolean, default=False, nullable=False)
    priority_topics = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    podcast = relationship("Podcast", back_populates="episodes")
    topic_flags = relationship("TopicFlag", back_populates="episode", cascade="all, delete-orphan")


class InterestTopic(Base):
    __tablename__ = "interest_topics"

    id = Column(Integer, primary_key=True, index=True)
    topic = Column(String, unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    flags = relationship("TopicFlag", back_populates="topic", cascade="all, delete")


class TopicFlag(Base):
    """A section of an episode that discusses one of the interest topics."""
    __tablename__ = "topic_flags"

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=False, index=True)
    topic_id = Column(Integer, ForeignKey("interest_topics.id"), nullable=False)
    timestamp_start = Column(Integer, default=0)  # Seconds into the episode
    timestamp_end = Column(Integer, default=0)
    snippet = Column(Text)
    analysis = Column(Text)
    relevance_score = Column(Float)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    episode = relationship("Episode", back_populates="topic_flags")
    topic = relationship("InterestTopic", back_populates="flags")

    @property
    def topic_name(self) -> str:
        return self.topic.topic if self.topic else "Unknown"


class UserSettings(Base):
    """Single-row table holding the digest recipient."""
    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
