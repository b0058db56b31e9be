"""
Shared fixtures.

Every external collaborator (feeds, audio host, Whisper, Claude, SMTP) is
replaced by an in-process fake; the database is an in-memory SQLite
engine shared by all sessions of a test.
"""

import os
import tempfile
from pathlib import Path
from types import SimpleNamespace

# Settings are cached on first use, so the environment must be ready
# before anything from podcast_monitor is imported.
_TEST_DIR = tempfile.mkdtemp(prefix="podcast_monitor_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/app.db"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["FEED_DELAY_SECONDS"] = "0"
os.environ["ANTHROPIC_API_KEY"] = "test-anthropic"
os.environ["OPENAI_API_KEY"] = "test-openai"
os.environ["DIGEST_RECIPIENT"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from podcast_monitor.database import Base, get_db
from podcast_monitor.dependencies import get_digest_service, get_feed_parser, get_monitor
from podcast_monitor.main import app
from podcast_monitor.services.digest import DigestService
from podcast_monitor.services.feed_parser import FeedError, ParsedFeed
from podcast_monitor.services.monitor import FeedMonitor
from podcast_monitor.services.summarizer import SummarizerService
from podcast_monitor.services.topic_flagger import TopicFlagger


SUMMARY_REPLY = """{
  "guest": "Ada Lovelace",
  "summary_paragraphs": ["They talk about engines.", "And about poetry."],
  "key_topics": ["computing"],
  "main_arguments": ["Machines can compose music"],
  "notable_quotes": [{"speaker": "Ada", "quote": "Poetical science", "context": "On method"}]
}"""

FLAG_REPLY = """{
  "priority_episode": false,
  "priority_topics": [],
  "topic_flags": [
    {"topic": "Artificial Intelligence", "timestamp_start": 125, "timestamp_end": 300,
     "snippet": "Can machines think?", "analysis": "A long discussion of machine thought.",
     "relevance_score": 0.8}
  ]
}"""


class FakeMessages:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(content=[SimpleNamespace(text=reply)])


class FakeAnthropic:
    """Stands in for anthropic.AsyncAnthropic; replies are served in order, the last one repeats."""

    def __init__(self, *replies):
        self.messages = FakeMessages(replies)


class FakeFeedParser:
    def __init__(self, feeds=None):
        self.feeds = feeds or {}
        self.requested = []

    def parse(self, feed_url):
        self.requested.append(feed_url)
        feed = self.feeds.get(feed_url)
        if feed is None:
            raise FeedError(f"Failed to fetch feed: no such feed {feed_url}")
        if isinstance(feed, Exception):
            raise feed
        return feed


class FakeAudioService:
    def __init__(self, directory: Path, error: Exception = None):
        self.directory = directory
        self.error = error
        self.downloaded = []
        self.cleaned = []

    async def download_audio(self, url):
        if self.error:
            raise self.error
        self.downloaded.append(url)
        path = self.directory / f"audio_{len(self.downloaded)}.mp3"
        path.write_bytes(b"ID3fake")
        return str(path)

    def cleanup(self, file_path):
        self.cleaned.append(file_path)
        if os.path.exists(file_path):
            os.unlink(file_path)


class FakeTranscriber:
    def __init__(self, text="Hello and welcome to the show.", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    async def transcribe(self, audio_path, language=None):
        self.calls.append(audio_path)
        if self.error:
            raise self.error
        return self.text


class FakeMailer:
    def __init__(self, error: Exception = None):
        self.error = error
        self.sent = []

    def send(self, to, subject, html, text=None):
        if self.error:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def feed_parser():
    return FakeFeedParser()


@pytest.fixture
def audio_service(tmp_path):
    return FakeAudioService(tmp_path)


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def summary_client():
    return FakeAnthropic(SUMMARY_REPLY)


@pytest.fixture
def flag_client():
    return FakeAnthropic(FLAG_REPLY)


@pytest.fixture
def monitor(session_factory, feed_parser, audio_service, transcriber, summary_client, flag_client):
    return FeedMonitor(
        session_factory,
        feed_parser=feed_parser,
        audio_service=audio_service,
        transcriber=transcriber,
        summarizer=SummarizerService(client=summary_client),
        topic_flagger=TopicFlagger(client=flag_client),
        delay_seconds=0,
    )


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def digest_service(session_factory, mailer):
    return DigestService(session_factory, mailer=mailer, window_hours=24)


@pytest.fixture
def client(session_factory, monitor, digest_service, feed_parser):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_monitor] = lambda: monitor
    app.dependency_overrides[get_digest_service] = lambda: digest_service
    app.dependency_overrides[get_feed_parser] = lambda: feed_parser
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_feed(title="Test Cast", episodes=None):
    return ParsedFeed(title=title, description="A show", episodes=episodes or [])
