import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .. import models
from ..config import get_settings
from .audio import AudioService
from .feed_parser import FeedParser, select_new_episodes
from .summarizer import SummarizerService
from .topic_flagger import TopicFlagger
from .transcription import get_transcription_service

logger = logging.getLogger(__name__)


@dataclass
class PodcastCheckResult:
    podcast_id: int
    new_episodes: int = 0
    processed: int = 0


@dataclass
class FeedCheckResult:
    podcasts_checked: int = 0
    podcasts_failed: int = 0
    new_episodes: int = 0
    processed: int = 0


class FeedMonitor:
    """
    Polls podcast feeds and runs new episodes through the AI pipeline.

    Everything runs sequentially: podcasts are checked one after another
    with a fixed delay in between, and each new episode is downloaded,
    transcribed, summarized and flagged before the next one starts.
    A failure is logged and recorded on the episode; it never stops the
    run.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        feed_parser: Optional[FeedParser] = None,
        audio_service: Optional[AudioService] = None,
        transcriber=None,
        summarizer: Optional[SummarizerService] = None,
        topic_flagger: Optional[TopicFlagger] = None,
        delay_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.feed_parser = feed_parser or FeedParser()
        self.audio_service = audio_service or AudioService(
            max_size=settings.audio_max_bytes,
            timeout=settings.audio_timeout_seconds,
        )
        self._transcriber = transcriber
        self._summarizer = summarizer
        self._topic_flagger = topic_flagger
        self.delay_seconds = settings.feed_delay_seconds if delay_seconds is None else delay_seconds

    @property
    def transcriber(self):
        if self._transcriber is None:
            self._transcriber = get_transcription_service()
        return self._transcriber

    @property
    def summarizer(self) -> SummarizerService:
        if self._summarizer is None:
            self._summarizer = SummarizerService()
        return self._summarizer

    @property
    def topic_flagger(self) -> TopicFlagger:
        if self._topic_flagger is None:
            self._topic_flagger = TopicFlagger()
        return self._topic_flagger

    async def check_all_feeds(self) -> FeedCheckResult:
        """Check every active podcast feed for new episodes."""
        db = self.session_factory()
        try:
            podcast_ids = [
                p.id for p in db.query(models.Podcast)
                .filter(models.Podcast.is_active.is_(True))
                .order_by(models.Podcast.id)
                .all()
            ]
        finally:
            db.close()

        logger.info(f"Checking {len(podcast_ids)} podcast feeds")
        result = FeedCheckResult()

        for i, podcast_id in enumerate(podcast_ids):
            if i > 0 and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)
            try:
                podcast_result = await self.process_podcast_feed(podcast_id)
            except Exception as e:
                logger.error(f"Error processing podcast {podcast_id}: {e}")
                result.podcasts_failed += 1
                continue

            result.podcasts_checked += 1
            result.new_episodes += podcast_result.new_episodes
            result.processed += podcast_result.processed

        logger.info(
            f"Feed check completed: {result.podcasts_checked} checked, "
            f"{result.podcasts_failed} failed, {result.new_episodes} new episodes"
        )
        return result

    async def process_podcast_feed(self, podcast_id: int) -> PodcastCheckResult:
        """
        Fetch one feed, store its new episodes and process them.

        Raises FeedError if the feed cannot be fetched or parsed, in which
        case last_checked is left untouched.
        """
        result = PodcastCheckResult(podcast_id=podcast_id)
        db = self.session_factory()
        try:
            podcast = db.get(models.Podcast, podcast_id)
            if podcast is None:
                raise LookupError(f"Podcast {podcast_id} not found")

            logger.info(f"Processing: {podcast.name}")
            check_started = datetime.utcnow()
            parsed = self.feed_parser.parse(podcast.rss_url)

            known_guids = {
                guid for (guid,) in db.query(models.Episode.guid).filter(
                    models.Episode.podcast_id == podcast_id
                ) if guid
            }
            new_episodes = select_new_episodes(parsed.episodes, podcast.last_checked, known_guids)
            new_episodes.sort(key=lambda ep: ep.published_at)

            episode_ids = []
            for ep in new_episodes:
                episode = models.Episode(
                    podcast=podcast,
                    guid=ep.guid,
                    title=ep.title,
                    description=ep.description,
                    audio_url=ep.audio_url,
                    published_at=ep.published_at,
                    duration_seconds=ep.duration_seconds,
                    status="pending",
                )
                db.add(episode)
                db.flush()
                episode_ids.append(episode.id)
                logger.info(f"Saved episode: {ep.title}")

            podcast.last_checked = check_started
            db.commit()

            if episode_ids:
                logger.info(f"Found {len(episode_ids)} new episodes for {podcast.name}")
        finally:
            db.close()

        result.new_episodes = len(episode_ids)
        for episode_id in episode_ids:
            if await self.process_episode_ai(episode_id):
                result.processed += 1
        return result

    def _set_step(self, db: Session, episode: models.Episode, step: Optional[str]):
        episode.processing_step = step
        db.commit()

    def _finish(self, db: Session, episode: models.Episode, status: str, error: Optional[str] = None):
        episode.status = status
        episode.processing_step = None
        episode.error = error
        db.commit()

    async def process_episode_ai(self, episode_id: int) -> bool:
        """
        Run the AI pipeline for one stored episode.

        Returns True when the episode ends up completed.
        """
        db = self.session_factory()
        audio_path = None
        try:
            episode = db.get(models.Episode, episode_id)
            if episode is None:
                logger.warning(f"Episode {episode_id} not found, skipping AI processing")
                return False

            logger.info(f"Starting AI processing for: {episode.title}")
            episode.status = "processing"
            episode.error = None
            self._set_step(db, episode, "downloading")

            try:
                if not episode.audio_url:
                    logger.warning(f"No audio URL for '{episode.title}', skipping AI analysis")
                    self._finish(db, episode, "skipped", "No audio URL")
                    return False

                audio_path = await self.audio_service.download_audio(episode.audio_url)

                self._set_step(db, episode, "transcribing")
                transcript = await self.transcriber.transcribe(audio_path)
                if not transcript:
                    logger.warning(f"No transcript generated for '{episode.title}', skipping AI analysis")
                    self._finish(db, episode, "skipped", "Empty transcript")
                    return False

                self._set_step(db, episode, "summarizing")
                summary = await self.summarizer.summarize(episode.title, episode.description, transcript)

                self._set_step(db, episode, "flagging")
                topics = db.query(models.InterestTopic).filter(
                    models.InterestTopic.is_active.is_(True)
                ).all()
                topic_analysis = await self.topic_flagger.flag(episode.title, transcript, topics)

                ai_summary = summary.to_dict()
                if topic_analysis.priority_episode:
                    ai_summary["priority_episode"] = True
                    ai_summary["priority_topics"] = topic_analysis.priority_topics

                episode.transcript = transcript
                episode.ai_summary = ai_summary
                episode.is_priority = topic_analysis.priority_episode
                episode.priority_topics = topic_analysis.priority_topics
                episode.topic_flags = [
                    models.TopicFlag(
                        topic_id=flag.topic_id,
                        timestamp_start=flag.timestamp_start,
                        timestamp_end=flag.timestamp_end,
                        snippet=flag.snippet,
                        analysis=flag.analysis,
                        relevance_score=flag.relevance_score,
                    )
                    for flag in topic_analysis.flags
                ]
                self._finish(db, episode, "completed")
                logger.info(
                    f"AI processing completed for: {episode.title} "
                    f"({len(topic_analysis.flags)} topic flags)"
                )
                return True

            except Exception as e:
                logger.error(f"Error in AI processing for episode {episode_id}: {e}")
                db.rollback()
                self._finish(db, episode, "failed", f"Error: {str(e)}")
                return False

            finally:
                if audio_path:
                    self.audio_service.cleanup(audio_path)

        finally:
            db.close()
