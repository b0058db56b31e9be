import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from html import escape
from typing import Callable, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session, joinedload

from .. import models
from ..config import get_settings
from .mailer import Mailer

logger = logging.getLogger(__name__)

DIGEST_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .header { background: #2563eb; color: white; padding: 20px; text-align: center; }
    .episode { margin: 20px 0; padding: 15px; border-left: 4px solid #e5e7eb; }
    .priority { border-left-color: #dc2626; background: #fef2f2; }
    .priority-label { color: #dc2626; font-weight: bold; }
    .topic-flag { background: #eff6ff; margin: 10px 0; padding: 10px; border-radius: 4px; }
    .topic-name { background: #2563eb; color: white; padding: 2px 8px; border-radius: 12px; font-size: 12px; }
    .timestamp { color: #2563eb; font-weight: bold; text-decoration: none; }
    .play-link { background: #2563eb; color: white; padding: 8px 16px; text-decoration: none; border-radius: 4px; }
"""


def format_duration(seconds: Optional[int]) -> str:
    if not seconds:
        return "Unknown duration"
    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60
    return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"


def format_time(seconds: Optional[int]) -> str:
    hours, remainder = divmod(int(seconds or 0), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def apple_podcasts_url(podcast_name: str, episode_title: str) -> str:
    """Apple Podcasts search link; feeds carry no Apple IDs to deep-link with."""
    return f"https://podcasts.apple.com/search?term={quote(f'{podcast_name} {episode_title}', safe='')}"


def format_long_date(value: datetime) -> str:
    return f"{value:%A, %B} {value.day}, {value.year}"


def format_short_date(value: datetime) -> str:
    return f"{value.month}/{value.day}/{value.year}"


@dataclass
class DigestResult:
    sent: bool
    message: str
    recipient: Optional[str] = None
    episode_count: int = 0
    priority_count: int = 0


class DigestService:
    """Collect recently processed episodes and mail them as an HTML digest."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        mailer: Optional[Mailer] = None,
        window_hours: Optional[int] = None,
        tz: Optional[str] = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.mailer = mailer or Mailer(settings)
        self.window_hours = window_hours or settings.digest_window_hours
        self.fallback_recipient = settings.digest_recipient
        self.tz = ZoneInfo(tz or settings.timezone)

    def local_time(self, utc_now: datetime) -> datetime:
        """Convert a naive UTC timestamp to the digest timezone for headings."""
        return utc_now.replace(tzinfo=timezone.utc).astimezone(self.tz)

    def get_recipient(self, db: Session) -> Optional[str]:
        user_settings = db.query(models.UserSettings).order_by(models.UserSettings.id).first()
        if user_settings and user_settings.email:
            return user_settings.email
        return self.fallback_recipient or None

    def get_recent_episodes(self, db: Session, now: datetime) -> list[models.Episode]:
        since = now - timedelta(hours=self.window_hours)
        return (
            db.query(models.Episode)
            .options(
                joinedload(models.Episode.podcast),
                joinedload(models.Episode.topic_flags).joinedload(models.TopicFlag.topic),
            )
            .filter(
                models.Episode.status == "completed",
                models.Episode.published_at >= since,
            )
            .order_by(models.Episode.published_at.desc())
            .all()
        )

    def render_episode_html(self, episode: models.Episode, is_priority: bool) -> str:
        podcast_name = episode.podcast.name if episode.podcast else "Unknown podcast"
        summary = episode.ai_summary or {}
        listen_url = apple_podcasts_url(podcast_name, episode.title)
        published = episode.published_at.strftime("%Y-%m-%d %H:%M UTC") if episode.published_at else ""

        parts = [f'<div class="episode{" priority" if is_priority else ""}">']
        if is_priority:
            parts.append('<div class="priority-label">PRIORITY LISTEN!</div>')
        parts.append(f"<h3>{escape(episode.title)}</h3>")
        parts.append(
            f"<p><strong>{escape(podcast_name)}</strong> &bull; {escape(summary.get('guest') or 'Unknown')}"
            f" &bull; {format_duration(episode.duration_seconds)}</p>"
        )
        parts.append(f"<p><small>{published}</small></p>")
        parts.append(f'<a href="{escape(listen_url)}" class="play-link">Open in Apple Podcasts</a>')

        parts.append('<div style="margin: 15px 0;"><h4>Enhanced AI Summary</h4>')
        for paragraph in summary.get("summary_paragraphs") or []:
            parts.append(f'<p style="margin: 10px 0;">{escape(str(paragraph))}</p>')
        parts.append("</div>")

        flags = sorted(episode.topic_flags, key=lambda f: f.timestamp_start or 0)
        if flags:
            parts.append("<h4>Flagged Topics</h4>")
            for flag in flags:
                timestamp_url = f"{listen_url}&t={flag.timestamp_start or 0}"
                parts.append(
                    '<div class="topic-flag">'
                    f'<span class="topic-name">{escape(flag.topic_name)}</span> '
                    f'<a href="{escape(timestamp_url)}" class="timestamp">{format_time(flag.timestamp_start)}</a>'
                    f'<p style="margin: 0; font-size: 14px;">{escape(flag.analysis or flag.snippet or "")}</p>'
                    "</div>"
                )

        parts.append("</div>")
        return "\n".join(parts)

    def render_html(self, episodes: list[models.Episode], now: datetime) -> str:
        priority = [ep for ep in episodes if ep.is_priority]
        regular = [ep for ep in episodes if not ep.is_priority]

        parts = [
            "<html><head><style>",
            DIGEST_STYLE,
            "</style></head><body>",
            '<div class="header">',
            "<h1>Your Daily Podcast Digest</h1>",
            f"<p>{format_long_date(now)}</p>",
            "</div>",
        ]
        if priority:
            parts.append("<h2>Priority Episodes (Extensive Coverage of Your Interests)</h2>")
            parts.extend(self.render_episode_html(ep, True) for ep in priority)
        if regular:
            parts.append("<h2>Recent Episodes</h2>")
            parts.extend(self.render_episode_html(ep, False) for ep in regular)
        parts.append("</body></html>")
        return "\n".join(parts)

    def render_text(self, episodes: list[models.Episode], now: datetime) -> str:
        lines = [f"Your Daily Podcast Digest - {format_long_date(now)}", ""]
        for ep in episodes:
            podcast_name = ep.podcast.name if ep.podcast else "Unknown podcast"
            prefix = "[PRIORITY] " if ep.is_priority else ""
            lines.append(f"{prefix}{ep.title} ({podcast_name}, {format_duration(ep.duration_seconds)})")
            for flag in ep.topic_flags:
                lines.append(f"  - {flag.topic_name} at {format_time(flag.timestamp_start)}")
            lines.append("")
        return "\n".join(lines)

    def send_daily_digest(self, now: Optional[datetime] = None) -> DigestResult:
        """
        Build and send the digest of episodes processed in the last window.

        Returns a result with sent=False when there is no recipient or
        nothing to report. Raises MailError if the relay fails.
        """
        now = now or datetime.utcnow()
        local_now = self.local_time(now)
        db = self.session_factory()
        try:
            recipient = self.get_recipient(db)
            if not recipient:
                logger.info("No email configured")
                return DigestResult(sent=False, message="No email configured")

            episodes = self.get_recent_episodes(db, now)
            if not episodes:
                logger.info("No new episodes to digest")
                return DigestResult(sent=False, message="No new episodes to digest", recipient=recipient)

            html = self.render_html(episodes, local_now)
            text = self.render_text(episodes, local_now)
            subject = f"Your Daily Podcast Digest - {format_short_date(local_now)}"
            priority_count = sum(1 for ep in episodes if ep.is_priority)
        finally:
            db.close()

        self.mailer.send(recipient, subject, html, text)
        logger.info(f"Daily digest sent to {recipient} ({len(episodes)} episodes)")
        return DigestResult(
            sent=True,
            message="Digest sent",
            recipient=recipient,
            episode_count=len(episodes),
            priority_count=priority_count,
        )
