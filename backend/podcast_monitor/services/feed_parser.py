import feedparser
import httpx
from datetime import datetime
from typing import Iterable, Optional
from dataclasses import dataclass, field


AUDIO_EXTENSIONS = (".mp3", ".m4a", ".wav", ".ogg", ".aac")


class FeedError(Exception):
    """Raised when a feed cannot be fetched or parsed."""


@dataclass
class ParsedEpisode:
    title: str
    guid: str
    audio_url: Optional[str] = None
    description: Optional[str] = None
    published_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None


@dataclass
class ParsedFeed:
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    episodes: list[ParsedEpisode] = field(default_factory=list)


def select_new_episodes(
    episodes: Iterable[ParsedEpisode],
    last_checked: Optional[datetime],
    known_guids: Iterable[str] = (),
) -> list[ParsedEpisode]:
    """
    Pick the feed items that have not been seen before.

    An item is new when it was published strictly after the last check
    (the epoch if the podcast was never checked) and its GUID is not
    already stored. Items without a publish date are never new.
    """
    cutoff = last_checked or datetime(1970, 1, 1)
    seen = set(known_guids)
    new_episodes = []
    for ep in episodes:
        if ep.published_at is None or ep.published_at <= cutoff:
            continue
        if ep.guid in seen:
            continue
        seen.add(ep.guid)
        new_episodes.append(ep)
    return new_episodes


class FeedParser:
    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    @staticmethod
    def parse_duration(duration_str) -> Optional[int]:
        """Parse duration string (HH:MM:SS, MM:SS or seconds) to total seconds."""
        if not duration_str:
            return None

        duration_str = str(duration_str).strip()
        try:
            # Try parsing as integer (seconds)
            return int(duration_str)
        except ValueError:
            pass

        # Try parsing as HH:MM:SS or MM:SS
        parts = duration_str.split(":")
        try:
            if len(parts) == 3:
                hours, minutes, seconds = map(int, parts)
                return hours * 3600 + minutes * 60 + seconds
            elif len(parts) == 2:
                minutes, seconds = map(int, parts)
                return minutes * 60 + seconds
        except ValueError:
            pass

        return None

    @staticmethod
    def parse_published_date(entry) -> Optional[datetime]:
        """Extract published date (UTC) from feed entry."""
        if entry.get("published_parsed"):
            return datetime(*entry.published_parsed[:6])
        if entry.get("updated_parsed"):
            return datetime(*entry.updated_parsed[:6])
        return None

    @staticmethod
    def extract_audio_url(entry) -> Optional[str]:
        """Extract audio URL from feed entry enclosures or links."""
        enclosures = entry.get("enclosures", [])

        # Prefer an enclosure that declares an audio type
        for enclosure in enclosures:
            if enclosure.get("type", "").startswith("audio/"):
                url = enclosure.get("href") or enclosure.get("url")
                if url:
                    return url

        for enclosure in enclosures:
            url = enclosure.get("href") or enclosure.get("url")
            if url:
                return url

        for link in entry.get("links", []):
            if link.get("type", "").startswith("audio/"):
                return link.get("href")
            href = link.get("href", "")
            path = href.lower().split("?")[0]
            if ".mp3" in href.lower() or path.endswith(AUDIO_EXTENSIONS):
                return href

        return None

    def _fetch_feed_content(self, feed_url: str) -> str:
        """Fetch feed content using httpx (handles SSL properly)."""
        with httpx.Client(follow_redirects=True, timeout=self.timeout) as client:
            response = client.get(feed_url)
            response.raise_for_status()
            return response.text

    def parse(self, feed_url: str) -> ParsedFeed:
        """Fetch an RSS feed URL and return structured data."""
        try:
            content = self._fetch_feed_content(feed_url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FeedError(f"Failed to fetch feed: {str(e)}") from e
        return self.parse_content(content)

    def parse_content(self, content: str) -> ParsedFeed:
        """Parse raw feed XML."""
        feed = feedparser.parse(content)

        if feed.bozo and not feed.entries:
            raise FeedError(f"Failed to parse feed: {feed.bozo_exception}")

        feed_info = feed.feed
        title = feed_info.get("title", "Unknown Podcast")
        description = feed_info.get("description") or feed_info.get("subtitle")

        image_url = None
        if feed_info.get("image"):
            image_url = feed_info.image.get("href")
        if not image_url and feed_info.get("itunes_image"):
            image_url = feed_info.itunes_image.get("href")

        episodes = []
        for entry in feed.entries:
            audio_url = self.extract_audio_url(entry)

            # GUID - use id, guid, audio_url, then link/title
            guid = (
                entry.get("id")
                or entry.get("guid")
                or audio_url
                or entry.get("link")
                or entry.get("title")
            )
            if not guid:
                continue

            episodes.append(ParsedEpisode(
                title=entry.get("title", "Untitled Episode"),
                guid=guid,
                audio_url=audio_url,
                description=entry.get("summary") or entry.get("description"),
                published_at=self.parse_published_date(entry),
                duration_seconds=self.parse_duration(entry.get("itunes_duration"))
            ))

        return ParsedFeed(
            title=title,
            description=description,
            image_url=image_url,
            episodes=episodes
        )
