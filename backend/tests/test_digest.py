from datetime import datetime, timedelta

import pytest

from podcast_monitor import models
from podcast_monitor.services.digest import (
    DigestService,
    apple_podcasts_url,
    format_duration,
    format_long_date,
    format_time,
)
from podcast_monitor.services.mailer import MailError

from conftest import FakeMailer

NOW = datetime(2026, 10, 16, 8, 0, 0)


@pytest.mark.parametrize("seconds, expected", [
    (None, "Unknown duration"),
    (0, "Unknown duration"),
    (59, "0m"),
    (1800, "30m"),
    (3723, "1h 2m"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


@pytest.mark.parametrize("seconds, expected", [
    (0, "0:00"),
    (65, "1:05"),
    (3725, "1:02:05"),
])
def test_format_time(seconds, expected):
    assert format_time(seconds) == expected


def test_apple_podcasts_url_is_encoded():
    url = apple_podcasts_url("Tech & Life", "Episode #1")
    assert url == "https://podcasts.apple.com/search?term=Tech%20%26%20Life%20Episode%20%231"


def test_format_long_date():
    assert format_long_date(NOW) == "Friday, October 16, 2026"


def _seed(db):
    podcast = models.Podcast(name="Test Cast", rss_url="https://example.com/feed.xml")
    topic = models.InterestTopic(topic="Climate")
    db.add_all([podcast, topic])
    db.flush()

    regular = models.Episode(
        podcast=podcast, guid="r", title="Regular <b>news</b>", status="completed",
        published_at=NOW - timedelta(hours=2), duration_seconds=1800,
        ai_summary={"guest": "Host only", "summary_paragraphs": ["Weekly roundup."]},
    )
    priority = models.Episode(
        podcast=podcast, guid="p", title="All about climate", status="completed",
        published_at=NOW - timedelta(hours=5), duration_seconds=3723, is_priority=True,
        priority_topics=["Climate"],
        ai_summary={"guest": "Dr. Green", "summary_paragraphs": ["Deep dive."], "priority_episode": True},
    )
    stale = models.Episode(
        podcast=podcast, guid="s", title="Last week", status="completed",
        published_at=NOW - timedelta(days=3),
    )
    pending = models.Episode(
        podcast=podcast, guid="u", title="Not yet processed", status="pending",
        published_at=NOW - timedelta(hours=1),
    )
    priority.topic_flags.append(models.TopicFlag(
        topic=topic, timestamp_start=3725, timestamp_end=3800,
        snippet="Oceans are warming", analysis="Explains ocean heat content.", relevance_score=0.9,
    ))
    db.add_all([regular, priority, stale, pending])
    db.commit()


def _set_email(db, email="listener@example.com"):
    db.add(models.UserSettings(email=email))
    db.commit()


def test_no_recipient_means_no_mail(db, digest_service, mailer):
    _seed(db)

    result = digest_service.send_daily_digest(now=NOW)

    assert result.sent is False
    assert result.message == "No email configured"
    assert mailer.sent == []


def test_no_recent_episodes_means_no_mail(db, digest_service, mailer):
    _set_email(db)

    result = digest_service.send_daily_digest(now=NOW)

    assert result.sent is False
    assert result.message == "No new episodes to digest"
    assert mailer.sent == []


def test_digest_is_sent(db, digest_service, mailer):
    _seed(db)
    _set_email(db)

    result = digest_service.send_daily_digest(now=NOW)

    assert result.sent is True
    assert result.recipient == "listener@example.com"
    assert result.episode_count == 2
    assert result.priority_count == 1

    mail = mailer.sent[0]
    assert mail["to"] == "listener@example.com"
    assert mail["subject"] == "Your Daily Podcast Digest - 10/16/2026"
    assert "Friday, October 16, 2026" in mail["html"]
    assert "Last week" not in mail["html"]
    assert "Not yet processed" not in mail["html"]


def test_priority_section_comes_first(db, digest_service, mailer):
    _seed(db)
    _set_email(db)

    digest_service.send_daily_digest(now=NOW)
    html = mailer.sent[0]["html"]

    assert html.index("Priority Episodes") < html.index("All about climate")
    assert html.index("All about climate") < html.index("Recent Episodes")
    assert html.index("Recent Episodes") < html.index("Regular &lt;b&gt;news&lt;/b&gt;")


def test_episode_details_are_rendered(db, digest_service, mailer):
    _seed(db)
    _set_email(db)

    digest_service.send_daily_digest(now=NOW)
    html = mailer.sent[0]["html"]

    assert "PRIORITY LISTEN!" in html
    assert "Dr. Green" in html
    assert "1h 2m" in html
    assert "Deep dive." in html
    assert "Explains ocean heat content." in html
    assert "1:02:05" in html
    assert "&amp;t=3725" in html
    # Titles are escaped
    assert "<b>news</b>" not in html
    assert "[PRIORITY] All about climate" in mailer.sent[0]["text"]


def test_fallback_recipient(db, session_factory, mailer):
    _seed(db)
    service = DigestService(session_factory, mailer=mailer, window_hours=24)
    service.fallback_recipient = "fallback@example.com"

    result = service.send_daily_digest(now=NOW)

    assert result.sent is True
    assert mailer.sent[0]["to"] == "fallback@example.com"


def test_mail_failure_propagates(db, session_factory):
    _seed(db)
    _set_email(db)
    service = DigestService(session_factory, mailer=FakeMailer(error=MailError("relay down")))

    with pytest.raises(MailError):
        service.send_daily_digest(now=NOW)


def test_dates_follow_configured_timezone(db, session_factory, mailer):
    _seed(db)
    _set_email(db)
    service = DigestService(session_factory, mailer=mailer, window_hours=24, tz="Pacific/Kiritimati")

    # 12:00 UTC is already 02:00 the next day at UTC+14
    service.send_daily_digest(now=NOW + timedelta(hours=4))

    mail = mailer.sent[0]
    assert mail["subject"] == "Your Daily Podcast Digest - 10/17/2026"
    assert "Saturday, October 17, 2026" in mail["html"]
    assert "All about climate" in mail["html"]
