from .database import SessionLocal
from .services.digest import DigestService
from .services.feed_parser import FeedParser
from .services.monitor import FeedMonitor


def get_feed_parser() -> FeedParser:
    return FeedParser()


def get_monitor() -> FeedMonitor:
    return FeedMonitor(SessionLocal)


def get_digest_service() -> DigestService:
    return DigestService(SessionLocal)
