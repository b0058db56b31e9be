# Services package
from .feed_parser import FeedParser, FeedError, select_new_episodes
from .audio import AudioService, AudioTooLargeError
from .transcription import TranscriptionService, TranscriptionError, get_transcription_service
from .summarizer import SummarizerService, EpisodeSummary
from .topic_flagger import TopicFlagger, TopicAnalysis
from .monitor import FeedMonitor, FeedCheckResult
from .mailer import Mailer, MailError
from .digest import DigestService, DigestResult
from .scheduler import SchedulerService, get_scheduler
