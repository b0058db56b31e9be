import anthropic
import logging
from typing import Optional, Sequence
from dataclasses import dataclass, field

from ..config import get_settings
from .summarizer import parse_json_response, truncate_transcript

logger = logging.getLogger(__name__)


@dataclass
class FlaggedSection:
    topic_id: int
    topic: str
    timestamp_start: int
    timestamp_end: int
    snippet: str
    analysis: str
    relevance_score: float


@dataclass
class TopicAnalysis:
    priority_episode: bool = False
    priority_topics: list[str] = field(default_factory=list)
    flags: list[FlaggedSection] = field(default_factory=list)


def _to_seconds(value) -> int:
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


def _to_score(value) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return min(1.0, max(0.0, score))


def build_topic_analysis(result: dict, topics: Sequence) -> TopicAnalysis:
    """
    Convert the model's JSON reply into flags bound to known topics.

    `topics` are objects with `id` and `topic` attributes. Flags naming a
    topic that is not in the list are dropped.
    """
    by_name = {t.topic.strip().lower(): t for t in topics}

    flags = []
    for raw in result.get("topic_flags") or []:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("topic", "")).strip().lower()
        topic = by_name.get(name)
        if topic is None:
            logger.debug(f"Ignoring flag for unknown topic '{raw.get('topic')}'")
            continue

        start = _to_seconds(raw.get("timestamp_start"))
        end = max(start, _to_seconds(raw.get("timestamp_end")))
        flags.append(FlaggedSection(
            topic_id=topic.id,
            topic=topic.topic,
            timestamp_start=start,
            timestamp_end=end,
            snippet=str(raw.get("snippet") or ""),
            analysis=str(raw.get("analysis") or ""),
            relevance_score=_to_score(raw.get("relevance_score")),
        ))

    priority_topics = [
        by_name[str(name).strip().lower()].topic
        for name in result.get("priority_topics") or []
        if str(name).strip().lower() in by_name
    ]
    return TopicAnalysis(
        priority_episode=bool(result.get("priority_episode")),
        priority_topics=priority_topics,
        flags=flags,
    )


class TopicFlagger:
    """Find sections of a transcript that discuss the user's interest topics."""

    def __init__(self, client: Optional[anthropic.AsyncAnthropic] = None):
        settings = get_settings()
        self.client = client or anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.model = settings.summary_model
        self.max_tokens = settings.flagging_max_tokens
        self.transcript_chars = settings.flagging_transcript_chars

    def _create_flagging_prompt(self, title: str, transcript: str, topics: Sequence) -> str:
        topics_list = ", ".join(t.topic for t in topics)
        return f"""Analyze this podcast transcript for mentions of these interest topics: {topics_list}

For each topic that is substantially discussed (not just mentioned in passing), provide detailed analysis with precise timestamps.

If an entire episode is heavily focused on one or more topics, mark it as a priority episode.

Return JSON in this format:
{{
  "priority_episode": false,
  "priority_topics": ["topics that make this a priority episode"],
  "topic_flags": [
    {{
      "topic": "exact topic name from the list",
      "timestamp_start": 0,
      "timestamp_end": 0,
      "snippet": "Key quote or description of what was said",
      "analysis": "2-4 sentences explaining why this section is relevant to the topic and what insights or perspectives were shared.",
      "relevance_score": 0.5
    }}
  ]
}}

Timestamps are whole seconds into the episode. relevance_score is between 0.1 and 1.0.

Episode: "{title}"
Transcript: "{truncate_transcript(transcript, self.transcript_chars)}"

Only include topics that are meaningfully discussed. Return only JSON."""

    async def flag(self, title: str, transcript: str, topics: Sequence) -> TopicAnalysis:
        """Flag interest topics; returns an empty analysis on any failure."""
        if not topics:
            return TopicAnalysis()

        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "user", "content": self._create_flagging_prompt(title, transcript, topics)}
                ]
            )
            result = parse_json_response(message.content[0].text)
        except Exception as e:
            logger.error(f"Topic flagging failed for '{title}': {e}")
            return TopicAnalysis()

        if result is None:
            logger.warning(f"Topic flagging response for '{title}' was not valid JSON")
            return TopicAnalysis()

        return build_topic_analysis(result, topics)
