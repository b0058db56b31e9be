import anthropic
import json
import re
import logging
from typing import Optional
from dataclasses import dataclass, field, asdict

from ..config import get_settings

logger = logging.getLogger(__name__)

FAILED_SUMMARY_TEXT = "AI summary generation failed. Manual review required."


def truncate_transcript(transcript: str, limit: int) -> str:
    """Cut the transcript to the prompt budget, marking the cut."""
    if len(transcript) <= limit:
        return transcript
    return transcript[:limit] + " ...[truncated]"


def parse_json_response(response: str) -> Optional[dict]:
    """Parse JSON from Claude's response, handling potential formatting issues."""
    if not response:
        return None

    # Try direct JSON parse first
    try:
        result = json.loads(response)
        return result if isinstance(result, dict) else None
    except json.JSONDecodeError:
        pass

    # Try to extract JSON from markdown code block
    json_match = re.search(r'```(?:json)?\s*(\{.*?\})\s*```', response, re.DOTALL)
    if json_match:
        try:
            return json.loads(json_match.group(1))
        except json.JSONDecodeError:
            pass

    # Try to find JSON object in response
    json_match = re.search(r'\{.*\}', response, re.DOTALL)
    if json_match:
        try:
            return json.loads(json_match.group(0))
        except json.JSONDecodeError:
            pass

    return None


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


@dataclass
class EpisodeSummary:
    """Enhanced summary of a podcast episode."""
    guest: str
    summary_paragraphs: list[str]
    key_topics: list[str] = field(default_factory=list)
    main_arguments: list[str] = field(default_factory=list)
    notable_quotes: list[dict] = field(default_factory=list)  # {"speaker", "quote", "context"}

    @classmethod
    def failed(cls) -> "EpisodeSummary":
        return cls(guest="Unknown", summary_paragraphs=[FAILED_SUMMARY_TEXT])

    @classmethod
    def from_dict(cls, data: dict) -> "EpisodeSummary":
        quotes = []
        for quote in data.get("notable_quotes") or []:
            if isinstance(quote, dict) and quote.get("quote"):
                quotes.append({
                    "speaker": str(quote.get("speaker", "")),
                    "quote": str(quote["quote"]),
                    "context": str(quote.get("context", "")),
                })
        return cls(
            guest=str(data.get("guest") or "Unknown"),
            summary_paragraphs=_string_list(data.get("summary_paragraphs")),
            key_topics=_string_list(data.get("key_topics")),
            main_arguments=_string_list(data.get("main_arguments")),
            notable_quotes=quotes,
        )

    def to_dict(self) -> dict:
        return asdict(self)


class SummarizerService:
    def __init__(self, client: Optional[anthropic.AsyncAnthropic] = None):
        settings = get_settings()
        self.client = client or anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.model = settings.summary_model
        self.max_tokens = settings.summary_max_tokens
        self.transcript_chars = settings.summary_transcript_chars

    def _create_summary_prompt(self, title: str, description: Optional[str], transcript: str) -> str:
        return f"""Analyze this podcast episode and provide an enhanced summary in the following JSON format:

{{
  "guest": "Guest name(s) or 'Host only'",
  "summary_paragraphs": [
    "2-3 detailed paragraphs about the episode content, main arguments, and key insights discussed",
    "Include specific details about what was covered and the guest's expertise/perspective",
    "Mention any particularly interesting or controversial points made"
  ],
  "key_topics": ["list", "of", "main", "topics", "discussed"],
  "main_arguments": ["key", "arguments", "or", "positions", "presented"],
  "notable_quotes": [
    {{"speaker": "Name", "quote": "Notable quote from the episode", "context": "Why this quote is significant"}}
  ]
}}

Episode: "{title}"
Description: "{description or ''}"
Transcript: "{truncate_transcript(transcript, self.transcript_chars)}"

Provide only the JSON response, no additional text."""

    async def summarize(self, title: str, description: Optional[str], transcript: str) -> EpisodeSummary:
        """Generate an enhanced summary; falls back to a placeholder on any failure."""
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "user", "content": self._create_summary_prompt(title, description, transcript)}
                ]
            )
            result = parse_json_response(message.content[0].text)
        except Exception as e:
            logger.error(f"Summary generation failed for '{title}': {e}")
            return EpisodeSummary.failed()

        if result is None:
            logger.warning(f"Summary response for '{title}' was not valid JSON")
            return EpisodeSummary.failed()

        summary = EpisodeSummary.from_dict(result)
        if not summary.summary_paragraphs:
            summary.summary_paragraphs = [FAILED_SUMMARY_TEXT]
        return summary
