import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from bs4 import BeautifulSoup

StoryRef = int


class StoryFetchError(Exception):
    pass


class ListFetchFailed(StoryFetchError):
    """The top stories id list could not be retrieved."""


class DetailFetchFailed(StoryFetchError):
    """A single story record could not be retrieved."""

    def __init__(self, story_id: StoryRef, reason: str):
        super().__init__(f"story {story_id}: {reason}")
        self.story_id = story_id
        self.reason = reason


def clean_html(html_content: str | bytes | None) -> str:
    if not html_content:
        return ""
    try:
        text = (
            html_content.decode("utf-8", errors="ignore")
            if isinstance(html_content, (bytes, bytearray))
            else str(html_content)
        )
        soup = BeautifulSoup(text, "html.parser")
        return soup.get_text(separator="\n").strip()
    except Exception as e:
        logging.error(f"Failed to clean HTML: {e}")
        return ""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Any) -> datetime:
    # bool is an int subclass but never a timestamp
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return _now()
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return _now()


@dataclass(frozen=True)
class Story:
    title: str
    url: Optional[str]
    time: datetime = field(default_factory=_now)
    id: Optional[StoryRef] = None
    text: str = ""

    @classmethod
    def from_record(cls, record: Any) -> "Story":
        """Build a Story from a raw item record, defaulting bad fields.

        The record may be missing keys, hold values of the wrong type, or
        not be a mapping at all (deleted items come back as ``null``).
        """
        if not isinstance(record, dict):
            record = {}

        title = record.get("title")
        url = record.get("url")
        story_id = record.get("id")
        text = record.get("text")
        return cls(
            title=title if isinstance(title, str) else "",
            url=url if isinstance(url, str) and url else None,
            time=_parse_time(record.get("time")),
            id=story_id if isinstance(story_id, int) and not isinstance(story_id, bool) else None,
            text=clean_html(text) if isinstance(text, str) else "",
        )

    @property
    def hn_url(self) -> Optional[str]:
        if self.id is None:
            return None
        return f"https://news.ycombinator.com/item?id={self.id}"
