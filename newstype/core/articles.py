"""Article, quota and page models shared by the gateway and the controller."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

NO_NEWS_ID = "no-news"
ERROR_ID = "error"
QUOTA_EXCEEDED_ID = "quota-exceeded"
PLACEHOLDER_IDS = frozenset({NO_NEWS_ID, ERROR_ID, QUOTA_EXCEEDED_ID})

NO_NEWS_MESSAGE = "No news available at the moment. Please try another category or refresh."
LOAD_FAILED_MESSAGE = "Failed to load news. Please try again."
QUOTA_EXCEEDED_MESSAGE = "API quota exceeded. Please try again later."

_OPTIONAL_FIELDS = (
    "image",
    "author",
    "authors",
    "source_country",
    "language",
    "summary",
    "sentiment",
    "video",
)

_TAG_RE = re.compile(r"<[^>]*>")
_LINE_BREAK_RE = re.compile(r"\r\n?")
_NEWLINES_RE = re.compile(r"\n{2,}")


def build_target_text(title: str, body: Optional[str]) -> str:
    """Join title and body into typeable text.

    HTML tags are stripped from the body and its entities decoded. CR and
    CRLF line breaks become plain newlines, the result is trimmed and any run
    of blank lines is collapsed to a single newline.
    """
    full_text = f"{title or ''}\n\n"
    if body:
        full_text += html.unescape(_TAG_RE.sub("", body)).replace("\xa0", " ")
    full_text = _LINE_BREAK_RE.sub("\n", full_text)
    return _NEWLINES_RE.sub("\n", full_text.strip())


@dataclass(frozen=True)
class Article:
    id: Union[int, str]
    title: str
    text: str
    url: str = ""
    publish_date: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_placeholder(self) -> bool:
        return self.id in PLACEHOLDER_IDS

    @classmethod
    def from_payload(cls, raw: Dict[str, Any]) -> "Article":
        """Build an article from a provider record, preparing its target text."""
        if not isinstance(raw, dict):
            raise ValueError(f"article record must be an object, got {type(raw).__name__}")
        if "id" not in raw:
            raise ValueError("article record has no 'id'")
        title = str(raw.get("title") or "")
        metadata = {key: raw[key] for key in _OPTIONAL_FIELDS if raw.get(key) is not None}
        return cls(
            id=raw["id"],
            title=title,
            text=build_target_text(title, raw.get("text")),
            url=str(raw.get("url") or ""),
            publish_date=str(raw.get("publish_date") or ""),
            metadata=metadata,
        )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def no_news_placeholder() -> Article:
    return Article(id=NO_NEWS_ID, title="No news available", text=NO_NEWS_MESSAGE, publish_date=_now_iso())


def error_placeholder(message: str = LOAD_FAILED_MESSAGE) -> Article:
    return Article(id=ERROR_ID, title="Error loading news", text=message, publish_date=_now_iso())


def quota_placeholder() -> Article:
    return Article(id=QUOTA_EXCEEDED_ID, title="Quota exceeded", text=QUOTA_EXCEEDED_MESSAGE, publish_date=_now_iso())


@dataclass(frozen=True)
class QuotaSnapshot:
    """Provider call budget as reported with the most recent response."""

    requested: int = 0
    used: int = 0
    remaining: int = 0

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0

    @property
    def total(self) -> int:
        return self.used + self.remaining

    @property
    def used_percent(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.used / self.total * 100)

    @classmethod
    def from_relay(cls, raw: Dict[str, Any]) -> "QuotaSnapshot":
        return cls(
            requested=int(raw.get("request", 0) or 0),
            used=int(raw.get("used", 0) or 0),
            remaining=int(raw.get("left", 0) or 0),
        )

    def to_relay(self) -> Dict[str, int]:
        return {"request": self.requested, "used": self.used, "left": self.remaining}


@dataclass(frozen=True)
class NewsPage:
    """Flat list of articles returned by one gateway call."""

    articles: List[Article]
    available: int
    quota: Optional[QuotaSnapshot] = None
