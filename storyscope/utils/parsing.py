"""Parsing helpers for scraped display strings (views, durations, text)."""

from __future__ import annotations

import html
import re
from datetime import datetime, timezone
from typing import Optional

_VIEW_CLEAN_RE = re.compile(r"[^0-9.KMB]", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_ISO_DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")

POSITIVE_WORDS = frozenset(
    {"good", "great", "amazing", "awesome", "love", "like", "excellent", "fantastic"}
)
NEGATIVE_WORDS = frozenset(
    {"bad", "terrible", "awful", "hate", "dislike", "horrible", "worst", "stupid"}
)


def parse_view_count(value: Optional[str | int | float]) -> int:
    """
    Convert a display view count into an integer.

    Examples:
        parse_view_count("1.2M views") -> 1200000
        parse_view_count("15K views") -> 15000
        parse_view_count("842 views") -> 842
    """
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)

    cleaned = _VIEW_CLEAN_RE.sub("", value)
    match = re.match(r"[0-9]*\.?[0-9]+", cleaned)
    if not match:
        return 0
    number = float(match.group(0))

    upper = cleaned.upper()
    if "B" in upper:
        return round(number * 1_000_000_000)
    if "M" in upper:
        return round(number * 1_000_000)
    if "K" in upper:
        return round(number * 1_000)
    return round(number)


def parse_duration(value: Optional[str]) -> int:
    """Convert ``"10:30"``, ``"1:05:20"`` or ISO ``"PT15M33S"`` into seconds."""
    if not value:
        return 0
    value = value.strip()
    iso_match = _ISO_DURATION_RE.fullmatch(value)
    if iso_match:
        hours, minutes, seconds = (int(part or 0) for part in iso_match.groups())
        return hours * 3600 + minutes * 60 + seconds
    try:
        parts = [int(part) for part in value.split(":")]
    except ValueError:
        return 0

    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    return 0


def format_duration(seconds: int) -> str:
    if seconds < 0:
        return "0:00"
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def clean_html_text(value: Optional[str]) -> str:
    """Unescape HTML entities and collapse surrounding whitespace."""
    if not value:
        return ""
    return html.unescape(value).strip()


def word_count(text: Optional[str]) -> int:
    if not text or not text.strip():
        return 0
    return len(_WHITESPACE_RE.split(text.strip()))


def keyword_sentiment(text: Optional[str]) -> str:
    """Very small keyword-count sentiment used for comment previews."""
    if not text:
        return "neutral"
    words = text.lower().split()
    positive = sum(1 for word in words if word in POSITIVE_WORDS)
    negative = sum(1 for word in words if word in NEGATIVE_WORDS)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def format_time_ago(created: datetime, now: Optional[datetime] = None) -> str:
    """Render a timestamp as ``"3 days ago"`` style relative text."""
    now = now or datetime.now(timezone.utc)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    seconds = max(0, int((now - created).total_seconds()))
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days} days ago"
    if hours > 0:
        return f"{hours} hours ago"
    if minutes > 0:
        return f"{minutes} minutes ago"
    return "just now"
