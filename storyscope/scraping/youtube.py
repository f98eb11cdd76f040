"""YouTube search scraping: URL building, result parsing and fetching."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional
from urllib.parse import quote

import requests
from bs4 import BeautifulSoup
from requests import Session

from storyscope import config
from storyscope.models.content import ContentItem

logger = logging.getLogger(__name__)

SEARCH_BASE_URL = "https://www.youtube.com/results"
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

DATE_FILTERS: Dict[str, str] = {
    "hour": "EgIIAQ%253D%253D",
    "day": "EgIIAg%253D%253D",
    "week": "EgIIAw%253D%253D",
    "month": "EgIIBA%253D%253D",
    "year": "EgIIBQ%253D%253D",
}

_VIDEO_ID_RE = re.compile(r"watch\?v=([^&]+)")
_CHANNEL_ID_RE = re.compile(r"channel/([^/?#]+)")
_VALID_VIDEO_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_INITIAL_DATA_RE = re.compile(r"var ytInitialData\s*=\s*(\{.*?\});\s*</script>", re.S)
_RELATIVE_DATE_RE = re.compile(r"(\d+)")

Fetcher = Callable[[str], str]


def build_search_url(query: str, date_filter: str = "month", **filters: str) -> str:
    """Build a search results URL with the date filter token and extras.

    Supported extra filters are ``duration``, ``type`` and ``sort_by``.
    Unknown date filters fall back to ``month``.
    """
    token = DATE_FILTERS.get(date_filter, DATE_FILTERS["month"])
    url = f"{SEARCH_BASE_URL}?search_query={quote(query, safe='')}&sp={token}"
    if filters.get("duration"):
        url += f"&duration={filters['duration']}"
    if filters.get("type"):
        url += f"&type={filters['type']}"
    if filters.get("sort_by"):
        url += f"&sort={filters['sort_by']}"
    return url


def _text(element: Any) -> str:
    if element is None:
        return ""
    return element.get_text(strip=True)


def parse_search_results(html: str, max_results: int = 20) -> List[ContentItem]:
    """Extract videos from rendered search-result markup.

    Falls back to the embedded ``ytInitialData`` payload when the page was
    served without rendered ``ytd-video-renderer`` elements.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    renderers = soup.select("ytd-video-renderer")
    if not renderers:
        return parse_initial_data(html, max_results)

    items: List[ContentItem] = []
    for element in renderers[:max_results]:
        link = element.select_one("a#video-title")
        href = link.get("href", "") if link else ""
        id_match = _VIDEO_ID_RE.search(href)
        video_id = id_match.group(1) if id_match else ""
        title = _text(link)
        if not video_id or not title:
            continue

        image = element.select_one("img")
        channel = element.select_one("a.yt-simple-endpoint.style-scope.yt-formatted-string")
        channel_href = channel.get("href", "") if channel else ""
        channel_match = _CHANNEL_ID_RE.search(channel_href)
        metadata = element.select("#metadata-line span")

        items.append(
            ContentItem(
                video_id=video_id,
                title=title,
                channel_name=_text(channel),
                channel_id=channel_match.group(1) if channel_match else None,
                description=_text(element.select_one("#description-text")),
                view_count=_text(metadata[0]) if len(metadata) > 0 else "",
                upload_date=_text(metadata[1]) if len(metadata) > 1 else "",
                duration=_text(
                    element.select_one(
                        "span.style-scope.ytd-thumbnail-overlay-time-status-renderer"
                    )
                ),
                thumbnail_url=(image.get("src") or None) if image else None,
                video_url=WATCH_URL.format(video_id=video_id),
                platform="youtube",
                extra={
                    "channel_url": channel_href,
                    "is_verified": element.select_one(".badge-style-type-verified")
                    is not None,
                    "is_live": element.select_one(".badge-style-type-live-now")
                    is not None,
                    "is_shorts": element.select_one(".badge-style-type-shorts")
                    is not None,
                },
            )
        )
    return items


def _runs_text(node: Any) -> str:
    if not isinstance(node, Mapping):
        return ""
    if "simpleText" in node:
        return str(node["simpleText"])
    return "".join(str(run.get("text", "")) for run in node.get("runs", []))


def _iter_video_renderers(node: Any) -> Iterator[Mapping[str, Any]]:
    if isinstance(node, Mapping):
        renderer = node.get("videoRenderer")
        if isinstance(renderer, Mapping):
            yield renderer
        for value in node.values():
            yield from _iter_video_renderers(value)
    elif isinstance(node, list):
        for value in node:
            yield from _iter_video_renderers(value)


def parse_initial_data(html: str, max_results: int = 20) -> List[ContentItem]:
    """Extract videos from the ``ytInitialData`` JSON embedded in raw HTML."""
    match = _INITIAL_DATA_RE.search(html or "")
    if not match:
        return []
    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError as exc:
        logger.warning("Could not decode ytInitialData: %s", exc)
        return []

    items: List[ContentItem] = []
    for renderer in _iter_video_renderers(data):
        if len(items) >= max_results:
            break
        video_id = renderer.get("videoId")
        title = _runs_text(renderer.get("title"))
        if not video_id or not title:
            continue

        owner = renderer.get("ownerText") or {}
        runs = owner.get("runs") or [{}]
        browse = runs[0].get("navigationEndpoint", {}).get("browseEndpoint", {})
        thumbnails = renderer.get("thumbnail", {}).get("thumbnails") or [{}]
        snippets = renderer.get("detailedMetadataSnippets") or [{}]
        badges = [
            badge.get("metadataBadgeRenderer", {}).get("style", "")
            for badge in renderer.get("ownerBadges", []) + renderer.get("badges", [])
        ]

        items.append(
            ContentItem(
                video_id=str(video_id),
                title=title,
                channel_name=_runs_text(owner),
                channel_id=browse.get("browseId"),
                description=_runs_text(snippets[0].get("snippetText")),
                view_count=_runs_text(renderer.get("viewCountText")),
                upload_date=_runs_text(renderer.get("publishedTimeText")),
                duration=_runs_text(renderer.get("lengthText")),
                thumbnail_url=thumbnails[-1].get("url"),
                video_url=WATCH_URL.format(video_id=video_id),
                platform="youtube",
                extra={
                    "channel_url": browse.get("canonicalBaseUrl", ""),
                    "is_verified": any("VERIFIED" in style for style in badges),
                    "is_live": any("LIVE" in style for style in badges),
                    "is_shorts": False,
                },
            )
        )
    return items


def parse_upload_date(value: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Resolve relative upload text such as ``"2 weeks ago"`` to a datetime."""
    if not value:
        return None
    now = now or datetime.utcnow()
    number_match = _RELATIVE_DATE_RE.search(value)
    amount = int(number_match.group(1)) if number_match else 1

    if "hour" in value:
        return now - timedelta(hours=amount)
    if "day" in value:
        return now - timedelta(days=amount)
    if "week" in value:
        return now - timedelta(weeks=amount)
    if "month" in value:
        return now - timedelta(days=30 * amount)
    if "year" in value:
        return now - timedelta(days=365 * amount)
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def validate_video_data(item: ContentItem) -> bool:
    missing = [
        name
        for name, value in (
            ("video_id", item.video_id),
            ("title", item.title),
            ("channel_name", item.channel_name),
        )
        if not value
    ]
    if missing:
        logger.warning("Missing required fields: %s", ", ".join(missing))
        return False
    if not _VALID_VIDEO_ID_RE.match(item.video_id):
        logger.warning("Invalid video ID format: %s", item.video_id)
        return False
    return True


def get_channel_url(identifier: str) -> str:
    if identifier.startswith("UC") and len(identifier) == 24:
        return f"https://www.youtube.com/channel/{identifier}"
    return f"https://www.youtube.com/@{identifier}"


class YouTubeScraper:
    """Search YouTube and return normalised ``ContentItem`` records.

    Pages are fetched with a requests session unless a ``fetcher`` callable
    is supplied (for example one backed by a headless browser). Fetching
    runs in a worker thread so the event loop stays free.
    """

    def __init__(
        self,
        *,
        fetcher: Optional[Fetcher] = None,
        http_session: Optional[Session] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self._owns_session = http_session is None
        self.http_session = http_session or requests.Session()
        if user_agent or http_session is None:
            self.http_session.headers["User-Agent"] = (
                user_agent or config.SCRAPER_USER_AGENT
            )
        self.http_session.headers.setdefault("Accept-Language", "en-US,en;q=0.9")
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        self._fetcher = fetcher or self._fetch

    def _fetch(self, url: str) -> str:
        response = self.http_session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.text

    async def search(
        self, query: str, time_filter: str = "month", max_results: int = 20
    ) -> List[ContentItem]:
        url = build_search_url(query, time_filter)
        logger.info("Searching YouTube for %r (%s)", query, time_filter)
        html = await asyncio.to_thread(self._fetcher, url)
        items = parse_search_results(html, max_results)
        logger.info("Found %d videos for %r", len(items), query)
        return items

    async def close(self) -> None:
        if self._owns_session:
            self.http_session.close()
