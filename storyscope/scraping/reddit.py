"""Reddit OAuth API client producing posts for the analysis pipeline."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests
from requests import Session
from requests.exceptions import RequestException

from storyscope import config
from storyscope.models.content import ContentItem
from storyscope.utils.parsing import format_time_ago

from .reddit_parser import parse_posts_for_analysis

logger = logging.getLogger(__name__)

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
API_BASE = "https://oauth.reddit.com"
TOKEN_REFRESH_MARGIN_SECONDS = 60
MAX_LIMIT = 100

_RETRYABLE_STATUS_CODES = {429}


class RedditConfigurationError(RuntimeError):
    """Raised when Reddit API credentials are missing."""


class RedditAPIError(RuntimeError):
    """Raised when the Reddit API keeps failing after retries."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class RedditPost:
    """A Reddit submission with the fields the parser relies on."""

    post_id: str
    title: str
    subreddit: str
    author: str = ""
    score: int = 0
    comment_count: int = 0
    content: str = ""
    post_type: str = "text"
    has_image: bool = False
    has_video: bool = False
    awards_count: int = 0
    timestamp: str = ""
    time_text: str = ""
    post_url: str = ""
    external_url: Optional[str] = None
    upvote_ratio: float = 0.0
    is_stickied: bool = False
    is_nsfw: bool = False
    flair: Optional[str] = None
    scraped_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())


def determine_post_type(post: Mapping[str, Any]) -> str:
    url = post.get("url") or ""
    if post.get("is_self"):
        return "text"
    if post.get("is_video") or post.get("post_hint") == "hosted:video":
        return "video"
    if post.get("post_hint") == "image" or "i.redd.it" in url:
        return "image"
    if url and url != f"https://www.reddit.com{post.get('permalink', '')}":
        return "link"
    return "text"


def parse_posts_from_response(payload: Any) -> List[RedditPost]:
    """Convert a listing payload into ``RedditPost`` records."""
    if not isinstance(payload, Mapping):
        return []
    children = (payload.get("data") or {}).get("children") or []

    posts: List[RedditPost] = []
    for child in children:
        post = child.get("data") if isinstance(child, Mapping) else None
        if not post or not post.get("title"):
            continue

        url = post.get("url") or ""
        post_url = f"https://www.reddit.com{post.get('permalink', '')}"
        created = datetime.fromtimestamp(
            float(post.get("created_utc") or 0), tz=timezone.utc
        )
        posts.append(
            RedditPost(
                post_id=str(post.get("id", "")),
                title=post["title"],
                subreddit=post.get("subreddit", ""),
                author=post.get("author", ""),
                score=int(post.get("score") or 0),
                comment_count=int(post.get("num_comments") or 0),
                content=post.get("selftext") or "",
                post_type=determine_post_type(post),
                has_image=post.get("post_hint") == "image" or "i.redd.it" in url,
                has_video=post.get("post_hint") == "hosted:video"
                or bool(post.get("is_video")),
                awards_count=int(post.get("total_awards_received") or 0),
                timestamp=created.isoformat(),
                time_text=format_time_ago(created),
                post_url=post_url,
                external_url=url if url and url != post_url else None,
                upvote_ratio=float(post.get("upvote_ratio") or 0),
                is_stickied=bool(post.get("stickied")),
                is_nsfw=bool(post.get("over_18")),
                flair=post.get("link_flair_text"),
            )
        )
    return posts


class RedditScraper:
    """Search Reddit through the official OAuth API.

    Uses the client-credentials grant and refreshes the token shortly before
    it expires. HTTP 429 and 5xx responses are retried with exponential
    backoff plus jitter.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        *,
        user_agent: Optional[str] = None,
        http_session: Optional[Session] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id or config.REDDIT_CLIENT_ID
        self.client_secret = client_secret or config.REDDIT_CLIENT_SECRET
        if not self.client_id or not self.client_secret:
            raise RedditConfigurationError(
                "Reddit API credentials not found. Set REDDIT_CLIENT_ID and "
                "REDDIT_CLIENT_SECRET"
            )
        self.user_agent = user_agent or config.REDDIT_USER_AGENT
        self._owns_session = http_session is None
        self.http_session = http_session or requests.Session()
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        self.max_retries = max(
            1, max_retries if max_retries is not None else config.REDDIT_MAX_RETRIES
        )
        self.backoff_base = max(
            0.0,
            backoff_base if backoff_base is not None else config.REDDIT_BACKOFF_BASE,
        )
        self._sleep = sleep
        self._clock = clock
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    # Authentication

    def _fetch_access_token(self) -> None:
        response = self.http_session.post(
            TOKEN_URL,
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        self._access_token = payload["access_token"]
        self._token_expires_at = self._clock() + float(payload.get("expires_in", 3600))
        logger.info("Reddit API access token obtained")

    def _ensure_valid_token(self) -> None:
        if (
            not self._access_token
            or self._clock() >= self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS
        ):
            self._fetch_access_token()

    # Requests

    def _backoff_delay(self, attempt: int) -> float:
        return self.backoff_base * (2 ** (attempt - 1)) + random.uniform(
            0, self.backoff_base
        )

    def make_api_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        last_error = "Reddit API request failed"
        status_code: Optional[int] = None

        for attempt in range(1, self.max_retries + 1):
            self._ensure_valid_token()
            try:
                response = self.http_session.get(
                    f"{API_BASE}{endpoint}",
                    headers={
                        "Authorization": f"Bearer {self._access_token}",
                        "User-Agent": self.user_agent,
                    },
                    params=params or {},
                    timeout=self.timeout,
                )
            except RequestException as exc:
                last_error = str(exc)
                status_code = None
            else:
                status_code = response.status_code
                if status_code == 401:
                    # Token revoked early; force a refresh on the next attempt
                    self._access_token = None
                    last_error = "HTTP 401"
                elif status_code in _RETRYABLE_STATUS_CODES or status_code >= 500:
                    last_error = f"HTTP {status_code}"
                elif status_code >= 400:
                    raise RedditAPIError(f"HTTP {status_code}", status_code)
                else:
                    return response.json()

            if attempt < self.max_retries:
                delay = self._backoff_delay(attempt)
                logger.warning(
                    "Reddit request %s failed (%s), retry %d/%d in %.2fs",
                    endpoint,
                    last_error,
                    attempt,
                    self.max_retries,
                    delay,
                )
                self._sleep(delay)

        raise RedditAPIError(last_error, status_code)

    def search_posts(
        self,
        query: str,
        subreddit: Optional[str] = None,
        sort: str = "hot",
        time_filter: str = "week",
        max_results: int = 20,
    ) -> List[RedditPost]:
        params: Dict[str, Any] = {
            "q": query,
            "sort": sort,
            "t": time_filter,
            "limit": min(max_results, MAX_LIMIT),
        }
        if subreddit:
            endpoint = f"/r/{subreddit}/search"
            params["restrict_sr"] = True
        else:
            endpoint = "/search"
            params["type"] = "link"

        logger.info("Searching Reddit for %r", query)
        posts = parse_posts_from_response(self.make_api_request(endpoint, params))
        logger.info("Found %d Reddit posts", len(posts))
        return posts

    def get_subreddit_posts(
        self,
        subreddit: str,
        sort: str = "hot",
        time_filter: str = "week",
        max_results: int = 20,
    ) -> List[RedditPost]:
        data = self.make_api_request(
            f"/r/{subreddit}/{sort}",
            {"t": time_filter, "limit": min(max_results, MAX_LIMIT)},
        )
        posts = parse_posts_from_response(data)
        logger.info("Found %d posts from r/%s", len(posts), subreddit)
        return posts

    def get_post_comments(self, post_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Return the top comments of a post as ``author/text/score/time_ago`` dicts."""
        data = self.make_api_request(f"/comments/{post_id}", {"limit": 10})
        if not isinstance(data, list) or len(data) < 2:
            return []
        children = (data[1].get("data") or {}).get("children") or []
        comments = []
        for child in children:
            body = (child.get("data") or {}).get("body")
            if not body:
                continue
            comment = child["data"]
            created = datetime.fromtimestamp(
                float(comment.get("created_utc") or 0), tz=timezone.utc
            )
            comments.append(
                {
                    "author": comment.get("author", ""),
                    "text": body,
                    "score": int(comment.get("score") or 0),
                    "time_ago": format_time_ago(created),
                }
            )
            if len(comments) >= limit:
                break
        return comments

    # Pipeline scraper interface

    async def search(
        self, query: str, time_filter: str = "week", max_results: int = 20
    ) -> List[ContentItem]:
        posts = await asyncio.to_thread(
            self.search_posts,
            query,
            None,
            "hot",
            time_filter,
            max_results,
        )
        return parse_posts_for_analysis(posts)

    async def close(self) -> None:
        if self._owns_session:
            self.http_session.close()
