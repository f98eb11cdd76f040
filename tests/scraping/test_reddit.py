import asyncio
from typing import Any, List

import pytest
import requests

from storyscope import config
from storyscope.scraping.reddit import (
    API_BASE,
    TOKEN_URL,
    RedditAPIError,
    RedditConfigurationError,
    RedditScraper,
    determine_post_type,
    parse_posts_from_response,
)

HAUNTED_POST = {
    "id": "abc123",
    "title": "My house is haunted &amp; I can prove it",
    "subreddit": "Paranormal",
    "author": "night_owl",
    "score": 1523,
    "num_comments": 88,
    "selftext": "It started when we moved in.",
    "is_self": True,
    "permalink": "/r/Paranormal/comments/abc123/my_house/",
    "url": "https://www.reddit.com/r/Paranormal/comments/abc123/my_house/",
    "created_utc": 1_700_000_000,
    "upvote_ratio": 0.97,
    "link_flair_text": "True Story",
    "total_awards_received": 2,
}


def _listing(*posts):
    return {"data": {"children": [{"kind": "t3", "data": post} for post in posts]}}


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    def __init__(self, get_responses: List[Any], token_expires_in: int = 3600):
        self.get_responses = list(get_responses)
        self.token_expires_in = token_expires_in
        self.token_calls: List[dict] = []
        self.get_calls: List[dict] = []
        self.closed = False

    def post(self, url, **kwargs):
        self.token_calls.append({"url": url, **kwargs})
        return FakeResponse(
            payload={
                "access_token": f"token-{len(self.token_calls)}",
                "expires_in": self.token_expires_in,
            }
        )

    def get(self, url, **kwargs):
        self.get_calls.append({"url": url, **kwargs})
        outcome = self.get_responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _scraper(session, *, clock=None, sleeps=None, max_retries=3):
    recorded = sleeps if sleeps is not None else []
    return RedditScraper(
        "client",
        "secret",
        user_agent="StoryScopeTest/1.0",
        http_session=session,
        max_retries=max_retries,
        backoff_base=0.5,
        sleep=recorded.append,
        clock=clock or FakeClock(),
    )


def test_missing_credentials_raise(monkeypatch):
    monkeypatch.setattr(config, "REDDIT_CLIENT_ID", None)
    monkeypatch.setattr(config, "REDDIT_CLIENT_SECRET", None)

    with pytest.raises(RedditConfigurationError):
        RedditScraper()


def test_token_is_fetched_once_and_reused():
    session = FakeSession([FakeResponse(payload=_listing()), FakeResponse(payload=_listing())])
    scraper = _scraper(session)

    scraper.make_api_request("/search", {"q": "a"})
    scraper.make_api_request("/search", {"q": "b"})

    assert len(session.token_calls) == 1
    token_call = session.token_calls[0]
    assert token_call["url"] == TOKEN_URL
    assert token_call["auth"] == ("client", "secret")
    assert token_call["data"] == {"grant_type": "client_credentials"}
    assert session.get_calls[0]["url"] == f"{API_BASE}/search"
    assert session.get_calls[0]["headers"]["Authorization"] == "Bearer token-1"


def test_token_refreshes_before_expiry():
    clock = FakeClock()
    session = FakeSession([FakeResponse(payload={}), FakeResponse(payload={})])
    scraper = _scraper(session, clock=clock)

    scraper.make_api_request("/search")
    clock.now += 3600 - 30
    scraper.make_api_request("/search")

    assert len(session.token_calls) == 2
    assert session.get_calls[1]["headers"]["Authorization"] == "Bearer token-2"


def test_rate_limited_request_is_retried_with_backoff(monkeypatch):
    monkeypatch.setattr("storyscope.scraping.reddit.random.uniform", lambda a, b: 0.0)
    sleeps: List[float] = []
    session = FakeSession(
        [FakeResponse(429), FakeResponse(503), FakeResponse(payload={"ok": True})]
    )
    scraper = _scraper(session, sleeps=sleeps)

    assert scraper.make_api_request("/search") == {"ok": True}
    assert sleeps == [0.5, 1.0]


def test_client_errors_are_not_retried():
    sleeps: List[float] = []
    session = FakeSession([FakeResponse(404)])
    scraper = _scraper(session, sleeps=sleeps)

    with pytest.raises(RedditAPIError) as excinfo:
        scraper.make_api_request("/r/missing/hot")

    assert excinfo.value.status_code == 404
    assert sleeps == []


def test_unauthorized_response_forces_new_token():
    session = FakeSession([FakeResponse(401), FakeResponse(payload={"ok": True})])
    scraper = _scraper(session)

    assert scraper.make_api_request("/search") == {"ok": True}
    assert len(session.token_calls) == 2


def test_retries_exhausted_raise_last_error():
    session = FakeSession(
        [FakeResponse(500), requests.ConnectionError("reset"), FakeResponse(502)]
    )
    scraper = _scraper(session)

    with pytest.raises(RedditAPIError, match="HTTP 502") as excinfo:
        scraper.make_api_request("/search")

    assert excinfo.value.status_code == 502
    assert len(session.get_calls) == 3


def test_search_posts_in_subreddit():
    session = FakeSession([FakeResponse(payload=_listing(HAUNTED_POST))])
    scraper = _scraper(session)

    posts = scraper.search_posts("haunted", subreddit="Paranormal", max_results=500)

    call = session.get_calls[0]
    assert call["url"] == f"{API_BASE}/r/Paranormal/search"
    assert call["params"]["restrict_sr"] is True
    assert call["params"]["limit"] == 100
    assert posts[0].post_id == "abc123"
    assert posts[0].score == 1523
    assert posts[0].external_url is None


def test_get_subreddit_posts_uses_sort_endpoint():
    session = FakeSession([FakeResponse(payload=_listing(HAUNTED_POST))])
    scraper = _scraper(session)

    posts = scraper.get_subreddit_posts("Paranormal", sort="top", time_filter="year")

    call = session.get_calls[0]
    assert call["url"] == f"{API_BASE}/r/Paranormal/top"
    assert call["params"] == {"t": "year", "limit": 20}
    assert [post.post_id for post in posts] == ["abc123"]


def test_async_search_returns_content_items():
    session = FakeSession([FakeResponse(payload=_listing(HAUNTED_POST))])
    scraper = _scraper(session)

    items = asyncio.run(scraper.search("haunted", "month", 5))

    assert items[0].platform == "reddit"
    assert items[0].channel_name == "r/Paranormal"
    assert items[0].title == "My house is haunted & I can prove it"
    params = session.get_calls[0]["params"]
    assert params["t"] == "month"
    assert params["type"] == "link"


def test_close_leaves_borrowed_session_open():
    session = FakeSession([])
    asyncio.run(_scraper(session).close())

    assert session.closed is False


def test_get_post_comments_limits_and_skips_empty():
    comments_payload = [
        _listing(HAUNTED_POST),
        {
            "data": {
                "children": [
                    {"data": {"author": "a", "body": "I love this", "score": 4, "created_utc": 0}},
                    {"data": {"author": "b", "body": ""}},
                    {"kind": "more", "data": {}},
                    {"data": {"author": "c", "body": "creepy", "score": 1, "created_utc": 0}},
                ]
            }
        },
    ]
    session = FakeSession([FakeResponse(payload=comments_payload)])
    scraper = _scraper(session)

    comments = scraper.get_post_comments("abc123", limit=5)

    assert [comment["author"] for comment in comments] == ["a", "c"]
    assert comments[0]["text"] == "I love this"
    assert session.get_calls[0]["url"] == f"{API_BASE}/comments/abc123"


def test_parse_posts_from_response_skips_untitled():
    payload = _listing(HAUNTED_POST, {"id": "x"})

    posts = parse_posts_from_response(payload)

    assert len(posts) == 1
    assert posts[0].flair == "True Story"
    assert posts[0].timestamp.startswith("2023-11-14")
    assert parse_posts_from_response(None) == []


@pytest.mark.parametrize(
    ("post", "expected"),
    [
        ({"is_self": True}, "text"),
        ({"is_video": True, "url": "https://v.redd.it/x"}, "video"),
        ({"post_hint": "image", "url": "https://i.redd.it/x.jpg"}, "image"),
        ({"url": "https://example.com/story", "permalink": "/r/x/comments/1/"}, "link"),
        ({"url": "", "permalink": "/r/x/comments/1/"}, "text"),
    ],
)
def test_determine_post_type(post, expected):
    assert determine_post_type(post) == expected
