"""Normalise Reddit posts onto ``ContentItem`` for AI analysis."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence

from storyscope.models.content import ContentItem
from storyscope.utils.parsing import clean_html_text, keyword_sentiment, word_count

if TYPE_CHECKING:  # pragma: no cover - typing helper only
    from .reddit import RedditPost

logger = logging.getLogger(__name__)

DESCRIPTION_LIMIT = 500
WORDS_PER_MINUTE = 200
REQUIRED_FIELDS = ("video_id", "title", "channel_name", "description")

# Checked in order; the first matching keyword group decides the category
_SUBREDDIT_CATEGORIES = (
    (("paranormal", "ghost", "horror"), "paranormal"),
    (("story", "tales"), "storytelling"),
    (("news", "world"), "news"),
    (("funny", "meme"), "entertainment"),
    (("ask", "question"), "discussion"),
    (("science", "tech"), "educational"),
)
_POST_TYPE_CATEGORIES = {"image": "visual", "video": "video", "link": "external"}


class InvalidPostError(ValueError):
    """Raised when a parsed post misses required fields."""


def clean_title(title: Optional[str]) -> str:
    if not title:
        return "Untitled Post"
    return clean_html_text(title)


def format_description(post: "RedditPost") -> str:
    description = ""
    content = post.content or ""
    if content.strip():
        description = content[:DESCRIPTION_LIMIT]
        if len(content) > DESCRIPTION_LIMIT:
            description += "..."

    metadata = []
    if post.flair:
        metadata.append(f"Flair: {post.flair}")
    if post.post_type != "text":
        metadata.append(f"Type: {post.post_type}")
    if post.is_nsfw:
        metadata.append("NSFW")
    if post.is_stickied:
        metadata.append("Stickied")
    if metadata:
        description += f"\n\n[{', '.join(metadata)}]"

    return description or "No description available"


def format_score(score: int) -> str:
    if not score:
        return "0 points"
    if score >= 1_000_000:
        return f"{score / 1_000_000:.1f}M points"
    if score >= 1_000:
        return f"{score / 1_000:.1f}K points"
    return f"{score} points"


def format_date(timestamp: str, now: Optional[datetime] = None) -> str:
    try:
        created = datetime.fromisoformat(timestamp)
    except (TypeError, ValueError):
        return "unknown date"
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    seconds = (now - created).total_seconds()
    days = math.floor(seconds / 86400)
    hours = math.floor(seconds / 3600)
    minutes = math.floor(seconds / 60)

    if days > 7:
        return f"{created.month}/{created.day}/{created.year}"
    if days > 0:
        return f"{days} days ago"
    if hours > 0:
        return f"{hours} hours ago"
    if minutes > 0:
        return f"{minutes} minutes ago"
    return "just now"


def estimate_reading_time(content: Optional[str]) -> str:
    """Reading time at 200 words per minute, rendered like a video duration."""
    if not content:
        return "1:00"
    minutes = max(1, math.ceil(word_count(content) / WORDS_PER_MINUTE))
    if minutes >= 60:
        return f"{minutes // 60}:{minutes % 60:02d}:00"
    return f"{minutes}:00"


def extract_thumbnail(post: "RedditPost") -> str:
    if post.has_image and post.external_url:
        return post.external_url
    return f"https://www.redditstatic.com/subreddit-icon/{post.subreddit}.png"


def extract_tags(post: "RedditPost") -> List[str]:
    tags = [post.subreddit, post.post_type]
    if post.flair:
        tags.append(re.sub(r"\s+", "_", post.flair.lower()))
    if post.is_nsfw:
        tags.append("nsfw")
    if post.is_stickied:
        tags.append("stickied")
    if post.awards_count > 0:
        tags.append("awarded")
    if post.score > 1000:
        tags.append("popular")
    if post.comment_count > 50:
        tags.append("highly_discussed")
    return tags


def categorize_post(post: "RedditPost") -> str:
    subreddit = post.subreddit.lower()
    for keywords, category in _SUBREDDIT_CATEGORIES:
        if any(keyword in subreddit for keyword in keywords):
            return category
    return _POST_TYPE_CATEGORIES.get(post.post_type, "discussion")


def parse_post_for_analysis(post: "RedditPost") -> ContentItem:
    """Map a Reddit post onto the shared item shape (subreddit as channel)."""
    return ContentItem(
        video_id=post.post_id,
        title=clean_title(post.title),
        channel_name=f"r/{post.subreddit}",
        channel_id=post.subreddit,
        description=format_description(post),
        view_count=format_score(post.score),
        upload_date=format_date(post.timestamp),
        duration=estimate_reading_time(post.content),
        thumbnail_url=extract_thumbnail(post),
        video_url=post.post_url,
        tags=extract_tags(post),
        category=categorize_post(post),
        scraped_at=post.scraped_at,
        platform="reddit",
        extra={
            "post_id": post.post_id,
            "author": post.author,
            "subreddit": post.subreddit,
            "score": post.score,
            "comment_count": post.comment_count,
            "post_type": post.post_type,
            "upvote_ratio": post.upvote_ratio,
            "awards_count": post.awards_count,
            "is_stickied": post.is_stickied,
            "is_nsfw": post.is_nsfw,
            "flair": post.flair,
            "external_url": post.external_url,
            "has_image": post.has_image,
            "has_video": post.has_video,
            "timestamp": post.timestamp,
        },
    )


def parse_posts_for_analysis(posts: Iterable["RedditPost"]) -> List[ContentItem]:
    parsed = [parse_post_for_analysis(post) for post in posts]
    logger.info("Parsed %d Reddit posts for analysis", len(parsed))
    return parsed


def parse_comments(comments: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "author": comment.get("author", ""),
            "content": comment.get("text", ""),
            "score": comment.get("score", 0),
            "time_ago": comment.get("time_ago", ""),
            "sentiment": keyword_sentiment(comment.get("text", "")),
            "word_count": word_count(comment.get("text", "")),
        }
        for comment in comments
    ]


def generate_summary_stats(items: Sequence[ContentItem]) -> Dict[str, Any]:
    total = len(items)
    total_score = sum(int(item.extra.get("score", 0)) for item in items)
    total_comments = sum(int(item.extra.get("comment_count", 0)) for item in items)
    subreddits = list(dict.fromkeys(item.extra.get("subreddit") for item in items))
    content_types = list(dict.fromkeys(item.extra.get("post_type") for item in items))
    categories = list(dict.fromkeys(item.category for item in items))

    return {
        "total_posts": total,
        "total_score": total_score,
        "total_comments": total_comments,
        "avg_score": round(total_score / total) if total else 0,
        "avg_comments": round(total_comments / total) if total else 0,
        "unique_subreddits": len(subreddits),
        "subreddit_list": subreddits,
        "content_types": content_types,
        "categories": categories,
        "processing_time": datetime.utcnow().isoformat(),
    }


def filter_posts(
    items: Sequence[ContentItem],
    *,
    min_score: Optional[int] = None,
    max_age_days: Optional[float] = None,
    subreddits: Optional[Sequence[str]] = None,
    content_type: Optional[str] = None,
    exclude_nsfw: bool = False,
    now: Optional[datetime] = None,
) -> List[ContentItem]:
    filtered = list(items)

    if min_score:
        filtered = [item for item in filtered if item.extra.get("score", 0) >= min_score]

    if max_age_days:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=max_age_days)

        def _recent(item: ContentItem) -> bool:
            try:
                created = datetime.fromisoformat(item.extra.get("timestamp", ""))
            except (TypeError, ValueError):
                return False
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            return created >= cutoff

        filtered = [item for item in filtered if _recent(item)]

    if subreddits:
        allowed = set(subreddits)
        filtered = [item for item in filtered if item.extra.get("subreddit") in allowed]

    if content_type:
        filtered = [
            item for item in filtered if item.extra.get("post_type") == content_type
        ]

    if exclude_nsfw:
        filtered = [item for item in filtered if not item.extra.get("is_nsfw")]

    logger.info("Filtered %d posts to %d posts", len(items), len(filtered))
    return filtered


def validate_parsed_post(item: ContentItem) -> bool:
    missing = [name for name in REQUIRED_FIELDS if not getattr(item, name)]
    if missing:
        raise InvalidPostError(f"Missing required fields: {', '.join(missing)}")
    return True
