"""Plain data structures passed between scrapers, providers and reports."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional


def _pick(payload: Mapping[str, Any], snake: str, camel: str, default: Any) -> Any:
    if snake in payload:
        return payload[snake]
    if camel in payload:
        return payload[camel]
    return default


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return [str(value)]


def _as_float(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if math.isfinite(number) else default


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


MAX_TOPIC_ENTRIES = 10
MAX_FACTOR_ENTRIES = 5


@dataclass(slots=True)
class ContentItem:
    """A scraped video or post normalised onto a single shape."""

    video_id: str
    title: str
    channel_name: str = ""
    channel_id: Optional[str] = None
    description: str = ""
    view_count: str = ""
    upload_date: str = ""
    duration: str = ""
    thumbnail_url: Optional[str] = None
    video_url: str = ""
    tags: List[str] = field(default_factory=list)
    category: str = ""
    scraped_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    platform: str = "youtube"
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ContentItem":
        return cls(
            video_id=str(_pick(payload, "video_id", "videoId", "")),
            title=str(_pick(payload, "title", "title", "")),
            channel_name=str(_pick(payload, "channel_name", "channelName", "")),
            channel_id=_pick(payload, "channel_id", "channelId", None),
            description=str(_pick(payload, "description", "description", "") or ""),
            view_count=str(_pick(payload, "view_count", "viewCount", "") or ""),
            upload_date=str(_pick(payload, "upload_date", "uploadDate", "") or ""),
            duration=str(_pick(payload, "duration", "duration", "") or ""),
            thumbnail_url=_pick(payload, "thumbnail_url", "thumbnailUrl", None),
            video_url=str(_pick(payload, "video_url", "videoUrl", "") or ""),
            tags=_as_list(_pick(payload, "tags", "tags", [])),
            category=str(_pick(payload, "category", "category", "") or ""),
            platform=str(_pick(payload, "platform", "platform", "youtube")),
            extra=dict(_pick(payload, "extra", "extra", {}) or {}),
        )


@dataclass(slots=True)
class ContentAnalysis:
    """Structured analysis returned by a provider for a single item."""

    summary: str
    themes: List[str] = field(default_factory=list)
    sentiment: str = "neutral"
    sentiment_score: float = 0.0
    key_topics: List[str] = field(default_factory=list)
    content_type: str = "unknown"
    target_audience: str = "general"
    credibility_score: float = 0.5
    engagement_factors: List[str] = field(default_factory=list)
    notable_elements: List[str] = field(default_factory=list)
    recommendations: str = "Unable to generate recommendations"

    @classmethod
    def default(cls) -> "ContentAnalysis":
        """Value used when a provider response cannot be parsed."""
        return cls(summary="Analysis could not be completed")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ContentAnalysis":
        """Build an analysis from provider JSON (camelCase) or stored rows."""
        fallback = cls.default()
        sentiment = str(_pick(payload, "sentiment", "sentiment", "neutral")).lower()
        if sentiment not in {"positive", "negative", "neutral"}:
            sentiment = "neutral"
        return cls(
            summary=str(_pick(payload, "summary", "summary", fallback.summary)),
            themes=_as_list(_pick(payload, "themes", "themes", []))[:MAX_TOPIC_ENTRIES],
            sentiment=sentiment,
            sentiment_score=_clamp(
                _as_float(_pick(payload, "sentiment_score", "sentimentScore", 0.0), 0.0),
                -1.0,
                1.0,
            ),
            key_topics=_as_list(
                _pick(payload, "key_topics", "keyTopics", [])
            )[:MAX_TOPIC_ENTRIES],
            content_type=str(
                _pick(payload, "content_type", "contentType", fallback.content_type)
            ),
            target_audience=str(
                _pick(
                    payload,
                    "target_audience",
                    "targetAudience",
                    fallback.target_audience,
                )
            ),
            credibility_score=_clamp(
                _as_float(
                    _pick(payload, "credibility_score", "credibilityScore", 0.5), 0.5
                ),
                0.0,
                1.0,
            ),
            engagement_factors=_as_list(
                _pick(payload, "engagement_factors", "engagementFactors", [])
            )[:MAX_FACTOR_ENTRIES],
            notable_elements=_as_list(
                _pick(payload, "notable_elements", "notableElements", [])
            )[:MAX_FACTOR_ENTRIES],
            recommendations=str(
                _pick(
                    payload,
                    "recommendations",
                    "recommendations",
                    fallback.recommendations,
                )
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class StoryboardScene:
    sequence_number: int
    scene_title: str
    duration: str = ""
    narration_text: str = ""
    visual_elements: List[str] = field(default_factory=list)
    audio_cues: List[str] = field(default_factory=list)
    transition_notes: str = ""

    @classmethod
    def from_payload(
        cls, payload: Mapping[str, Any], position: int
    ) -> "StoryboardScene":
        return cls(
            sequence_number=_as_int(
                _pick(payload, "sequence_number", "sequenceNumber", position),
                position,
            ),
            scene_title=str(
                _pick(payload, "scene_title", "sceneTitle", f"Scene {position}")
            ),
            duration=str(_pick(payload, "duration", "duration", "")),
            narration_text=str(_pick(payload, "narration_text", "narrationText", "")),
            visual_elements=_as_list(
                _pick(payload, "visual_elements", "visualElements", [])
            ),
            audio_cues=_as_list(_pick(payload, "audio_cues", "audioCues", [])),
            transition_notes=str(
                _pick(payload, "transition_notes", "transitionNotes", "")
            ),
        )


@dataclass(slots=True)
class Storyboard:
    """Scene-by-scene narration plan generated for one item."""

    title: str
    total_scenes: int
    estimated_duration: str
    scenes: List[StoryboardScene] = field(default_factory=list)
    production_notes: str = ""

    @classmethod
    def default(cls) -> "Storyboard":
        """Single-scene storyboard used when generation fails."""
        return cls(
            title="Default Storyboard",
            total_scenes=1,
            estimated_duration="2 minutes",
            scenes=[
                StoryboardScene(
                    sequence_number=1,
                    scene_title="Introduction",
                    duration="2 minutes",
                    narration_text=(
                        "Content analysis was not available for detailed "
                        "storyboard generation."
                    ),
                    visual_elements=["Simple presentation slide"],
                    audio_cues=["Background music"],
                    transition_notes="Fade out",
                )
            ],
            production_notes="Storyboard generation failed - using default template",
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Storyboard":
        raw_scenes = _pick(payload, "scenes", "scenes", [])
        if not isinstance(raw_scenes, (list, tuple)):
            raw_scenes = []
        scenes = [
            StoryboardScene.from_payload(scene, index)
            for index, scene in enumerate(raw_scenes, start=1)
            if isinstance(scene, Mapping)
        ]
        total = _as_int(_pick(payload, "total_scenes", "totalScenes", 0), 0)
        return cls(
            title=str(_pick(payload, "title", "title", "Untitled Storyboard")),
            total_scenes=total or len(scenes),
            estimated_duration=str(
                _pick(payload, "estimated_duration", "estimatedDuration", "")
            ),
            scenes=scenes,
            production_notes=str(
                _pick(payload, "production_notes", "productionNotes", "")
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "ContentAnalysis",
    "ContentItem",
    "Storyboard",
    "StoryboardScene",
]
