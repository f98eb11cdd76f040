"""Scrape -> analyse -> storyboard -> summarise pipeline over the orchestrator."""

from __future__ import annotations

import asyncio
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, MutableMapping, Optional

from storyscope.models.content import ContentAnalysis, ContentItem, Storyboard
from storyscope.scraping import ContentScraper
from storyscope.utils.parsing import parse_view_count

from .orchestrator import AllProvidersExhaustedError, OrchestrationManager

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "trending videos"
DEFAULT_TIME_FILTER = "month"
DEFAULT_MAX_RESULTS = 10
MAX_RESULTS_CAP = 50
HIGH_ENGAGEMENT_VIEWS = 100_000

_QUERY_RE = re.compile(r"(?:search for|find|about|on)\s+([^.!?]+)", re.IGNORECASE)
_TIME_RE = re.compile(
    r"(last|past)\s+(\d+)?\s*(hour|day|week|month|year)s?", re.IGNORECASE
)
_COUNT_RE = re.compile(r"(\d+)\s*(videos?|results?)", re.IGNORECASE)
# Later patterns win when several topics appear in one prompt
_TOPIC_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"paranormal encounters?",
        r"ghost stories?",
        r"horror stories?",
        r"true crime",
        r"conspiracy theories?",
        r"mysteries?",
        r"unexplained phenomena",
    )
]


@dataclass(slots=True)
class SearchParameters:
    query: str = DEFAULT_QUERY
    time_filter: str = DEFAULT_TIME_FILTER
    max_results: int = DEFAULT_MAX_RESULTS

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "time_filter": self.time_filter,
            "max_results": self.max_results,
        }


@dataclass(slots=True)
class PipelineResult:
    prompt: str
    parameters: SearchParameters
    items: list[ContentItem] = field(default_factory=list)
    analyses: list[ContentAnalysis] = field(default_factory=list)
    storyboards: list[Storyboard] = field(default_factory=list)
    summary: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


def parse_prompt(prompt: str) -> SearchParameters:
    """Derive search parameters from a free-text request."""
    params = SearchParameters()

    query_match = _QUERY_RE.search(prompt)
    if query_match:
        params.query = query_match.group(1).strip()

    time_match = _TIME_RE.search(prompt)
    if time_match:
        params.time_filter = time_match.group(3).lower()

    count_match = _COUNT_RE.search(prompt)
    if count_match:
        params.max_results = min(int(count_match.group(1)), MAX_RESULTS_CAP)

    for pattern in _TOPIC_PATTERNS:
        topic_match = pattern.search(prompt)
        if topic_match:
            params.query = topic_match.group(0)

    logger.info("Parsed search parameters: %s", params.to_dict())
    return params


def analysis_cache_key(item: ContentItem) -> str:
    return f"{item.video_id}_{(item.title or '')[:50]}"


class ContentPipeline:
    """Drive one scraper and the orchestrator through a complete analysis run."""

    def __init__(
        self,
        manager: OrchestrationManager,
        scraper: ContentScraper,
        *,
        batch_size: Optional[int] = None,
        batch_delay: float = 1.0,
        storyboard_delay: float = 0.5,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        analysis_cache: Optional[MutableMapping[str, ContentAnalysis]] = None,
    ) -> None:
        self._manager = manager
        self._scraper = scraper
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._storyboard_delay = storyboard_delay
        self._sleep = sleep or asyncio.sleep
        # Shared across runs when the caller passes its own mapping
        self._analysis_cache = {} if analysis_cache is None else analysis_cache

    async def run(self, prompt: str, *, max_results: Optional[int] = None) -> PipelineResult:
        params = parse_prompt(prompt)
        if max_results is not None:
            params.max_results = max(1, min(max_results, MAX_RESULTS_CAP))

        result = PipelineResult(prompt=prompt, parameters=params)
        try:
            logger.info("Step 1: scraping content for %r", params.query)
            items = await self._scraper.search(
                params.query, params.time_filter, params.max_results
            )
            result.items = list(items)
            result.metadata["scraped_at"] = datetime.utcnow().isoformat()
            result.metadata["total_items"] = len(result.items)

            logger.info("Step 2: analysing %d items", len(result.items))
            result.analyses = await self._analyze_items(result.items)

            logger.info("Step 3: generating storyboards")
            result.storyboards = await self._generate_storyboards(
                result.items, result.analyses
            )

            logger.info("Step 4: creating summary report")
            result.summary = await self._manager.generate_summary(
                result.items, result.analyses
            )
        finally:
            await self._scraper.close()

        result.metadata["completed_at"] = datetime.utcnow().isoformat()
        logger.info("Content analysis completed for %d items", len(result.items))
        return result

    async def _analyze_items(self, items: list[ContentItem]) -> list[ContentAnalysis]:
        batch_size = self._batch_size or self._manager.config.batch_size
        analyses: list[ContentAnalysis] = []
        total = len(items)

        for start in range(0, total, batch_size):
            batch = items[start : start + batch_size]
            batch_results = await asyncio.gather(
                *(
                    self._analyze_one(item, start + offset + 1, total)
                    for offset, item in enumerate(batch)
                )
            )
            analyses.extend(batch_results)
            if start + batch_size < total:
                await self._sleep(self._batch_delay)

        return analyses

    async def _analyze_one(
        self, item: ContentItem, position: int, total: int
    ) -> ContentAnalysis:
        cache_key = analysis_cache_key(item)
        cached = self._analysis_cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached analysis for: %s", item.title)
            return cached

        logger.debug("Analysing item %d/%d: %s", position, total, item.title)
        try:
            analysis = await self._manager.analyze_content(item)
        except AllProvidersExhaustedError as exc:
            logger.error("Error analysing %s: %s", item.title, exc)
            return ContentAnalysis.default()
        self._analysis_cache[cache_key] = analysis
        return analysis

    async def _generate_storyboards(
        self, items: list[ContentItem], analyses: list[ContentAnalysis]
    ) -> list[Storyboard]:
        storyboards: list[Storyboard] = []
        for index, item in enumerate(items):
            analysis = analyses[index] if index < len(analyses) else None
            logger.debug("Generating storyboard %d/%d: %s", index + 1, len(items), item.title)
            try:
                storyboards.append(
                    await self._manager.generate_storyboard(item, analysis)
                )
            except AllProvidersExhaustedError as exc:
                logger.error("Error generating storyboard for %s: %s", item.title, exc)
                storyboards.append(Storyboard.default())
            if index + 1 < len(items):
                await self._sleep(self._storyboard_delay)
        return storyboards


def _average_views(items: list[ContentItem]) -> int:
    if not items:
        return 0
    total = sum(parse_view_count(item.view_count) for item in items)
    return round(total / len(items))


def _top_themes(analyses: list[ContentAnalysis], limit: int = 5) -> list[dict[str, Any]]:
    counts: Counter[str] = Counter()
    for analysis in analyses:
        counts.update(analysis.themes)
    return [{"theme": theme, "count": count} for theme, count in counts.most_common(limit)]


def _sentiment_distribution(analyses: list[ContentAnalysis]) -> dict[str, int]:
    distribution = {"positive": 0, "negative": 0, "neutral": 0}
    for analysis in analyses:
        if analysis.sentiment in distribution:
            distribution[analysis.sentiment] += 1
    return distribution


def build_report(result: PipelineResult) -> dict[str, Any]:
    """Assemble the structured report stored with a completed task."""
    top_themes = _top_themes(result.analyses)
    average_views = _average_views(result.items)

    recommendations: list[dict[str, str]] = []
    if top_themes:
        recommendations.append(
            {
                "type": "content",
                "title": "Popular Themes",
                "description": "Focus on these trending themes: "
                + ", ".join(entry["theme"] for entry in top_themes),
            }
        )
    if average_views > HIGH_ENGAGEMENT_VIEWS:
        recommendations.append(
            {
                "type": "engagement",
                "title": "High Engagement Topic",
                "description": (
                    "This topic shows strong audience engagement with average "
                    "views over 100K"
                ),
            }
        )

    entries = []
    for index, item in enumerate(result.items):
        analysis = result.analyses[index] if index < len(result.analyses) else None
        storyboard = (
            result.storyboards[index] if index < len(result.storyboards) else None
        )
        entry = item.to_dict()
        entry["analysis"] = analysis.to_dict() if analysis else None
        entry["storyboard"] = storyboard.to_dict() if storyboard else None
        entry["attribution"] = {
            "original_url": item.video_url,
            "channel": item.channel_name,
            "scraped_at": item.scraped_at,
        }
        entries.append(entry)

    return {
        "title": "Content Analysis Report",
        "generated_at": datetime.utcnow().isoformat(),
        "metadata": {**result.metadata, "parameters": result.parameters.to_dict()},
        "summary": {
            "total_items": len(result.items),
            "analysis_complete": len(result.analyses),
            "storyboards_generated": len(result.storyboards),
            "average_views": average_views,
            "top_themes": top_themes,
            "sentiment_distribution": _sentiment_distribution(result.analyses),
        },
        "items": entries,
        "overall_summary": result.summary,
        "recommendations": recommendations,
    }
