"""Content scrapers feeding the analysis pipeline."""

from __future__ import annotations

from typing import List, Protocol

from storyscope.models.content import ContentItem


class ContentScraper(Protocol):
    """Anything that can search a platform and be closed afterwards."""

    async def search(
        self, query: str, time_filter: str, max_results: int
    ) -> List[ContentItem]:
        ...

    async def close(self) -> None:
        ...


SOURCES = ("youtube", "reddit")


def create_scraper(source: str = "youtube") -> ContentScraper:
    """Build the scraper for ``source`` (``youtube`` or ``reddit``)."""
    if source == "youtube":
        from .youtube import YouTubeScraper

        return YouTubeScraper()
    if source == "reddit":
        from .reddit import RedditScraper

        return RedditScraper()
    raise ValueError(f"Unknown content source '{source}'")


__all__ = ["ContentScraper", "SOURCES", "create_scraper"]
