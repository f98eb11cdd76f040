"""Run a stored automation task through the content pipeline.

Tasks are executed fire-and-forget from the HTTP layer. The runner owns its
own database session, moves the task through ``running`` to ``completed``
or ``failed`` and stores the scraped items, analyses and storyboards.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from storyscope import config
from storyscope.models.content import ContentAnalysis
from storyscope.models.database import (
    get_task,
    save_pipeline_result,
    update_task_status,
)
from storyscope.scraping import ContentScraper, create_scraper
from storyscope.services.llm.content_pipeline import ContentPipeline, build_report
from storyscope.services.llm.orchestrator import OrchestrationManager
from storyscope.utils.logging_config import bind_request_context, unbind_trace_context

__all__ = ["TaskRunner", "source_for_task_type"]

ScraperFactory = Callable[[str], ContentScraper]

_TASK_SOURCES = {
    "youtube_scrape": "youtube",
    "reddit_scrape": "reddit",
}


def source_for_task_type(task_type: str) -> str:
    return _TASK_SOURCES.get(task_type, "youtube")


class TaskRunner:
    """Execute tasks against a session factory and an orchestration manager."""

    def __init__(
        self,
        session_factory: Callable[[], Any],
        manager: OrchestrationManager,
        *,
        scraper_factory: ScraperFactory = create_scraper,
        batch_delay: float | None = None,
        storyboard_delay: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._manager = manager
        self._scraper_factory = scraper_factory
        self._batch_delay = (
            config.PIPELINE_BATCH_DELAY if batch_delay is None else batch_delay
        )
        self._storyboard_delay = (
            config.PIPELINE_STORYBOARD_DELAY
            if storyboard_delay is None
            else storyboard_delay
        )
        # Successful analyses keyed by item, reused by later tasks
        self._analysis_cache: dict[str, ContentAnalysis] = {}
        self.logger = logging.getLogger(__name__)

    async def run(self, task_id: int) -> None:
        bind_request_context(task_id=task_id)
        session = self._session_factory()
        try:
            task = get_task(session, task_id)
            update_task_status(session, task_id, "running")
            options = dict((task.parameters or {}).get("options") or {})

            try:
                scraper = self._scraper_factory(source_for_task_type(task.task_type))
                pipeline = ContentPipeline(
                    self._manager,
                    scraper,
                    batch_delay=self._batch_delay,
                    storyboard_delay=self._storyboard_delay,
                    analysis_cache=self._analysis_cache,
                )
                result = await pipeline.run(
                    task.prompt, max_results=options.get("max_results")
                )

                task.parameters = {
                    **(task.parameters or {}),
                    "search": result.parameters.to_dict(),
                }
                save_pipeline_result(session, task_id, result)
                update_task_status(
                    session,
                    task_id,
                    "completed",
                    results_summary=result.summary,
                    report=build_report(result),
                )
            except Exception as exc:
                self.logger.exception("Task %s failed", task_id)
                self._mark_failed(session, task_id, exc)
                return

            self.logger.info(
                "Task %s completed with %d items", task_id, len(result.items)
            )
        finally:
            session.close()
            unbind_trace_context("task_id")

    def _mark_failed(self, session: Any, task_id: int, exc: Exception) -> None:
        session.rollback()
        try:
            update_task_status(session, task_id, "failed", error_message=str(exc))
        except Exception:
            session.rollback()
            self.logger.exception("Could not record failure of task %s", task_id)
