"""Database manager and task repository helpers."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.engine import make_url

from storyscope.utils.parsing import parse_duration, parse_view_count

from . import (
    TASK_STATUSES,
    AutomationTask,
    ScrapedItem,
    StoryboardItem,
    create_database_engine,
    create_tables,
    get_session,
)

logger = logging.getLogger(__name__)


class TaskNotFoundError(LookupError):
    """Raised when a task id does not exist."""


class DatabaseManager:
    """Manages database connections and sessions."""

    def __init__(self, database_url: str | None = None, echo: bool | None = None):
        """
        Initialize DatabaseManager.

        Resolution order for the URL is the explicit argument, then the
        ``DATABASE_URL`` environment variable, then ``storyscope.config``.
        SQL echo defaults to ``DATABASE_ECHO``. SQLite file databases get
        their parent directory created.
        """
        from storyscope import config as app_config

        if not database_url:
            database_url = os.getenv("DATABASE_URL")
        if not database_url:
            database_url = app_config.DATABASE_URL
        if echo is None:
            echo = app_config.DATABASE_ECHO

        self.database_url = database_url
        self._ensure_sqlite_directory(database_url)

        self.engine = create_database_engine(database_url, echo=echo)
        create_tables(self.engine)
        self.session = get_session(self.engine)

    @staticmethod
    def _ensure_sqlite_directory(database_url: str) -> None:
        url = make_url(database_url)
        if url.get_backend_name() != "sqlite":
            return
        database = url.database
        if not database or database == ":memory:":
            return
        Path(database).parent.mkdir(parents=True, exist_ok=True)

    def new_session(self):
        """Return an independent session bound to the same engine."""
        return get_session(self.engine)

    def close(self) -> None:
        try:
            self.session.close()
        finally:
            self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


# Task repository


def create_task(
    session,
    prompt: str,
    task_type: str = "youtube_scrape",
    parameters: dict[str, Any] | None = None,
) -> AutomationTask:
    """Insert a new pending task."""
    task = AutomationTask(
        prompt=prompt,
        task_type=task_type,
        status="pending",
        parameters=parameters or {},
    )
    session.add(task)
    session.commit()
    logger.info("Created task %s (%s)", task.id, task_type)
    return task


def get_task(session, task_id: int) -> AutomationTask:
    task = session.get(AutomationTask, task_id)
    if task is None:
        raise TaskNotFoundError(f"Task {task_id} not found")
    return task


def list_tasks(
    session,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[AutomationTask]:
    """Return tasks newest first, optionally filtered by status."""
    query = session.query(AutomationTask)
    if status:
        query = query.filter(AutomationTask.status == status)
    return (
        query.order_by(AutomationTask.created_at.desc(), AutomationTask.id.desc())
        .offset(max(0, offset))
        .limit(max(1, limit))
        .all()
    )


def update_task_status(
    session,
    task_id: int,
    status: str,
    *,
    results_summary: str | None = None,
    error_message: str | None = None,
    report: dict[str, Any] | None = None,
) -> AutomationTask:
    """Move a task to a new status, stamping completion time when terminal."""
    if status not in TASK_STATUSES:
        raise ValueError(f"Invalid task status '{status}'")

    task = get_task(session, task_id)
    task.status = status
    if results_summary is not None:
        task.results_summary = results_summary
    if error_message is not None:
        task.error_message = error_message
    if report is not None:
        task.report = report
    if status in ("completed", "failed"):
        task.completed_at = datetime.utcnow()
    session.commit()
    logger.info("Task %s is now %s", task_id, status)
    return task


def delete_task(session, task_id: int) -> None:
    task = get_task(session, task_id)
    session.delete(task)
    session.commit()
    logger.info("Deleted task %s", task_id)


def save_pipeline_result(session, task_id: int, result: Any) -> int:
    """Persist scraped items, analyses and storyboards of a pipeline run.

    Args:
        session: Active SQLAlchemy session
        task_id: Task that owns the rows
        result: ``PipelineResult`` produced by ``ContentPipeline.run``

    Returns:
        Number of scraped items stored
    """
    task = get_task(session, task_id)
    stored = 0
    seen: set[str] = set()

    for index, item in enumerate(result.items):
        if item.video_id in seen:
            logger.debug("Skipping duplicate item %s for task %s", item.video_id, task_id)
            continue
        seen.add(item.video_id)

        analysis = result.analyses[index] if index < len(result.analyses) else None
        storyboard = (
            result.storyboards[index] if index < len(result.storyboards) else None
        )

        row = ScrapedItem(
            task_id=task.id,
            video_id=item.video_id,
            platform=item.platform,
            title=item.title,
            channel_name=item.channel_name,
            channel_id=item.channel_id,
            description=item.description,
            view_count=parse_view_count(item.view_count),
            view_count_text=item.view_count,
            duration_seconds=parse_duration(item.duration),
            upload_date=item.upload_date,
            thumbnail_url=item.thumbnail_url,
            video_url=item.video_url,
            tags=list(item.tags),
            category=item.category,
            ai_analysis=analysis.to_dict() if analysis is not None else None,
            sentiment_score=analysis.sentiment_score if analysis is not None else None,
        )
        if storyboard is not None:
            for scene in storyboard.scenes:
                row.storyboard_items.append(
                    StoryboardItem(
                        sequence_number=scene.sequence_number,
                        scene_description=scene.scene_title,
                        narration_text=scene.narration_text,
                        duration=scene.duration,
                        visual_elements=list(scene.visual_elements),
                        audio_cues=list(scene.audio_cues),
                        transition_notes=scene.transition_notes,
                    )
                )
        session.add(row)
        stored += 1

    session.commit()
    logger.info("Stored %d items for task %s", stored, task_id)
    return stored


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def task_to_dict(task: AutomationTask, include_items: bool = False) -> dict[str, Any]:
    """Serialize a task row for API responses."""
    payload: dict[str, Any] = {
        "id": task.id,
        "prompt": task.prompt,
        "task_type": task.task_type,
        "status": task.status,
        "parameters": task.parameters or {},
        "results_summary": task.results_summary,
        "created_at": _iso(task.created_at),
        "completed_at": _iso(task.completed_at),
        "error_message": task.error_message,
        "item_count": len(task.items),
    }
    if include_items:
        payload["items"] = [
            {
                "id": item.id,
                "video_id": item.video_id,
                "platform": item.platform,
                "title": item.title,
                "channel_name": item.channel_name,
                "view_count": item.view_count,
                "video_url": item.video_url,
                "ai_analysis": item.ai_analysis,
                "sentiment_score": item.sentiment_score,
                "storyboard": [
                    {
                        "sequence_number": scene.sequence_number,
                        "scene_description": scene.scene_description,
                        "narration_text": scene.narration_text,
                        "duration": scene.duration,
                        "visual_elements": scene.visual_elements or [],
                        "audio_cues": scene.audio_cues or [],
                    }
                    for scene in item.storyboard_items
                ],
            }
            for item in task.items
        ]
    return payload


__all__ = [
    "DatabaseManager",
    "TaskNotFoundError",
    "create_task",
    "delete_task",
    "get_task",
    "list_tasks",
    "save_pipeline_result",
    "task_to_dict",
    "update_task_status",
]
