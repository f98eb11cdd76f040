"""FastAPI lifecycle management for shared resources.

This module centralizes startup and shutdown handling for:
- DatabaseManager (engine and session factory)
- OrchestrationManager (provider registry, routing config, statistics)
- TaskRunner (background pipeline execution)

Route handlers receive these through the dependency functions below, which
tests replace with ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request

from storyscope import config as app_config
from storyscope.models.database import DatabaseManager
from storyscope.services.llm.orchestrator import OrchestrationManager
from storyscope.services.task_runner import TaskRunner
from storyscope.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def setup_lifecycle_handlers(app: FastAPI) -> None:
    """Register startup and shutdown handlers for the FastAPI app.

    Args:
        app: The FastAPI application instance
    """

    @app.on_event("startup")
    async def startup_resources():
        """Initialize shared resources and attach to app.state."""
        setup_logging(
            level=app_config.LOG_LEVEL,
            force_json=app_config.LOG_JSON,
            service_name="storyscope-api",
        )
        logger.info("Starting resource initialization...")
        logger.info("Configuration: %s", app_config.get_config())

        try:
            db_manager = DatabaseManager(app_config.DATABASE_URL)
            app.state.db_manager = db_manager
            logger.info("DatabaseManager initialized: %s", db_manager.database_url[:50])
        except Exception as exc:
            logger.exception("Failed to initialize DatabaseManager", exc_info=exc)
            # Endpoints needing the database answer 503 until it recovers
            app.state.db_manager = None

        manager = OrchestrationManager()
        app.state.orchestration_manager = manager

        if app.state.db_manager is not None:
            app.state.task_runner = TaskRunner(app.state.db_manager.new_session, manager)
        else:
            app.state.task_runner = None

        app.state.ready = True
        logger.info("All resources initialized, app is ready")

    @app.on_event("shutdown")
    async def shutdown_resources():
        """Clean up shared resources gracefully."""
        logger.info("Starting resource cleanup...")

        db_manager = getattr(app.state, "db_manager", None)
        if db_manager is not None:
            try:
                db_manager.close()
                logger.info("DatabaseManager engine disposed")
            except Exception as exc:
                logger.exception("Error disposing DatabaseManager", exc_info=exc)

        if hasattr(app.state, "ready"):
            app.state.ready = False

        logger.info("Resource cleanup complete")


# Dependency injection functions for route handlers


def get_db_session(request: Request):
    """Yield a session from the shared DatabaseManager, closing it afterwards."""
    db_manager = getattr(request.app.state, "db_manager", None)
    if db_manager is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    session = db_manager.new_session()
    try:
        yield session
    finally:
        session.close()


def get_orchestration_manager(request: Request) -> OrchestrationManager:
    manager = getattr(request.app.state, "orchestration_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="AI orchestration unavailable")
    return manager


def get_task_runner(request: Request) -> TaskRunner | None:
    """Return the shared TaskRunner, or None when tasks cannot run."""
    return getattr(request.app.state, "task_runner", None)
