import logging
from datetime import datetime
from typing import Any, Literal

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from storyscope import config as app_config
from storyscope.models import TASK_STATUSES
from storyscope.models.database import (
    TaskNotFoundError,
    create_task,
    delete_task,
    get_task,
    list_tasks,
    task_to_dict,
)
from storyscope.services.llm.content_pipeline import parse_prompt
from storyscope.services.llm.orchestrator import (
    NoProvidersAvailableError,
    OrchestrationManager,
)
from storyscope.services.llm.settings import UnknownProviderError
from storyscope.services.task_runner import TaskRunner

from .lifecycle import (
    get_db_session,
    get_orchestration_manager,
    get_task_runner,
    setup_lifecycle_handlers,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="StoryScope API")

# CORS origins come from ALLOWED_ORIGINS (comma-separated)
allowed = app_config.ALLOWED_ORIGINS
if allowed == "*":
    origins = ["*"]
else:
    origins = [o.strip() for o in allowed.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_lifecycle_handlers(app)


class TaskIn(BaseModel):
    prompt: str
    task_type: Literal["youtube_scrape", "reddit_scrape"] = "youtube_scrape"
    options: dict[str, Any] | None = None

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("prompt must not be blank")
        return value


class AIConfigIn(BaseModel):
    primary_service: str | None = None
    fallback_service: str | None = None
    retry_attempts: int | None = Field(default=None, ge=1)
    timeout_ms: int | None = Field(default=None, gt=0)
    rate_limit_delay_ms: int | None = Field(default=None, ge=0)
    batch_size: int | None = Field(default=None, ge=1)
    enable_fallback: bool | None = None


# Request field name -> OrchestrationConfig field name
_CONFIG_FIELD_MAP = {
    "primary_service": "primary",
    "fallback_service": "fallback",
    "retry_attempts": "retry_attempts",
    "timeout_ms": "timeout_ms",
    "rate_limit_delay_ms": "rate_limit_delay_ms",
    "batch_size": "batch_size",
    "enable_fallback": "fallback_enabled",
}


@app.exception_handler(TaskNotFoundError)
async def task_not_found_handler(request, exc):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.get("/health")
def health():
    return {
        "status": "ok",
        "ready": bool(getattr(app.state, "ready", False)),
        "timestamp": datetime.utcnow().isoformat(),
    }


# --- Tasks --------------------------------------------------------------------


@app.post("/api/tasks", status_code=201)
def create_task_endpoint(
    payload: TaskIn,
    background_tasks: BackgroundTasks,
    session=Depends(get_db_session),
    runner: TaskRunner | None = Depends(get_task_runner),
):
    search = parse_prompt(payload.prompt)
    task = create_task(
        session,
        payload.prompt,
        task_type=payload.task_type,
        parameters={"search": search.to_dict(), "options": payload.options or {}},
    )
    if runner is not None:
        background_tasks.add_task(runner.run, task.id)
    else:
        logger.warning("Task runner unavailable; task %s left pending", task.id)
    return task_to_dict(task)


@app.get("/api/tasks")
def list_tasks_endpoint(
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
    session=Depends(get_db_session),
):
    if status is not None and status not in TASK_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status '{status}'")
    tasks = list_tasks(session, status=status, limit=min(limit, 200), offset=offset)
    return {"tasks": [task_to_dict(task) for task in tasks], "count": len(tasks)}


@app.get("/api/tasks/{task_id}")
def get_task_endpoint(task_id: int, session=Depends(get_db_session)):
    return task_to_dict(get_task(session, task_id), include_items=True)


@app.delete("/api/tasks/{task_id}")
def delete_task_endpoint(task_id: int, session=Depends(get_db_session)):
    delete_task(session, task_id)
    return {"deleted": task_id}


@app.get("/api/tasks/{task_id}/report")
def get_task_report(task_id: int, session=Depends(get_db_session)):
    task = get_task(session, task_id)
    if task.report is None:
        raise HTTPException(
            status_code=409,
            detail=f"Report not available while task is {task.status}",
        )
    return task.report


# --- AI orchestration ---------------------------------------------------------


@app.get("/api/ai/config")
def get_ai_config(manager: OrchestrationManager = Depends(get_orchestration_manager)):
    return manager.get_config()


@app.put("/api/ai/config")
def update_ai_config(
    payload: AIConfigIn,
    manager: OrchestrationManager = Depends(get_orchestration_manager),
):
    changes = {
        _CONFIG_FIELD_MAP[name]: value
        for name, value in payload.model_dump(exclude_unset=True).items()
    }
    if changes.get("primary", "") is None:
        raise HTTPException(status_code=400, detail="primary_service cannot be null")
    try:
        manager.update_config(**changes)
    except UnknownProviderError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return manager.get_config()


@app.get("/api/ai/stats")
def get_ai_stats(manager: OrchestrationManager = Depends(get_orchestration_manager)):
    return manager.get_service_stats()


@app.post("/api/ai/stats/reset")
def reset_ai_stats(manager: OrchestrationManager = Depends(get_orchestration_manager)):
    manager.reset_stats()
    return manager.get_service_stats()


@app.get("/api/ai/health")
def get_ai_health(manager: OrchestrationManager = Depends(get_orchestration_manager)):
    return {
        name.value: health.to_dict()
        for name, health in manager.get_service_health().items()
    }


@app.post("/api/ai/test")
async def test_ai_services(
    manager: OrchestrationManager = Depends(get_orchestration_manager),
):
    results = await manager.test_all_providers()
    return {name.value: result.to_dict() for name, result in results.items()}


@app.post("/api/ai/auto-configure")
async def auto_configure_ai(
    manager: OrchestrationManager = Depends(get_orchestration_manager),
):
    try:
        config = await manager.auto_configure()
    except NoProvidersAvailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return config.to_dict()
