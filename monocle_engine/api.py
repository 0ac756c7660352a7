"""REST API over the intelligence service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from monocle_engine.config import Settings, configure_logging, get_settings
from monocle_engine.errors import InvalidInputError, MonocleError, NotFoundError
from monocle_engine.services import IntelligenceService
from monocle_engine.sqlite_store import SQLiteStore
from monocle_engine.stores import InMemoryStore
from monocle_engine.text_generation import build_text_generator

logger = logging.getLogger(__name__)

intelligence = APIRouter(prefix="/api/intelligence")
threads = APIRouter(prefix="/api/threads")


def _service(request: Request) -> IntelligenceService:
    return request.app.state.service


def _ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


def _error(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


class ThreadIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    priority: Literal["high", "medium", "low"] = "medium"
    progress: int = Field(default=0, ge=0, le=100)
    deadline: Optional[datetime] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class ThreadUpdateIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    priority: Optional[Literal["high", "medium", "low"]] = None
    deadline: Optional[datetime] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None


class ProgressIn(BaseModel):
    progress: int = Field(..., ge=0, le=100)


class IgnoreIn(BaseModel):
    isIgnored: bool


class StatsUpdateIn(BaseModel):
    focusTime: Optional[int] = Field(default=None, ge=0)
    contextSwitches: Optional[int] = Field(default=None, ge=0)
    completedTasks: Optional[int] = Field(default=None, ge=0)
    activeThreads: Optional[int] = Field(default=None, ge=0)


class FocusSessionIn(BaseModel):
    durationMinutes: int = Field(..., ge=0)
    tasksCompleted: int = Field(default=0, ge=0)


class ActivityIn(BaseModel):
    type: Literal["thread-created", "thread-updated", "item-added", "context-switch", "focus-session"]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ChatTurn(BaseModel):
    role: Literal["user", "model", "assistant"]
    content: str


class ChatIn(BaseModel):
    message: str = Field(..., min_length=1)
    history: List[ChatTurn] = Field(default_factory=list)


# insights


@intelligence.post("/insights/{user_id}/generate")
def generate_insights(user_id: str, service: IntelligenceService = Depends(_service)):
    return _ok([i.to_dict() for i in service.generate_insights(user_id)])


@intelligence.get("/insights/{user_id}")
def get_active_insights(user_id: str, service: IntelligenceService = Depends(_service)):
    return _ok([i.to_dict() for i in service.get_active_insights(user_id)])


@intelligence.put("/insights/{insight_id}/dismiss")
def dismiss_insight(insight_id: str, service: IntelligenceService = Depends(_service)):
    service.dismiss_insight(insight_id)
    return _ok(message="Insight dismissed")


# recommendations


@intelligence.post("/recommendations/{user_id}/generate")
def generate_recommendations(user_id: str, service: IntelligenceService = Depends(_service)):
    return _ok([r.to_dict() for r in service.generate_recommendations(user_id)])


@intelligence.get("/recommendations/{user_id}")
def get_active_recommendations(user_id: str, service: IntelligenceService = Depends(_service)):
    return _ok([r.to_dict() for r in service.get_active_recommendations(user_id)])


# cognitive load


@intelligence.post("/cognitive-load/{user_id}/calculate")
def calculate_cognitive_load(user_id: str, service: IntelligenceService = Depends(_service)):
    return _ok(service.calculate_cognitive_load(user_id).to_dict())


@intelligence.get("/cognitive-load/{user_id}")
def get_latest_cognitive_load(user_id: str, service: IntelligenceService = Depends(_service)):
    state = service.get_latest_cognitive_load(user_id)
    if state is None:
        return _error(404, "Cognitive load data not found")
    return _ok(state.to_dict())


# stats and activity


@intelligence.get("/stats/{user_id}")
def get_daily_stats(user_id: str, days: int = Query(default=7, ge=1), service: IntelligenceService = Depends(_service)):
    return _ok([s.to_dict() for s in service.get_daily_stats(user_id, days)])


@intelligence.get("/stats/{user_id}/summary")
def get_stats_summary(
    user_id: str, days: int = Query(default=7, ge=1), service: IntelligenceService = Depends(_service)
):
    return _ok(service.summarize_daily_stats(user_id, days))


@intelligence.put("/stats/{user_id}")
def update_daily_stats(user_id: str, payload: StatsUpdateIn, service: IntelligenceService = Depends(_service)):
    updates = {
        "focus_time": payload.focusTime,
        "context_switches": payload.contextSwitches,
        "completed_tasks": payload.completedTasks,
        "active_threads": payload.activeThreads,
    }
    service.update_daily_stats(user_id, **{k: v for k, v in updates.items() if v is not None})
    return _ok(message="Stats updated successfully")


@intelligence.post("/context-switch/{user_id}")
def record_context_switch(user_id: str, service: IntelligenceService = Depends(_service)):
    service.record_context_switch(user_id)
    return _ok(message="Context switch recorded")


@intelligence.post("/focus-session/{user_id}")
def record_focus_session(user_id: str, payload: FocusSessionIn, service: IntelligenceService = Depends(_service)):
    service.record_focus_session(user_id, payload.durationMinutes, payload.tasksCompleted)
    return _ok(message="Focus session recorded")


@intelligence.post("/activities/{user_id}")
def record_activity(user_id: str, payload: ActivityIn, service: IntelligenceService = Depends(_service)):
    service.record_activity(user_id, payload.type, payload.metadata)
    return _ok(message="Activity recorded")


@intelligence.post("/chat/{user_id}")
def chat(user_id: str, payload: ChatIn, service: IntelligenceService = Depends(_service)):
    history = [turn.model_dump() for turn in payload.history]
    return _ok(service.chat(user_id, payload.message, history))


# threads


@threads.post("/{user_id}")
def create_thread(user_id: str, payload: ThreadIn, service: IntelligenceService = Depends(_service)):
    thread = service.create_thread(
        user_id,
        payload.title,
        priority=payload.priority,
        progress=payload.progress,
        deadline=payload.deadline,
        description=payload.description,
        tags=payload.tags,
    )
    return _ok(thread.to_dict())


@threads.get("/user/{user_id}")
def list_threads(user_id: str, service: IntelligenceService = Depends(_service)):
    return _ok([t.to_dict() for t in service.get_user_threads(user_id)])


@threads.get("/user/{user_id}/active")
def list_active_threads(user_id: str, service: IntelligenceService = Depends(_service)):
    return _ok([t.to_dict() for t in service.get_active_threads(user_id)])


@threads.get("/user/{user_id}/high-priority")
def list_high_priority_threads(user_id: str, service: IntelligenceService = Depends(_service)):
    return _ok([t.to_dict() for t in service.get_high_priority_threads(user_id)])


@threads.get("/user/{user_id}/upcoming-deadlines")
def list_upcoming_deadlines(
    user_id: str, days: int = Query(default=7, ge=1), service: IntelligenceService = Depends(_service)
):
    return _ok([t.to_dict() for t in service.get_upcoming_deadlines(user_id, days)])


@threads.get("/{thread_id}")
def get_thread(thread_id: str, service: IntelligenceService = Depends(_service)):
    return _ok(service.get_thread(thread_id).to_dict())


@threads.put("/{thread_id}")
def update_thread(thread_id: str, payload: ThreadUpdateIn, service: IntelligenceService = Depends(_service)):
    changes = payload.model_dump(exclude_unset=True)
    return _ok(service.update_thread(thread_id, **changes).to_dict())


@threads.put("/{thread_id}/progress")
@threads.patch("/{thread_id}/progress")
def update_progress(thread_id: str, payload: ProgressIn, service: IntelligenceService = Depends(_service)):
    return _ok(service.update_progress(thread_id, payload.progress).to_dict())


@threads.put("/{thread_id}/ignore")
@threads.patch("/{thread_id}/ignore")
def toggle_ignore(thread_id: str, payload: IgnoreIn, service: IntelligenceService = Depends(_service)):
    return _ok(service.toggle_ignore(thread_id, payload.isIgnored).to_dict())


@threads.delete("/{thread_id}")
def delete_thread(thread_id: str, service: IntelligenceService = Depends(_service)):
    service.delete_thread(thread_id)
    return _ok(message="Thread deleted")


def create_app(service: IntelligenceService) -> FastAPI:
    """Build the FastAPI app around an already-wired service."""

    app = FastAPI(title="monocle-engine", version="0.1.0")
    app.state.service = service

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        return _error(400, f"{location}: {first.get('msg', 'invalid request')}")

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(InvalidInputError)
    async def _bad_input(request: Request, exc: InvalidInputError):
        return _error(400, str(exc))

    @app.exception_handler(MonocleError)
    async def _engine_error(request: Request, exc: MonocleError):
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
        return _error(500, str(exc))

    @app.get("/health")
    def health():
        return {"status": "OK"}

    app.include_router(intelligence)
    app.include_router(threads)
    return app


def build_service(settings: Settings) -> IntelligenceService:
    store = SQLiteStore(settings.database_path) if settings.database_path else InMemoryStore()
    return IntelligenceService(store, build_text_generator(settings))


def run() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    app = create_app(build_service(settings))
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
