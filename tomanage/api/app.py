"""FastAPI web application for toManage."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse

from tomanage.api.schemas import (
    AuthUrlResponse,
    ChatRequest,
    ChatResponse,
    ConnectionStatusResponse,
    ExtractRequest,
    ExtractResponse,
    PatternResponse,
    RecommendationRequest,
    SyncResponse,
    TaskCreateRequest,
    TaskListResponse,
    TaskUpdateRequest,
    TokenExchangeRequest,
)
from tomanage.auth.dependencies import (
    get_ai_client,
    get_current_user_id,
    get_recommendation_engine,
    get_storage,
    get_task_service,
)
from tomanage.auth.ticktick_oauth import (
    build_authorize_url,
    exchange_code_for_token,
    generate_state,
    verify_state,
)
from tomanage.database.database import SessionLocal, init_db
from tomanage.engine.context import get_current_context, get_user_profile
from tomanage.engine.prompts import build_conversational_prompt
from tomanage.engine.recommendation import Recommendation, RecommendationEngine
from tomanage.engine.tools import ToolExecutor
from tomanage.errors import (
    AuthStateError,
    ExternalServiceError,
    NotConnectedError,
    NotFoundError,
    ToolExecutionError,
    ValidationError,
)
from tomanage.integrations.openai_client import OpenAIClient
from tomanage.integrations.ticktick import TickTickClient
from tomanage.models.preferences import AnalyticsEntry, CurrentContext, PatternType, UserPreferences, UserProfile
from tomanage.models.task import Task
from tomanage.services.storage import StorageService
from tomanage.services.task_service import TaskService, UserLockRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


# Health

@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Tasks

@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(user_id: str = Depends(get_current_user_id), task_service: TaskService = Depends(get_task_service)):
    return TaskListResponse(tasks=task_service.list_tasks(user_id))


@router.post("/tasks", response_model=Task, status_code=status.HTTP_201_CREATED)
def create_task(
    request: TaskCreateRequest,
    user_id: str = Depends(get_current_user_id),
    task_service: TaskService = Depends(get_task_service),
):
    """Create a task. Missing attributes are inferred."""
    return task_service.add_task(user_id, request.model_dump(exclude_none=True))


@router.get("/tasks/{task_id}", response_model=Task)
def get_task(task_id: str, user_id: str = Depends(get_current_user_id), task_service: TaskService = Depends(get_task_service)):
    return task_service.get_task(user_id, task_id)


@router.patch("/tasks/{task_id}", response_model=Task)
def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    task_service: TaskService = Depends(get_task_service),
):
    """Partially update a task. Only fields present in the body change."""
    return task_service.update_task(user_id, task_id, request.model_dump(exclude_unset=True))


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, user_id: str = Depends(get_current_user_id), task_service: TaskService = Depends(get_task_service)):
    task_service.delete_task(user_id, task_id)


@router.post("/tasks/{task_id}/toggle", response_model=Task)
def toggle_task(task_id: str, user_id: str = Depends(get_current_user_id), task_service: TaskService = Depends(get_task_service)):
    return task_service.toggle_complete(user_id, task_id)


@router.post("/sync", response_model=SyncResponse)
def sync_tasks(user_id: str = Depends(get_current_user_id), task_service: TaskService = Depends(get_task_service)):
    """Pull every TickTick task and merge it into the local list."""
    result = task_service.sync(user_id)
    return SyncResponse(fetched_count=result.fetched_count, last_sync=result.last_sync, tasks=result.tasks)


# Recommendations and AI

@router.post("/recommendations", response_model=Recommendation)
def recommend(
    request: RecommendationRequest,
    user_id: str = Depends(get_current_user_id),
    task_service: TaskService = Depends(get_task_service),
    storage: StorageService = Depends(get_storage),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
):
    """Recommend one task to work on now."""
    tasks = task_service.list_tasks(user_id)
    profile = get_user_profile(user_id, storage)
    return engine.recommend(request.method, tasks, profile=profile, tool_executor=ToolExecutor(storage, user_id))


@router.post("/ai/chat", response_model=ChatResponse)
def ai_chat(
    request: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    storage: StorageService = Depends(get_storage),
    ai_client: OpenAIClient = Depends(get_ai_client),
):
    """Conversational assistant with the user's profile in context."""
    system_prompt = build_conversational_prompt(get_user_profile(user_id, storage))
    content = ai_client.chat(
        [message.model_dump() for message in request.messages],
        system_prompt=system_prompt,
        tool_executor=ToolExecutor(storage, user_id),
    )
    return ChatResponse(content=content)


@router.post("/ai/extract", response_model=ExtractResponse)
def ai_extract(
    request: ExtractRequest,
    user_id: str = Depends(get_current_user_id),
    task_service: TaskService = Depends(get_task_service),
    ai_client: OpenAIClient = Depends(get_ai_client),
):
    """Extract tasks from text and/or an image, optionally storing them."""
    if not request.text and not request.image_base64:
        raise ValidationError("Provide text or image_base64")

    result = ai_client.extract_tasks(request.text, request.image_base64)
    tasks = result.tasks
    if request.save:
        tasks = [task_service.add_task(user_id, task.model_dump()) for task in tasks]
    return ExtractResponse(tasks=tasks, error=result.error)


# Context, preferences, patterns, analytics

@router.get("/context", response_model=CurrentContext)
def current_context(user_id: str = Depends(get_current_user_id), storage: StorageService = Depends(get_storage)):
    return get_current_context(storage.get_preferences(user_id))


@router.get("/profile", response_model=UserProfile)
def user_profile(user_id: str = Depends(get_current_user_id), storage: StorageService = Depends(get_storage)):
    return get_user_profile(user_id, storage)


@router.get("/preferences", response_model=UserPreferences)
def get_preferences(user_id: str = Depends(get_current_user_id), storage: StorageService = Depends(get_storage)):
    return storage.get_preferences(user_id)


@router.put("/preferences", response_model=UserPreferences)
def save_preferences(
    preferences: UserPreferences,
    user_id: str = Depends(get_current_user_id),
    storage: StorageService = Depends(get_storage),
):
    """Replace the user's preferences wholesale."""
    return storage.save_preferences(user_id, preferences)


@router.get("/patterns")
def list_patterns(user_id: str = Depends(get_current_user_id), storage: StorageService = Depends(get_storage)) -> Dict[str, Any]:
    return storage.get_all_patterns(user_id)


@router.get("/patterns/{pattern_type}", response_model=PatternResponse)
def get_pattern(pattern_type: PatternType, user_id: str = Depends(get_current_user_id), storage: StorageService = Depends(get_storage)):
    return PatternResponse(pattern_type=pattern_type.value, data=storage.get_pattern(user_id, pattern_type))


@router.put("/patterns/{pattern_type}", response_model=PatternResponse)
def save_pattern(
    pattern_type: PatternType,
    data: Dict[str, Any],
    user_id: str = Depends(get_current_user_id),
    storage: StorageService = Depends(get_storage),
):
    storage.save_pattern(user_id, pattern_type, data)
    return PatternResponse(pattern_type=pattern_type.value, data=data)


@router.get("/analytics", response_model=List[AnalyticsEntry])
def get_analytics(
    limit: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    storage: StorageService = Depends(get_storage),
):
    return storage.get_analytics(user_id, limit=limit)


@router.post("/analytics", response_model=AnalyticsEntry, status_code=status.HTTP_201_CREATED)
def save_analytics(entry: AnalyticsEntry, user_id: str = Depends(get_current_user_id), storage: StorageService = Depends(get_storage)):
    return storage.save_analytics(user_id, entry)


# TickTick connection

@router.get("/ticktick/auth-url", response_model=AuthUrlResponse)
def ticktick_auth_url(
    redirect_uri: str = Query(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    storage: StorageService = Depends(get_storage),
):
    """Start the OAuth flow: store a fresh state and return the authorize URL."""
    state = generate_state()
    url = build_authorize_url(redirect_uri, state)
    storage.save_oauth_state(user_id, state)
    return AuthUrlResponse(url=url, state=state)


@router.post("/ticktick/exchange", response_model=ConnectionStatusResponse)
def ticktick_exchange(
    request: TokenExchangeRequest,
    user_id: str = Depends(get_current_user_id),
    storage: StorageService = Depends(get_storage),
):
    """Finish the OAuth flow. State is checked before any call to TickTick."""
    verify_state(storage.pop_oauth_state(user_id), request.state)
    access_token = exchange_code_for_token(request.code, request.redirect_uri)
    storage.set_ticktick_token(user_id, access_token)
    return ConnectionStatusResponse(connected=True, last_sync=storage.get_last_sync(user_id))


@router.get("/ticktick/status", response_model=ConnectionStatusResponse)
def ticktick_status(user_id: str = Depends(get_current_user_id), storage: StorageService = Depends(get_storage)):
    return ConnectionStatusResponse(
        connected=storage.get_ticktick_token(user_id) is not None,
        last_sync=storage.get_last_sync(user_id),
    )


@router.get("/ticktick/tasks", response_model=TaskListResponse)
def ticktick_tasks(
    force_refresh: bool = False,
    user_id: str = Depends(get_current_user_id),
    task_service: TaskService = Depends(get_task_service),
):
    """TickTick tasks from the cached snapshot (refreshed when stale)."""
    return TaskListResponse(tasks=task_service.get_external_tasks(user_id, force_refresh=force_refresh))


@router.post("/ticktick/disconnect", response_model=ConnectionStatusResponse)
def ticktick_disconnect(user_id: str = Depends(get_current_user_id), storage: StorageService = Depends(get_storage)):
    storage.clear_ticktick(user_id)
    return ConnectionStatusResponse(connected=False, last_sync=storage.get_last_sync(user_id))


# Error mapping

def _error_response(status_code: int):
    async def handler(request: Request, exc: Exception):
        logger.warning(f"{request.method} {request.url.path} failed: {type(exc).__name__}")
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})
    return handler


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY))
    app.add_exception_handler(NotFoundError, _error_response(status.HTTP_404_NOT_FOUND))
    app.add_exception_handler(NotConnectedError, _error_response(status.HTTP_400_BAD_REQUEST))
    app.add_exception_handler(AuthStateError, _error_response(status.HTTP_400_BAD_REQUEST))
    app.add_exception_handler(ExternalServiceError, _error_response(status.HTTP_502_BAD_GATEWAY))
    app.add_exception_handler(ToolExecutionError, _error_response(status.HTTP_502_BAD_GATEWAY))


def create_app(session_factory=None, ai_client=None, ticktick_client_factory=None) -> FastAPI:
    """Build the app. Services are created at startup and kept on app.state.

    Args:
        session_factory: SQLAlchemy sessionmaker (defaults to DATABASE_URL, schema initialized)
        ai_client: AI reasoning client (defaults to OpenAIClient from the environment)
        ticktick_client_factory: Callable token -> TickTick client
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        factory = session_factory
        if factory is None:
            init_db()
            factory = SessionLocal

        storage = StorageService(factory)
        app.state.storage = storage
        app.state.task_service = TaskService(
            factory,
            storage,
            UserLockRegistry(),
            client_factory=ticktick_client_factory or TickTickClient,
        )
        app.state.ai_client = ai_client if ai_client is not None else OpenAIClient()
        app.state.recommendation_engine = RecommendationEngine(app.state.ai_client)
        logger.info("toManage services initialized")
        yield

    app = FastAPI(
        title="toManage API",
        description="Task enrichment, TickTick reconciliation and what-to-do-next recommendations",
        version="0.1.0",
        lifespan=lifespan,
    )
    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()
