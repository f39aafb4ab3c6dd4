"""
Learning Session API Router

Endpoints:
- POST /api/learning/session/start - Start a session and get its first question
- POST /api/learning/session/generate - Generate a question outside a session
- GET  /api/learning/session/{id} - Session state (reload/resume)
- POST /api/learning/session/{id}/submit - Submit an answer
- POST /api/learning/session/{id}/advance - Move to the next question
- POST /api/learning/session/{id}/retry - Retry after a generation failure
- POST /api/learning/session/{id}/flush - Re-attempt queued event writes
- POST /api/learning/session/{id}/end - End a session and get summary
- GET  /api/learning/modules - List modules
- GET  /api/learning/modules/{id} - Get one module
- GET  /api/learning/performance - Module performance for a user
- GET  /api/learning/history - A user's past sessions

Service errors (not found, invalid state, configuration, persistence,
generation) are rendered by the error handling middleware.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from lingo_engine.dependencies import get_session_manager
from lingo_engine.models.catalog import ModuleDefinition
from lingo_engine.models.learning import (
    EndSessionResponse,
    FlushEventsResponse,
    GeneratePreviewRequest,
    ModuleSummary,
    PreviewResponse,
    SessionStateResponse,
    StartSessionRequest,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
    SubmoduleSummary,
)
from lingo_engine.models.session import LearningSessionRecord, ModulePerformance
from lingo_engine.services.learning.session_manager import SessionManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/learning", tags=["learning"])


def _module_summary(module: ModuleDefinition) -> ModuleSummary:
    return ModuleSummary(
        id=module.id,
        title=module.title,
        primary_task=module.primary_task,
        supported_source_languages=sorted(module.supported_source_languages),
        submodules=[
            SubmoduleSummary(
                id=sub.id,
                title=sub.title,
                primary_task=sub.primary_task,
                supported_modal_schema_ids=list(sub.supported_modal_schema_ids),
            )
            for sub in module.submodules
        ],
    )


# ===========================================
# Session Endpoints
# ===========================================


@router.post("/session/start", response_model=SessionStateResponse)
async def start_session(
    request: StartSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionStateResponse:
    """
    Start a new session.

    If the first question cannot be generated the session is returned in
    the "error" state; call /retry to try again.
    """
    return await manager.start_session(
        user_id=request.user_id,
        module_id=request.module_id,
        target_language=request.target_language,
        source_language=request.source_language,
        difficulty=request.difficulty.value if request.difficulty else None,
    )


@router.post("/session/generate", response_model=PreviewResponse)
async def generate_preview(
    request: GeneratePreviewRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> PreviewResponse:
    """Generate a question for a forced or picked (submodule, schema) pair."""
    return await manager.generate_preview(
        module_id=request.module_id,
        target_language=request.target_language,
        source_language=request.source_language,
        submodule_id=request.submodule_id,
        schema_id=request.modal_schema_id,
        difficulty=request.difficulty.value if request.difficulty else None,
    )


@router.get("/session/{session_id}", response_model=SessionStateResponse)
async def get_session_state(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionStateResponse:
    return await manager.get_session_state(session_id)


@router.post("/session/{session_id}/submit", response_model=SubmitAnswerResponse)
async def submit_answer(
    session_id: str,
    request: SubmitAnswerRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SubmitAnswerResponse:
    """
    Submit an answer to the current question.

    Returns the judgement and, when pre-fetch succeeded, the next step.
    """
    return await manager.submit_answer(session_id, request.answer)


@router.post("/session/{session_id}/advance", response_model=SessionStateResponse)
async def advance_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionStateResponse:
    return await manager.advance(session_id)


@router.post("/session/{session_id}/retry", response_model=SessionStateResponse)
async def retry_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionStateResponse:
    return await manager.retry(session_id)


@router.post("/session/{session_id}/flush", response_model=FlushEventsResponse)
async def flush_session_events(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> FlushEventsResponse:
    return await manager.flush_events(session_id)


@router.post("/session/{session_id}/end", response_model=EndSessionResponse)
async def end_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> EndSessionResponse:
    """End a session and get its summary."""
    return await manager.end_session(session_id)


# ===========================================
# Catalog Endpoints
# ===========================================


@router.get("/modules", response_model=list[ModuleSummary])
async def list_modules(
    language: Optional[str] = Query(None, description="Source language filter"),
    manager: SessionManager = Depends(get_session_manager),
) -> list[ModuleSummary]:
    return [_module_summary(m) for m in manager.list_modules(language)]


@router.get("/modules/{module_id}", response_model=ModuleSummary)
async def get_module(
    module_id: str,
    language: Optional[str] = Query(None, description="Language for titles"),
    manager: SessionManager = Depends(get_session_manager),
) -> ModuleSummary:
    return _module_summary(manager.get_module(module_id, language))


# ===========================================
# Statistics Endpoints
# ===========================================


@router.get("/performance", response_model=ModulePerformance)
async def get_module_performance(
    user_id: str = Query(..., alias="userId"),
    module_id: str = Query(..., alias="moduleId"),
    manager: SessionManager = Depends(get_session_manager),
) -> ModulePerformance:
    """Overall and per-skill accuracy for a user's marked answers in a module."""
    return await manager.get_module_performance(user_id, module_id)


@router.get("/history", response_model=list[LearningSessionRecord])
async def get_session_history(
    user_id: str = Query(..., alias="userId"),
    module_id: Optional[str] = Query(None, alias="moduleId"),
    limit: int = Query(100, ge=1, le=500),
    manager: SessionManager = Depends(get_session_manager),
) -> list[LearningSessionRecord]:
    return await manager.get_user_session_history(user_id, module_id, limit)
