"""
Game API Routes
===============
Sessions, levels, query execution, hints, level navigation and the AI mentor.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status

from .config import Config
from .gemini_mentor import MentorNotConfiguredError
from .rate_limiter import limiter
from .schemas import (
    AskRequest,
    AskResponse,
    CleanupResponse,
    HintRequest,
    HintResponse,
    LevelListResponse,
    LevelProgressRequest,
    LevelResponse,
    LevelSummary,
    QueryExecutionRequest,
    QueryResultResponse,
    SessionResponse,
)
from .services import GameServices, get_services
from .session_store import resolve_navigation

logger = logging.getLogger(__name__)

game_router = APIRouter(prefix="/api", tags=["game"])


def _require_session(services: GameServices, session_id: str):
    session = services.sessions.get_session(session_id)
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


# ============================================================================
# SESSIONS
# ============================================================================

@game_router.post("/session", response_model=SessionResponse)
async def create_session(services: GameServices = Depends(get_services)):
    """Start a new game session at level 1"""
    session = services.sessions.create_session()
    logger.info(f"Created session {session.id}")
    return {"session": session}


@game_router.get("/session/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, services: GameServices = Depends(get_services)):
    return {"session": _require_session(services, session_id)}


@game_router.get("/session/{session_id}/result", response_model=QueryResultResponse,
                 response_model_exclude_none=True)
async def get_latest_result(session_id: str, services: GameServices = Depends(get_services)):
    """Latest query result recorded for the session"""
    _require_session(services, session_id)
    result = services.sessions.get_latest_query_result(session_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No query result found")
    return {"result": result}


@game_router.post("/session/{session_id}/cleanup", response_model=CleanupResponse)
async def cleanup_session(session_id: str, services: GameServices = Depends(get_services)):
    """Evict every sandbox held for the session"""
    released = services.executor.release_session(session_id)
    return {"success": True, "released": released}


@game_router.delete("/session/{session_id}", response_model=CleanupResponse)
async def end_session(session_id: str, services: GameServices = Depends(get_services)):
    """Evict the session's sandboxes and forget the session"""
    _require_session(services, session_id)
    released = services.executor.release_session(session_id)
    services.sessions.delete_session(session_id)
    logger.info(f"Ended session {session_id}")
    return {"success": True, "released": released}


# ============================================================================
# LEVELS
# ============================================================================

@game_router.get("/levels", response_model=LevelListResponse)
async def list_levels(services: GameServices = Depends(get_services)):
    levels = [
        LevelSummary(id=level.id, title=level.title, difficulty=level.difficulty)
        for level in services.catalog.get_all_levels()
    ]
    return {"levels": levels}


@game_router.get("/level/{level_id}", response_model=LevelResponse, response_model_exclude_none=True)
async def get_level(level_id: int, services: GameServices = Depends(get_services)):
    level = services.catalog.get_level(level_id)
    if not level:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Level not found")
    return {"level": level}


@game_router.post("/level/navigate", response_model=SessionResponse)
async def navigate_level(payload: LevelProgressRequest, services: GameServices = Depends(get_services)):
    """Move the session to the next, previous or a chosen level"""
    _require_session(services, payload.session_id)
    new_level = resolve_navigation(payload.level, payload.action, payload.target_level)
    session = services.sessions.update_session(payload.session_id, current_level=new_level)
    return {"session": session}


# ============================================================================
# QUERY EXECUTION & HINTS
# ============================================================================

@game_router.post("/execute", response_model=QueryResultResponse, response_model_exclude_none=True)
@limiter.limit(Config.RATE_LIMIT_EXECUTE)
async def execute_query(request: Request, payload: QueryExecutionRequest,
                        services: GameServices = Depends(get_services)):
    """Run a learner query in the session's sandbox for the level and grade it"""
    _require_session(services, payload.session_id)

    result = services.executor.execute_query(payload.session_id, payload.level, payload.query)
    services.sessions.store_query_result(payload.session_id, result)

    if result.is_correct and result.score_earned:
        services.sessions.add_score(payload.session_id, result.score_earned)

    return {"result": result}


@game_router.post("/hint", response_model=HintResponse)
async def get_hint(payload: HintRequest, services: GameServices = Depends(get_services)):
    _require_session(services, payload.session_id)

    hint = services.executor.get_hint(payload.level, payload.hint_level)
    if not hint:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hint not found")

    services.sessions.increment_hints_used(payload.session_id)
    return {"hint": hint}


# ============================================================================
# AI MENTOR
# ============================================================================

@game_router.post("/ask", response_model=AskResponse)
@limiter.limit(Config.RATE_LIMIT_ASK)
async def ask_mentor(request: Request, payload: AskRequest, services: GameServices = Depends(get_services)):
    try:
        answer = await services.mentor.ask(payload.question, payload.level_id, payload.current_query)
    except MentorNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except Exception as e:
        logger.error(f"AI mentor request failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "AI request failed"
        )
    return {"answer": answer}
