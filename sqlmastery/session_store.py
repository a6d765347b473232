"""
In-memory session store
Game sessions and the latest query result per session. Everything is lost on
process restart.
"""
import threading
import uuid
from datetime import datetime
from typing import Dict, Optional

from .level_catalog import MAX_LEVEL
from .schemas import GameSession, NavigationAction, QueryResult


def resolve_navigation(level: int, action: NavigationAction,
                       target_level: Optional[int] = None) -> int:
    """Level a session moves to for a navigation action"""
    if action == NavigationAction.NEXT:
        return min(level + 1, MAX_LEVEL)
    if action == NavigationAction.PREVIOUS:
        return max(level - 1, 1)
    if action == NavigationAction.JUMP:
        if target_level is not None and 1 <= target_level <= MAX_LEVEL:
            return target_level
        return level
    # reset keeps the level; score and hint resets are not tied to navigation
    return level


class SessionStore:
    """Thread-safe in-memory storage for sessions and their latest results"""

    def __init__(self):
        self._sessions: Dict[str, GameSession] = {}
        self._query_results: Dict[str, QueryResult] = {}
        self._lock = threading.RLock()

    def create_session(self) -> GameSession:
        now = datetime.now()
        session = GameSession(
            id=str(uuid.uuid4()),
            current_level=1,
            score=0,
            hints_used=0,
            start_time=now,
            last_activity=now,
        )
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get_session(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def update_session(self, session_id: str, **changes) -> Optional[GameSession]:
        """Apply field changes and refresh last_activity; None if the session is unknown"""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            changes["last_activity"] = datetime.now()
            updated = GameSession.model_validate({**session.model_dump(), **changes})
            self._sessions[session_id] = updated
            return updated

    def add_score(self, session_id: str, points: int) -> Optional[GameSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return self.update_session(session_id, score=session.score + points)

    def increment_hints_used(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return self.update_session(session_id, hints_used=session.hints_used + 1)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            self._query_results.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def store_query_result(self, session_id: str, result: QueryResult) -> None:
        with self._lock:
            self._query_results[session_id] = result

    def get_latest_query_result(self, session_id: str) -> Optional[QueryResult]:
        with self._lock:
            return self._query_results.get(session_id)
