"""
Secure Query Execution
======================
Orchestrates Validator -> Sandbox Pool -> engine -> Comparator -> score for one
learner query. Every outcome, including failures, is returned as a QueryResult;
nothing raises past `execute_query`.
"""

import base64
import logging
import math
import time
from typing import Any, Dict, List, Optional

from .duckdb_sandbox import SandboxPool, SandboxQueryError, SandboxClosedError
from .level_catalog import LevelCatalog
from .query_validator import SafetyValidator
from .result_comparator import ResultComparator
from .schemas import Level, QueryResult

logger = logging.getLogger(__name__)

CORRECT_FEEDBACK = "Excellent! Your query returned the correct results."


def sanitize_json_data(data: Any, seen: set = None) -> Any:
    """JSON sanitization for result rows returned by the engine"""
    if seen is None:
        seen = set()

    # Cycle detection for nested structures
    data_id = id(data)
    if data_id in seen:
        return None

    if data is None:
        return None

    if isinstance(data, (bool, int, str)):
        return data

    seen.add(data_id)

    try:
        # Handle float with NaN/Infinity
        if isinstance(data, float):
            if math.isnan(data):
                return None
            elif math.isinf(data):
                return "Infinity" if data > 0 else "-Infinity"
            return data

        # BLOB columns come back as bytes
        elif isinstance(data, (bytes, bytearray, memoryview)):
            data = bytes(data)
            try:
                return data.decode('utf-8')
            except UnicodeDecodeError:
                return f"base64:{base64.b64encode(data).decode('ascii')}"

        elif isinstance(data, dict):
            return {str(k): sanitize_json_data(v, seen) for k, v in data.items()}

        elif isinstance(data, (list, tuple, set)):
            return [sanitize_json_data(item, seen) for item in data]

        # datetime, date, time
        elif hasattr(data, 'isoformat'):
            return data.isoformat()

        # Decimal from NUMERIC / AVG results
        elif data.__class__.__name__ == 'Decimal':
            return float(data) if data.is_finite() else str(data)

        # UUID, timedelta and anything else
        else:
            return str(data)

    finally:
        seen.discard(data_id)


class QueryExecutionService:
    """Runs learner queries in per-session, per-level sandboxes and grades them"""

    def __init__(self,
                 catalog: LevelCatalog,
                 pool: Optional[SandboxPool] = None,
                 validator: Optional[SafetyValidator] = None,
                 comparator: Optional[ResultComparator] = None):
        self.catalog = catalog
        self.pool = pool or SandboxPool()
        self.validator = validator or SafetyValidator()
        self.comparator = comparator or ResultComparator()

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.time() - start_time) * 1000)

    def _error_result(self, error: str, start_time: float) -> QueryResult:
        return QueryResult(
            success=False,
            error=error,
            is_correct=False,
            execution_time=self._elapsed_ms(start_time),
        )

    def _run_in_sandbox(self, session_id: str, level: Level, query: str) -> List[Dict[str, Any]]:
        sandbox = self.pool.acquire(session_id, level)
        try:
            return sandbox.execute_query(query)
        except SandboxClosedError:
            # Expired between acquire and execute; a fresh instance is re-seeded
            logger.info(f"Sandbox for session {session_id} level {level.id} closed mid-request, recreating")
            return self.pool.acquire(session_id, level).execute_query(query)

    def execute_query(self, session_id: str, level_id: int, query: str) -> QueryResult:
        start_time = time.time()

        try:
            level = self.catalog.get_level(level_id)
            if not level:
                return self._error_result("Invalid level", start_time)

            validation = self.validator.validate(query)
            if not validation.is_valid:
                return self._error_result(validation.error, start_time)

            try:
                rows = self._run_in_sandbox(session_id, level, query)
            except SandboxQueryError as e:
                return self._error_result(f"SQL Error: {e}", start_time)

            # Grade the same JSON-shaped rows the learner is shown
            data = sanitize_json_data(rows)
            is_correct = self.comparator.equal(data, level.expected_result)
            if is_correct:
                score_earned = level.max_score
                feedback = CORRECT_FEEDBACK
            else:
                score_earned = 0
                feedback = self.comparator.mismatch_feedback(data, level.expected_result)

            return QueryResult(
                success=True,
                data=data,
                execution_time=self._elapsed_ms(start_time),
                is_correct=is_correct,
                feedback=feedback,
                score_earned=score_earned,
            )

        except Exception as e:
            logger.error(f"System error executing query for session {session_id} level {level_id}: {e}",
                         exc_info=True)
            return self._error_result(f"System error: {e}", start_time)

    def get_hint(self, level_id: int, hint_level: int) -> Optional[str]:
        return self.catalog.get_hint(level_id, hint_level)

    def release_session(self, session_id: str) -> int:
        return self.pool.release_session(session_id)

    def shutdown(self) -> int:
        return self.pool.release_all()
