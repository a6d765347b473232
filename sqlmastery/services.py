"""
Service wiring
Builds the catalog, sandbox pool, execution service, session store and mentor
once per application and hands them to request handlers through FastAPI
dependencies.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from .config import Config
from .duckdb_sandbox import SandboxPool
from .gemini_mentor import SQLMentor
from .level_catalog import LevelCatalog
from .secure_execution import QueryExecutionService
from .session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class GameServices:
    catalog: LevelCatalog
    executor: QueryExecutionService
    sessions: SessionStore
    mentor: SQLMentor

    def shutdown(self) -> None:
        released = self.executor.shutdown()
        logger.info(f"Game services stopped, {released} sandbox(es) released")


def build_services(catalog: Optional[LevelCatalog] = None,
                   pool: Optional[SandboxPool] = None,
                   mentor: Optional[SQLMentor] = None) -> GameServices:
    if catalog is None:
        catalog = LevelCatalog.from_file(Config.LEVELS_FILE) if Config.LEVELS_FILE else LevelCatalog()
    if pool is None:
        pool = SandboxPool(
            ttl_seconds=Config.SANDBOX_TTL_SECONDS,
            query_timeout_seconds=Config.SANDBOX_QUERY_TIMEOUT_SECONDS,
            memory_limit_mb=Config.SANDBOX_MEMORY_LIMIT_MB,
        )
    return GameServices(
        catalog=catalog,
        executor=QueryExecutionService(catalog, pool),
        sessions=SessionStore(),
        mentor=mentor or SQLMentor(),
    )


def get_services(request: Request) -> GameServices:
    return request.app.state.services
