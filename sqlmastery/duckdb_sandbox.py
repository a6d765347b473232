"""
DuckDB Sandbox Service for SQL Learning Platform
===============================================
One isolated in-memory DuckDB database per (session, level) pair, seeded with
the level's tables, plus the pool that lazily creates, expires and evicts them.
"""

import duckdb
import logging
import re
import sqlparse
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .schemas import Level, TableDefinition

logger = logging.getLogger(__name__)


class SandboxSetupError(Exception):
    """Raised when a level's tables cannot be created or seeded"""
    pass


class SandboxQueryError(Exception):
    """Raised when the engine rejects or fails a learner query"""
    pass


class SandboxClosedError(Exception):
    """Raised when a query reaches a sandbox that was already evicted"""
    pass


class DuckDBSandbox:
    """
    Isolated DuckDB instance for executing user SQL queries against one level's data
    """

    TABLE_NAME_PATTERN = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]{0,63}$')

    # Strict allowlist of declared column types
    ALLOWED_COLUMN_TYPES = {
        'BOOLEAN', 'BOOL',
        'TINYINT', 'SMALLINT', 'INTEGER', 'INT', 'BIGINT',
        'REAL', 'FLOAT', 'DOUBLE', 'DECIMAL', 'NUMERIC',
        'VARCHAR', 'CHAR', 'TEXT', 'STRING',
        'DATE', 'TIME', 'TIMESTAMP',
    }

    def __init__(self, sandbox_id: str, timeout_seconds: float = 30, memory_limit_mb: int = 128):
        """
        Initialize DuckDB sandbox with memory and time limits

        Args:
            sandbox_id: Pool key of this instance ("<session>-<level>")
            timeout_seconds: Maximum query execution time
            memory_limit_mb: Memory limit for the DuckDB instance
        """
        self.id = sandbox_id
        self.timeout_seconds = timeout_seconds
        self.memory_limit_mb = memory_limit_mb
        self.conn = None
        self.loaded_table_names = []
        # Single reader/writer per instance
        self._lock = threading.Lock()

        self._initialize_connection()

    def _initialize_connection(self):
        """Open the in-memory connection with resource limits"""
        # Learner queries never need files or network
        self.conn = duckdb.connect(":memory:", config={
            "memory_limit": f"{int(self.memory_limit_mb)}MB",
            "threads": 1,
            "enable_external_access": False,
        })
        logger.debug(f"DuckDB sandbox {self.id} initialized with {self.memory_limit_mb}MB memory limit")

    @property
    def closed(self) -> bool:
        return self.conn is None

    def _escape_identifier(self, identifier: str) -> str:
        return f'"{identifier.replace(chr(34), chr(34) + chr(34))}"'

    def _validate_identifier(self, identifier: str) -> str:
        if not self.TABLE_NAME_PATTERN.match(identifier or ''):
            raise ValueError(f"Invalid identifier '{identifier}'")
        return self._escape_identifier(identifier)

    def _validate_column_type(self, col_type: str) -> str:
        """
        Validate a declared column type token, keeping numeric parameters such as VARCHAR(50)

        Raises:
            ValueError: if the base type is not in the allowlist
        """
        col_type = (col_type or '').upper().strip()
        base_type = col_type
        parameters = ""
        if '(' in col_type:
            base_type = col_type.split('(')[0].strip()
            param_part = col_type[col_type.find('('):]
            if not re.match(r'^\(\s*\d+(\s*,\s*\d+)?\s*\)$', param_part):
                raise ValueError(f"Invalid column type parameters '{col_type}'")
            parameters = param_part

        if base_type not in self.ALLOWED_COLUMN_TYPES:
            raise ValueError(f"Unsupported column type '{col_type}'")
        return base_type + parameters

    def _create_table(self, table: TableDefinition) -> int:
        escaped_table_name = self._validate_identifier(table.name)

        column_names = list(table.columns.keys())
        column_definitions = [
            f"{self._validate_identifier(name)} {self._validate_column_type(col_type)}"
            for name, col_type in table.columns.items()
        ]
        self.conn.execute(f"CREATE TABLE {escaped_table_name} ({', '.join(column_definitions)})")

        if table.data:
            escaped_columns = ', '.join(self._escape_identifier(name) for name in column_names)
            placeholders = ', '.join('?' for _ in column_names)
            insert_sql = f"INSERT INTO {escaped_table_name} ({escaped_columns}) VALUES ({placeholders})"
            self.conn.executemany(insert_sql, [
                [row.get(name) for name in column_names] for row in table.data
            ])

        self.loaded_table_names.append(table.name)
        return len(table.data)

    def load_level(self, level: Level) -> None:
        """
        Create every table of the level in declaration order and insert its seed rows

        Raises:
            SandboxSetupError: on any DDL or insert failure; nothing is left half-seeded
        """
        try:
            self.conn.execute("BEGIN TRANSACTION")
            try:
                total_rows = 0
                for table in level.tables:
                    total_rows += self._create_table(table)
                self.conn.execute("COMMIT")
            except Exception:
                self.conn.execute("ROLLBACK")
                raise

            logger.info(
                f"Sandbox {self.id} seeded with {len(level.tables)} tables and {total_rows} rows"
            )
        except Exception as e:
            logger.error(f"Failed to set up level {level.id} in sandbox {self.id}: {e}")
            raise SandboxSetupError(f"Failed to set up level {level.id}: {e}") from e

    @staticmethod
    def _count_statements(query: str) -> int:
        statements = [
            statement for statement in sqlparse.split(query)
            if sqlparse.format(statement, strip_comments=True).strip()
        ]
        return len(statements)

    def _fetch_rows(self, query: str) -> List[Dict[str, Any]]:
        cursor = self.conn.execute(query)
        if cursor.description is None:
            return []
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def execute_query(self, query: str) -> List[Dict[str, Any]]:
        """
        Execute a learner query and return every row as a column -> value dict

        Raises:
            SandboxQueryError: engine errors, multi-statement input and timeouts
            SandboxClosedError: the sandbox was evicted before the query ran
        """
        if self._count_statements(query) > 1:
            raise SandboxQueryError("The supplied SQL string contains more than one statement")

        with self._lock:
            if self.conn is None:
                raise SandboxClosedError(f"Sandbox {self.id} is closed")

            executor = ThreadPoolExecutor(max_workers=1)
            try:
                future = executor.submit(self._fetch_rows, query)
                try:
                    return future.result(timeout=self.timeout_seconds)
                except FutureTimeoutError:
                    logger.warning(f"Query timeout after {self.timeout_seconds} seconds in sandbox {self.id}")
                    self.conn.interrupt()
                    raise SandboxQueryError(f"Query timeout after {self.timeout_seconds} seconds")
                except duckdb.Error as e:
                    raise SandboxQueryError(str(e)) from e
            finally:
                # Wait for an interrupted query to unwind before the connection is reused
                executor.shutdown(wait=True)

    def get_table_names(self) -> List[str]:
        with self._lock:
            if self.conn is None:
                return []
            tables_result = self.conn.execute("""
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'main'
                AND table_type = 'BASE TABLE'
                ORDER BY table_name
            """).fetchall()
            return [row[0] for row in tables_result]

    def cleanup(self):
        """Close the DuckDB connection; safe to call more than once"""
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None
                logger.debug(f"DuckDB sandbox {self.id} closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()


@dataclass
class _SandboxEntry:
    session_id: str
    sandbox: DuckDBSandbox
    timer: Any


class SandboxPool:
    """
    Owns at most one live sandbox per (session, level) key.

    Creation is serialized per key; each instance carries a cancellable expiry
    timer armed at creation and never renewed on access.
    """

    def __init__(self,
                 ttl_seconds: float = 3600,
                 query_timeout_seconds: float = 30,
                 memory_limit_mb: int = 128,
                 timer_factory: Callable[..., Any] = threading.Timer,
                 sandbox_factory: Optional[Callable[..., DuckDBSandbox]] = None):
        self.ttl_seconds = ttl_seconds
        self.query_timeout_seconds = query_timeout_seconds
        self.memory_limit_mb = memory_limit_mb
        self._timer_factory = timer_factory
        self._sandbox_factory = sandbox_factory or DuckDBSandbox
        self._sandboxes: Dict[str, _SandboxEntry] = {}
        self._creation_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @staticmethod
    def make_key(session_id: str, level_id: int) -> str:
        return f"{session_id}-{level_id}"

    def acquire(self, session_id: str, level: Level) -> DuckDBSandbox:
        """Return the live sandbox for (session, level), creating and seeding it if absent"""
        key = self.make_key(session_id, level.id)

        with self._registry_lock:
            entry = self._sandboxes.get(key)
            if entry is not None:
                return entry.sandbox
            creation_lock = self._creation_locks.setdefault(key, threading.Lock())

        with creation_lock:
            # Another caller may have finished creating it while we waited
            with self._registry_lock:
                entry = self._sandboxes.get(key)
                if entry is not None:
                    return entry.sandbox

            sandbox = self._sandbox_factory(
                key,
                timeout_seconds=self.query_timeout_seconds,
                memory_limit_mb=self.memory_limit_mb,
            )
            try:
                sandbox.load_level(level)
            except Exception:
                sandbox.cleanup()
                with self._registry_lock:
                    self._creation_locks.pop(key, None)
                raise

            timer = self._timer_factory(self.ttl_seconds, self._expire, args=(key, sandbox))
            timer.daemon = True

            with self._registry_lock:
                self._sandboxes[key] = _SandboxEntry(
                    session_id=session_id,
                    sandbox=sandbox,
                    timer=timer,
                )
                self._creation_locks.pop(key, None)

            timer.start()
            logger.info(f"Created sandbox {key} (expires in {self.ttl_seconds}s)")
            return sandbox

    def get(self, session_id: str, level_id: int) -> Optional[DuckDBSandbox]:
        with self._registry_lock:
            entry = self._sandboxes.get(self.make_key(session_id, level_id))
            return entry.sandbox if entry else None

    def _expire(self, key: str, sandbox: DuckDBSandbox) -> None:
        """Timer callback; a no-op when the entry was already evicted or replaced"""
        with self._registry_lock:
            entry = self._sandboxes.get(key)
            if entry is None or entry.sandbox is not sandbox:
                return
            del self._sandboxes[key]

        sandbox.cleanup()
        logger.info(f"Sandbox {key} expired and was evicted")

    def _evict(self, entries: List[_SandboxEntry]) -> int:
        for entry in entries:
            entry.timer.cancel()
            entry.sandbox.cleanup()
        return len(entries)

    def release_session(self, session_id: str) -> int:
        """
        Close and evict every sandbox belonging to the session.

        Matches the stored session id rather than the "<session>-" key prefix,
        so releasing session "a" never touches the sandboxes of session "a-1".
        """
        with self._registry_lock:
            keys = [key for key, entry in self._sandboxes.items() if entry.session_id == session_id]
            entries = [self._sandboxes.pop(key) for key in keys]

        released = self._evict(entries)
        if released:
            logger.info(f"Released {released} sandbox(es) for session {session_id}")
        return released

    def release_all(self) -> int:
        with self._registry_lock:
            entries = list(self._sandboxes.values())
            self._sandboxes.clear()

        released = self._evict(entries)
        logger.info(f"Released all {released} sandbox(es)")
        return released

    def active_keys(self) -> List[str]:
        with self._registry_lock:
            return list(self._sandboxes.keys())

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._sandboxes)
