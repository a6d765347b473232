"""
Unit tests for query execution and grading
"""

import math
import unittest
from datetime import date
from decimal import Decimal
from unittest.mock import Mock

from sqlmastery.duckdb_sandbox import SandboxClosedError, SandboxPool, SandboxQueryError
from sqlmastery.level_catalog import LevelCatalog
from sqlmastery.query_validator import FORBIDDEN_OPERATION_ERROR, INVALID_PREFIX_ERROR
from sqlmastery.schemas import Level
from sqlmastery.secure_execution import CORRECT_FEEDBACK, QueryExecutionService, sanitize_json_data
from tests.test_duckdb_sandbox import FakeTimerFactory

LEVEL_ONE_ROWS = [
    {"id": 1, "name": "Alice Johnson", "email": "alice@example.com", "age": 28},
    {"id": 2, "name": "Bob Smith", "email": "bob@example.com", "age": 34},
    {"id": 3, "name": "Carol Davis", "email": "carol@example.com", "age": 25},
]


def _solution_from_hint(hint):
    return hint[hint.index("SELECT"):]


class TestQueryExecutionService(unittest.TestCase):
    """Test execution against real sandboxes"""

    @classmethod
    def setUpClass(cls):
        cls.catalog = LevelCatalog()

    def setUp(self):
        self.pool = SandboxPool(timer_factory=FakeTimerFactory())
        self.service = QueryExecutionService(self.catalog, self.pool)
        self.addCleanup(self.service.shutdown)

    def test_correct_select_all(self):
        result = self.service.execute_query("s1", 1, "SELECT * FROM users")
        self.assertTrue(result.success)
        self.assertTrue(result.is_correct)
        self.assertEqual(result.score_earned, 100)
        self.assertEqual(result.feedback, CORRECT_FEEDBACK)
        self.assertEqual(len(result.data), 3)
        self.assertIsNone(result.error)

    def test_reordered_rows_still_correct(self):
        result = self.service.execute_query("s1", 1, "select * from users order by age desc")
        self.assertTrue(result.is_correct)

    def test_wrong_columns_incorrect(self):
        """Selecting a subset of columns runs but does not match"""
        result = self.service.execute_query("s1", 1, "SELECT name FROM users")
        self.assertTrue(result.success)
        self.assertFalse(result.is_correct)
        self.assertEqual(result.score_earned, 0)
        self.assertEqual(result.data, [{"name": row["name"]} for row in LEVEL_ONE_ROWS])
        self.assertIn("Expected 3 rows, got 3 rows.", result.feedback)

    def test_filtered_rows_incorrect(self):
        result = self.service.execute_query("s1", 1, "SELECT * FROM users WHERE age > 30")
        self.assertFalse(result.is_correct)
        self.assertIn("Expected 3 rows, got 1 rows.", result.feedback)

    def test_forbidden_query(self):
        result = self.service.execute_query("s1", 1, "DROP TABLE users")
        self.assertFalse(result.success)
        self.assertFalse(result.is_correct)
        self.assertEqual(result.error, FORBIDDEN_OPERATION_ERROR)
        self.assertIsNone(result.score_earned)
        self.assertEqual(len(self.pool), 0)

    def test_insert_rejected_by_prefix(self):
        result = self.service.execute_query("s1", 1, "INSERT INTO users VALUES (4, 'x', 'y', 1)")
        self.assertEqual(result.error, INVALID_PREFIX_ERROR)

    def test_engine_error(self):
        result = self.service.execute_query("s1", 1, "SELECT * FROM nonexistent")
        self.assertFalse(result.success)
        self.assertTrue(result.error.startswith("SQL Error: "))
        self.assertIsNone(result.data)

    def test_invalid_level(self):
        result = self.service.execute_query("s1", 999, "SELECT 1")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Invalid level")
        self.assertEqual(len(self.pool), 0)

    def test_filter_level_scenarios(self):
        """Level 8 is the value >= 200 filter exercise"""
        correct = self.service.execute_query("s1", 8, "SELECT * FROM sample_table WHERE value >= 200")
        self.assertTrue(correct.is_correct)

        too_many = self.service.execute_query("s1", 8, "SELECT * FROM sample_table")
        self.assertFalse(too_many.is_correct)
        self.assertIn("Expected 2 rows, got 3 rows.", too_many.feedback)

    def test_every_level_solvable_with_final_hint(self):
        """The last hint of every level carries a query the grader accepts"""
        for level in self.catalog.get_all_levels():
            with self.subTest(level=level.id):
                query = _solution_from_hint(level.hints[-1])
                result = self.service.execute_query("solver", level.id, query)
                self.assertTrue(result.success, result.error)
                self.assertTrue(result.is_correct, result.feedback)
                self.assertEqual(result.score_earned, level.max_score)

    def test_execution_time_always_reported(self):
        queries = [(1, "SELECT * FROM users"), (1, "DROP TABLE users"),
                   (1, "SELECT * FROM nope"), (999, "SELECT 1")]
        for level_id, query in queries:
            with self.subTest(query=query):
                result = self.service.execute_query("s1", level_id, query)
                self.assertIsInstance(result.execution_time, int)
                self.assertGreaterEqual(result.execution_time, 0)

    def test_get_hint(self):
        self.assertEqual(self.service.get_hint(1, 3), "The complete query is: SELECT * FROM users;")
        self.assertIsNone(self.service.get_hint(1, 4))

    def test_release_session(self):
        self.service.execute_query("s1", 1, "SELECT * FROM users")
        self.service.execute_query("s1", 2, "SELECT * FROM sample_table")
        self.assertEqual(self.service.release_session("s1"), 2)
        self.assertEqual(len(self.pool), 0)


class TestTypedColumnGrading(unittest.TestCase):
    """Decimal and timestamp columns grade on the same values the learner sees"""

    @classmethod
    def setUpClass(cls):
        cls.catalog = LevelCatalog([Level.model_validate({
            "id": 1,
            "title": "Price List",
            "description": "Return every product",
            "difficulty": "Beginner",
            "tables": [{
                "name": "products",
                "schema": {"id": "INTEGER", "price": "DECIMAL(10,2)", "listed_at": "TIMESTAMP"},
                "data": [
                    {"id": 1, "price": 9.99, "listed_at": "2024-01-02T10:00:00"},
                    {"id": 2, "price": 12.5, "listed_at": "2024-03-04T08:30:00"},
                ],
            }],
            "expectedResult": [
                {"id": 1, "price": 9.99, "listed_at": "2024-01-02T10:00:00"},
                {"id": 2, "price": 12.5, "listed_at": "2024-03-04T08:30:00"},
            ],
            "hints": ["SELECT * FROM products;"],
            "maxScore": 40,
        })])

    def setUp(self):
        self.service = QueryExecutionService(self.catalog, SandboxPool(timer_factory=FakeTimerFactory()))
        self.addCleanup(self.service.shutdown)

    def test_decimal_and_timestamp_columns_correct(self):
        result = self.service.execute_query("s1", 1, "SELECT * FROM products")

        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data[0], {"id": 1, "price": 9.99, "listed_at": "2024-01-02T10:00:00"})
        self.assertTrue(result.is_correct, result.feedback)
        self.assertEqual(result.score_earned, 40)

    def test_wrong_rows_still_incorrect(self):
        result = self.service.execute_query("s1", 1, "SELECT * FROM products WHERE price > 10")
        self.assertFalse(result.is_correct)
        self.assertIn("Expected 2 rows, got 1 rows.", result.feedback)


class TestQueryExecutionServiceWithMockPool(unittest.TestCase):
    """Test orchestration paths without DuckDB"""

    @classmethod
    def setUpClass(cls):
        cls.catalog = LevelCatalog()

    def setUp(self):
        self.pool = Mock(spec=SandboxPool)
        self.service = QueryExecutionService(self.catalog, self.pool)

    def test_rejected_query_never_reaches_pool(self):
        for query in ["DROP TABLE users", "UPDATE users SET age = 1", ""]:
            with self.subTest(query=query):
                self.service.execute_query("s1", 1, query)
        self.pool.acquire.assert_not_called()

    def test_sandbox_query_error(self):
        sandbox = Mock()
        sandbox.execute_query.side_effect = SandboxQueryError("Query timeout after 30 seconds")
        self.pool.acquire.return_value = sandbox

        result = self.service.execute_query("s1", 1, "SELECT * FROM users")
        self.assertEqual(result.error, "SQL Error: Query timeout after 30 seconds")

    def test_unexpected_error_becomes_system_error(self):
        self.pool.acquire.side_effect = RuntimeError("boom")

        result = self.service.execute_query("s1", 1, "SELECT * FROM users")
        self.assertFalse(result.success)
        self.assertFalse(result.is_correct)
        self.assertEqual(result.error, "System error: boom")

    def test_closed_sandbox_is_recreated_once(self):
        """A sandbox evicted between acquire and execute is replaced by a fresh one"""
        stale = Mock()
        stale.execute_query.side_effect = SandboxClosedError("closed")
        fresh = Mock()
        fresh.execute_query.return_value = [dict(row) for row in LEVEL_ONE_ROWS]
        self.pool.acquire.side_effect = [stale, fresh]

        result = self.service.execute_query("s1", 1, "SELECT * FROM users")

        self.assertTrue(result.is_correct)
        self.assertEqual(self.pool.acquire.call_count, 2)

    def test_shutdown_releases_all(self):
        self.pool.release_all.return_value = 3
        self.assertEqual(self.service.shutdown(), 3)


class TestSanitizeJsonData(unittest.TestCase):
    """Test JSON sanitization of result rows"""

    def test_special_floats(self):
        data = sanitize_json_data({"nan": float("nan"), "inf": math.inf, "neg": -math.inf, "ok": 1.5})
        self.assertEqual(data, {"nan": None, "inf": "Infinity", "neg": "-Infinity", "ok": 1.5})

    def test_dates_and_decimals(self):
        data = sanitize_json_data([{"d": date(2024, 1, 2), "n": Decimal("2.50")}])
        self.assertEqual(data, [{"d": "2024-01-02", "n": 2.5}])

    def test_bytes(self):
        self.assertEqual(sanitize_json_data(b"abc"), "abc")
        self.assertEqual(sanitize_json_data(b"\xff"), "base64:/w==")

    def test_primitives_untouched(self):
        self.assertEqual(sanitize_json_data([1, "a", True, None]), [1, "a", True, None])


if __name__ == '__main__':
    unittest.main()
