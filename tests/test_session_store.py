"""
Unit tests for the in-memory session store and level navigation
"""

import threading
import unittest

from sqlmastery.schemas import NavigationAction, QueryResult
from sqlmastery.session_store import SessionStore, resolve_navigation


class TestResolveNavigation(unittest.TestCase):

    def test_next_clamped(self):
        self.assertEqual(resolve_navigation(5, NavigationAction.NEXT), 6)
        self.assertEqual(resolve_navigation(100, NavigationAction.NEXT), 100)

    def test_previous_clamped(self):
        self.assertEqual(resolve_navigation(5, NavigationAction.PREVIOUS), 4)
        self.assertEqual(resolve_navigation(1, NavigationAction.PREVIOUS), 1)

    def test_jump(self):
        self.assertEqual(resolve_navigation(5, NavigationAction.JUMP, 42), 42)
        # Out-of-range or missing targets keep the current level
        self.assertEqual(resolve_navigation(5, NavigationAction.JUMP, 0), 5)
        self.assertEqual(resolve_navigation(5, NavigationAction.JUMP, 101), 5)
        self.assertEqual(resolve_navigation(5, NavigationAction.JUMP), 5)

    def test_reset_keeps_level(self):
        self.assertEqual(resolve_navigation(7, NavigationAction.RESET), 7)


class TestSessionStore(unittest.TestCase):
    """Test SessionStore operations"""

    def setUp(self):
        self.store = SessionStore()

    def test_create_session_defaults(self):
        session = self.store.create_session()
        self.assertEqual(session.current_level, 1)
        self.assertEqual(session.score, 0)
        self.assertEqual(session.hints_used, 0)
        self.assertEqual(session.start_time, session.last_activity)
        self.assertIs(self.store.get_session(session.id), session)

    def test_session_ids_unique(self):
        ids = {self.store.create_session().id for _ in range(20)}
        self.assertEqual(len(ids), 20)

    def test_unknown_session(self):
        self.assertIsNone(self.store.get_session("missing"))
        self.assertIsNone(self.store.update_session("missing", score=5))
        self.assertIsNone(self.store.add_score("missing", 5))
        self.assertIsNone(self.store.increment_hints_used("missing"))
        self.assertFalse(self.store.delete_session("missing"))

    def test_update_refreshes_last_activity(self):
        session = self.store.create_session()
        updated = self.store.update_session(session.id, current_level=3)
        self.assertEqual(updated.current_level, 3)
        self.assertGreaterEqual(updated.last_activity, session.last_activity)
        self.assertEqual(updated.start_time, session.start_time)

    def test_score_accumulates(self):
        session = self.store.create_session()
        self.store.add_score(session.id, 100)
        self.store.add_score(session.id, 100)
        self.assertEqual(self.store.get_session(session.id).score, 200)

    def test_concurrent_score_updates(self):
        session = self.store.create_session()
        threads = [threading.Thread(target=self.store.add_score, args=(session.id, 1)) for _ in range(50)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(self.store.get_session(session.id).score, 50)

    def test_hints_used(self):
        session = self.store.create_session()
        self.store.increment_hints_used(session.id)
        self.store.increment_hints_used(session.id)
        self.assertEqual(self.store.get_session(session.id).hints_used, 2)

    def test_query_results(self):
        session = self.store.create_session()
        self.assertIsNone(self.store.get_latest_query_result(session.id))

        first = QueryResult(success=False, error="Invalid level", execution_time=0, is_correct=False)
        second = QueryResult(success=True, data=[], execution_time=1, is_correct=False, score_earned=0)
        self.store.store_query_result(session.id, first)
        self.store.store_query_result(session.id, second)
        self.assertIs(self.store.get_latest_query_result(session.id), second)

    def test_delete_session(self):
        session = self.store.create_session()
        self.store.store_query_result(session.id, QueryResult(success=True, execution_time=0))
        self.assertTrue(self.store.delete_session(session.id))
        self.assertIsNone(self.store.get_session(session.id))
        self.assertIsNone(self.store.get_latest_query_result(session.id))


if __name__ == '__main__':
    unittest.main()
