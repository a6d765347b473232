"""
Result Comparator
=================
Order-insensitive, type-sensitive row-set equality used to grade queries.
"""

import json
import logging
from typing import Any, Dict, List, Sequence

logger = logging.getLogger(__name__)


def encode_row(row: Dict[str, Any]) -> str:
    """Canonical encoding of a row; keys keep the order the engine returned them in"""
    return json.dumps(row, default=str, ensure_ascii=False)


class ResultComparator:
    """Compares an actual result set to the expected one"""

    def equal(self, actual: Sequence[Dict[str, Any]],
              expected: Sequence[Dict[str, Any]]) -> bool:
        if len(actual) != len(expected):
            return False

        actual_encoded = sorted(encode_row(row) for row in actual)
        expected_encoded = sorted(encode_row(row) for row in expected)

        for actual_row, expected_row in zip(actual_encoded, expected_encoded):
            if actual_row != expected_row:
                return False
        return True

    def mismatch_feedback(self, actual: List[Dict[str, Any]],
                          expected: List[Dict[str, Any]]) -> str:
        return (
            "Query executed successfully but results don't match expected output. "
            f"Expected {len(expected)} rows, got {len(actual)} rows."
        )
