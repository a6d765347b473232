"""
Level Catalog
=============
Immutable level definitions keyed by level id. Levels are built once at
startup, either from the built-in exercise set or from a JSON file, and are
never mutated afterwards.
"""
import json
import logging
from typing import Dict, List, Optional, Any

from .schemas import Level, Difficulty

logger = logging.getLogger(__name__)

MAX_LEVEL = 100

_SAMPLE_TABLE = {
    "name": "sample_table",
    "schema": {"id": "INTEGER", "name": "TEXT", "value": "INTEGER"},
    "data": [
        {"id": 1, "name": "Item 1", "value": 100},
        {"id": 2, "name": "Item 2", "value": 200},
        {"id": 3, "name": "Item 3", "value": 300},
    ],
}


def difficulty_for(level_number: int) -> str:
    """Difficulty band a level number falls into"""
    if 1 <= level_number <= 20:
        return Difficulty.BEGINNER.value
    if 21 <= level_number <= 50:
        return Difficulty.INTERMEDIATE.value
    if 51 <= level_number <= 80:
        return Difficulty.ADVANCED.value
    if 81 <= level_number <= MAX_LEVEL:
        return Difficulty.EXPERT.value
    return "Unknown"


def _first_select_level() -> Dict[str, Any]:
    users = [
        {"id": 1, "name": "Alice Johnson", "email": "alice@example.com", "age": 28},
        {"id": 2, "name": "Bob Smith", "email": "bob@example.com", "age": 34},
        {"id": 3, "name": "Carol Davis", "email": "carol@example.com", "age": 25},
    ]
    return {
        "id": 1,
        "title": "Your First SELECT",
        "description": "Write a SQL query to select all columns from the 'users' table.",
        "difficulty": Difficulty.BEGINNER.value,
        "tables": [{
            "name": "users",
            "schema": {"id": "INTEGER", "name": "TEXT", "email": "TEXT", "age": "INTEGER"},
            "data": users,
        }],
        "expectedResult": [dict(row) for row in users],
        "hints": [
            "Use the SELECT statement to retrieve data from a table.",
            "The asterisk (*) symbol selects all columns from a table.",
            "The complete query is: SELECT * FROM users;",
        ],
        "maxScore": 100,
    }


def _filter_level() -> Dict[str, Any]:
    return {
        "title": "The Gatekeeper's Filter",
        "story": "A watchman only allows items valued 200 or more into the vault.",
        "description": "Return rows from sample_table where value >= 200.",
        "objectives": ["Filter rows by numeric condition", "Return all columns"],
        "tables": [_SAMPLE_TABLE],
        "expectedResult": [
            {"id": 2, "name": "Item 2", "value": 200},
            {"id": 3, "name": "Item 3", "value": 300},
        ],
        "hints": [
            "Use WHERE to keep only qualifying rows.",
            "Example: SELECT * FROM t WHERE col >= 10;",
            "Apply: SELECT * FROM sample_table WHERE value >= 200;",
        ],
    }


def _order_level() -> Dict[str, Any]:
    return {
        "title": "The Archivist's Order",
        "story": "The archivist demands the highest values displayed first.",
        "description": "Return all rows from sample_table ordered by value descending.",
        "objectives": ["Sort results", "Use DESC order"],
        "tables": [_SAMPLE_TABLE],
        "expectedResult": [
            {"id": 3, "name": "Item 3", "value": 300},
            {"id": 2, "name": "Item 2", "value": 200},
            {"id": 1, "name": "Item 1", "value": 100},
        ],
        "hints": [
            "ORDER BY controls sorting.",
            "Example: SELECT * FROM t ORDER BY score DESC;",
            "Apply: SELECT * FROM sample_table ORDER BY value DESC;",
        ],
    }


def _group_count_level() -> Dict[str, Any]:
    return {
        "title": "The Whispering Crowd",
        "story": "How many travelers from each city whisper your name?",
        "description": "Count attendees per city, naming the count column total.",
        "objectives": ["Aggregate counts", "Group by city"],
        "tables": [{
            "name": "attendees",
            "schema": {"id": "INTEGER", "city": "TEXT"},
            "data": [
                {"id": 1, "city": "Rome"},
                {"id": 2, "city": "Cairo"},
                {"id": 3, "city": "Rome"},
            ],
        }],
        "expectedResult": [
            {"city": "Cairo", "total": 1},
            {"city": "Rome", "total": 2},
        ],
        "hints": [
            "COUNT(*) with GROUP BY makes per-group totals.",
            "Example: SELECT team, COUNT(*) AS total FROM t GROUP BY team;",
            "Apply: SELECT city, COUNT(*) AS total FROM attendees GROUP BY city;",
        ],
    }


def _join_level() -> Dict[str, Any]:
    return {
        "title": "The Twin Trails",
        "story": "Reunite orders with their customers.",
        "description": "Join orders and customers returning customer_name and order_total.",
        "objectives": ["Inner join", "Select two columns"],
        "tables": [
            {
                "name": "customers",
                "schema": {"id": "INTEGER", "customer_name": "TEXT"},
                "data": [
                    {"id": 1, "customer_name": "Alice"},
                    {"id": 2, "customer_name": "Bob"},
                ],
            },
            {
                "name": "orders",
                "schema": {"id": "INTEGER", "customer_id": "INTEGER", "order_total": "INTEGER"},
                "data": [
                    {"id": 10, "customer_id": 1, "order_total": 50},
                    {"id": 11, "customer_id": 2, "order_total": 75},
                ],
            },
        ],
        "expectedResult": [
            {"customer_name": "Alice", "order_total": 50},
            {"customer_name": "Bob", "order_total": 75},
        ],
        "hints": [
            "JOIN tables on matching keys.",
            "Example: ... FROM a JOIN b ON a.id = b.a_id",
            "Apply: SELECT c.customer_name, o.order_total FROM customers c "
            "JOIN orders o ON c.id = o.customer_id;",
        ],
    }


def _subquery_level() -> Dict[str, Any]:
    return {
        "title": "The Hidden Keep",
        "story": "Only patrons spending above the realm's average may enter.",
        "description": "Return customers whose total spend exceeds the average order total.",
        "objectives": ["Subquery for AVG", "Group and filter"],
        "tables": [{
            "name": "orders",
            "schema": {"id": "INTEGER", "customer": "TEXT", "total": "INTEGER"},
            "data": [
                {"id": 1, "customer": "A", "total": 50},
                {"id": 2, "customer": "A", "total": 100},
                {"id": 3, "customer": "B", "total": 40},
            ],
        }],
        "expectedResult": [{"customer": "A"}],
        "hints": [
            "Compute AVG(total) in a subquery and group by customer to SUM their totals.",
            "Filter groups with HAVING SUM(total) > (SELECT AVG(total) FROM orders).",
            "Apply: SELECT customer FROM orders GROUP BY customer "
            "HAVING SUM(total) > (SELECT AVG(total) FROM orders);",
        ],
    }


def _having_level() -> Dict[str, Any]:
    return {
        "title": "Council of Hundreds",
        "story": "Only cities with at least 2 statues are honored.",
        "description": "Return each city with at least 2 statues and its count as total.",
        "objectives": ["GROUP BY", "HAVING filter"],
        "tables": [{
            "name": "statues",
            "schema": {"id": "INTEGER", "city": "TEXT"},
            "data": [
                {"id": 1, "city": "Athens"},
                {"id": 2, "city": "Athens"},
                {"id": 3, "city": "Sparta"},
            ],
        }],
        "expectedResult": [{"city": "Athens", "total": 2}],
        "hints": [
            "Use HAVING for aggregated conditions.",
            "Example: ... GROUP BY city HAVING COUNT(*) >= 2",
            "Apply: SELECT city, COUNT(*) AS total FROM statues GROUP BY city HAVING COUNT(*) >= 2;",
        ],
    }


def _window_rank_level() -> Dict[str, Any]:
    return {
        "title": "The Time Weaver",
        "story": "Rank deliveries by speed within each courier's realm.",
        "description": "Return courier, delivery_id and delivery_rank by delivery_time per courier.",
        "objectives": ["RANK() OVER", "PARTITION BY and ORDER BY"],
        "tables": [{
            "name": "deliveries",
            "schema": {"delivery_id": "INTEGER", "courier": "TEXT", "delivery_time": "INTEGER"},
            "data": [
                {"delivery_id": 1, "courier": "X", "delivery_time": 30},
                {"delivery_id": 2, "courier": "X", "delivery_time": 20},
                {"delivery_id": 3, "courier": "Y", "delivery_time": 25},
            ],
        }],
        "expectedResult": [
            {"courier": "X", "delivery_id": 2, "delivery_rank": 1},
            {"courier": "X", "delivery_id": 1, "delivery_rank": 2},
            {"courier": "Y", "delivery_id": 3, "delivery_rank": 1},
        ],
        "hints": [
            "Window functions keep rows while computing across partitions.",
            "Example: RANK() OVER (PARTITION BY team ORDER BY score DESC)",
            "Apply: SELECT courier, delivery_id, RANK() OVER "
            "(PARTITION BY courier ORDER BY delivery_time ASC) AS delivery_rank FROM deliveries;",
        ],
    }


# Indexed by level_id % 7
_PATTERNS = [
    _window_rank_level,
    _filter_level,
    _order_level,
    _group_count_level,
    _join_level,
    _subquery_level,
    _having_level,
]


def build_default_levels() -> List[Level]:
    """Level 1 plus levels 2-100 cycling through the exercise patterns"""
    levels = [Level.model_validate(_first_select_level())]
    for level_id in range(2, MAX_LEVEL + 1):
        definition = _PATTERNS[level_id % len(_PATTERNS)]()
        definition.update({
            "id": level_id,
            "difficulty": difficulty_for(level_id),
            "maxScore": 100,
        })
        levels.append(Level.model_validate(definition))
    return levels


def load_levels_from_file(file_path: str) -> List[Level]:
    """Load and validate level definitions from a JSON array"""
    with open(file_path, "r", encoding="utf-8") as f:
        levels_data = json.load(f)

    if not isinstance(levels_data, list):
        raise ValueError(f"Levels file {file_path} must contain a JSON array")

    return [Level.model_validate(item) for item in levels_data]


class LevelCatalog:
    """Read-only registry of levels"""

    def __init__(self, levels: Optional[List[Level]] = None):
        levels = build_default_levels() if levels is None else levels
        self._levels: Dict[int, Level] = {}
        for level in levels:
            if level.id in self._levels:
                raise ValueError(f"Duplicate level id {level.id}")
            self._levels[level.id] = level
        logger.info(f"Level catalog loaded with {len(self._levels)} levels")

    @classmethod
    def from_file(cls, file_path: str) -> "LevelCatalog":
        logger.info(f"Loading levels from {file_path}")
        return cls(load_levels_from_file(file_path))

    def get_level(self, level_id: int) -> Optional[Level]:
        return self._levels.get(level_id)

    def get_all_levels(self) -> List[Level]:
        return [self._levels[level_id] for level_id in sorted(self._levels)]

    def get_hint(self, level_id: int, hint_level: int) -> Optional[str]:
        """1-based hint lookup; unknown level or out-of-range index yields None"""
        level = self.get_level(level_id)
        if not level or hint_level < 1 or hint_level > len(level.hints):
            return None
        return level.hints[hint_level - 1]

    @staticmethod
    def progress_percentage(current_level: int) -> int:
        return round(current_level / MAX_LEVEL * 100)

    def __len__(self) -> int:
        return len(self._levels)
