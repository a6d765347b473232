"""
Pydantic schemas for level definitions, sessions and request/response validation
"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class Difficulty(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"


class NavigationAction(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    JUMP = "jump"
    RESET = "reset"


# Base model for camelCase aliasing
class CamelCaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


# Level schemas
class TableDefinition(CamelCaseModel):
    """A table seeded into every sandbox of a level"""
    model_config = ConfigDict(frozen=True)

    name: str
    # Ordered column name -> declared type token (INTEGER, TEXT, BOOLEAN, ...)
    columns: Dict[str, str] = Field(alias="schema")
    data: List[Dict[str, Any]] = Field(default_factory=list)


class Level(CamelCaseModel):
    """Immutable SQL exercise: schema, seed data, expected answer, hints and score"""
    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=1, le=100)
    title: str
    description: str
    difficulty: Difficulty
    story: Optional[str] = None
    objectives: Optional[List[str]] = None
    starter_query: Optional[str] = None
    time_limit: Optional[int] = None
    tables: List[TableDefinition]
    # Row order is for display only; grading is order-insensitive
    expected_result: List[Dict[str, Any]]
    hints: List[str] = Field(min_length=1, max_length=3)
    max_score: int = Field(gt=0)

    @model_validator(mode="after")
    def check_unique_table_names(self):
        names = [table.name.lower() for table in self.tables]
        if len(names) != len(set(names)):
            raise ValueError(f"Level {self.id} declares duplicate table names")
        return self


class LevelSummary(CamelCaseModel):
    id: int
    title: str
    difficulty: Difficulty


# Session schemas
class GameSession(CamelCaseModel):
    id: str
    current_level: int = Field(default=1, ge=1, le=100)
    score: int = Field(default=0, ge=0)
    hints_used: int = Field(default=0, ge=0)
    start_time: datetime
    last_activity: datetime


# Query execution schemas
class QueryResult(CamelCaseModel):
    """Outcome of one execution; every failure kind shares this shape"""
    success: bool
    data: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    execution_time: int
    is_correct: Optional[bool] = None
    feedback: Optional[str] = None
    score_earned: Optional[int] = None


class ValidationResult(BaseModel):
    is_valid: bool
    error: Optional[str] = None


# Request schemas
class QueryExecutionRequest(CamelCaseModel):
    session_id: str
    level: int
    query: str


class HintRequest(CamelCaseModel):
    session_id: str
    level: int
    hint_level: int = Field(ge=1, le=3)


class LevelProgressRequest(CamelCaseModel):
    session_id: str
    level: int
    action: NavigationAction
    target_level: Optional[int] = None


class AskRequest(CamelCaseModel):
    question: str = Field(min_length=1)
    level_id: Optional[int] = Field(default=None, ge=1, le=100)
    current_query: Optional[str] = None


# Response schemas
class SessionResponse(CamelCaseModel):
    session: GameSession


class LevelResponse(CamelCaseModel):
    level: Level


class LevelListResponse(CamelCaseModel):
    levels: List[LevelSummary]


class QueryResultResponse(CamelCaseModel):
    result: QueryResult


class HintResponse(CamelCaseModel):
    hint: str


class AskResponse(CamelCaseModel):
    answer: str


class CleanupResponse(CamelCaseModel):
    success: bool
    released: int
