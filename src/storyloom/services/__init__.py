"""Service layer exports."""

from .errors import SaveLoadError
from .game_engine import AvailableChoice, EngineOptions, GameEngine, ScriptContext
from .save_service import SaveService
from .story_graph_validator import (
    Issue,
    format_issue,
    has_errors,
    validate_chapter,
    validate_chapter_by_id,
    validate_story_document,
)

__all__ = [
    "AvailableChoice",
    "EngineOptions",
    "GameEngine",
    "Issue",
    "SaveLoadError",
    "SaveService",
    "ScriptContext",
    "format_issue",
    "has_errors",
    "validate_chapter",
    "validate_chapter_by_id",
    "validate_story_document",
]
