"""Data layer utilities for loading story documents."""

from .errors import DataError, DataLoadError, DataValidationError
from .paths import get_sample_story_path, get_stories_path
from .repositories import StoryRepository, load_story_document, parse_story_document

__all__ = [
    "DataError",
    "DataLoadError",
    "DataValidationError",
    "StoryRepository",
    "get_sample_story_path",
    "get_stories_path",
    "load_story_document",
    "parse_story_document",
]
