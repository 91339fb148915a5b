"""Repository exports."""

from .story_repo import StoryRepository, load_story_document, parse_story_document

__all__ = [
    "StoryRepository",
    "load_story_document",
    "parse_story_document",
]
