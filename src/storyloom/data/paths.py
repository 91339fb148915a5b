"""Helpers for resolving bundled story locations."""
from __future__ import annotations

from pathlib import Path


def get_stories_path(base_path: Path | str | None = None) -> Path:
    """Return the directory containing story documents."""
    if base_path is not None:
        return Path(base_path)
    return Path(__file__).resolve().parent / "stories"


def get_sample_story_path() -> Path:
    """Return the bundled sample document used by the player and tests."""
    return get_stories_path() / "merchant.json"
