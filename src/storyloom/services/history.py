"""Bounded backlog of presented narrative beats."""
from __future__ import annotations

from typing import Callable, List

from storyloom.domain.defs import ChoiceDef, StoryNodeDef
from storyloom.domain.state import HistoryEntry, HistoryImageData

DEFAULT_HISTORY_LIMIT = 100


class HistoryRecorder:
    """Appends entries to a history list, de-duplicating and evicting the oldest."""

    def __init__(self, clock: Callable[[], float], limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError("History limit must be at least 1.")
        self._clock = clock
        self._limit = limit

    def record_node(self, history: List[HistoryEntry], node: StoryNodeDef) -> bool:
        """Record a narrative node unless it repeats the previous entry."""
        if history and history[-1].node_id == node.id and history[-1].type == node.type:
            return False
        self._append(
            history,
            HistoryEntry(
                node_id=node.id,
                type=node.type,
                content=node.text or "",
                speaker=node.speaker,
                timestamp=self._clock(),
            ),
        )
        return True

    def record_image(self, history: List[HistoryEntry], node: StoryNodeDef) -> bool:
        spec = node.image
        if spec is None:
            return False
        if history and history[-1].node_id == node.id and history[-1].type == "image":
            return False
        self._append(
            history,
            HistoryEntry(
                node_id=node.id,
                type="image",
                content=f"[image removed: {spec.layer}]" if spec.is_clear else "",
                timestamp=self._clock(),
                image_data=HistoryImageData(
                    resource_path=spec.resource_path,
                    layer=spec.layer,
                    is_removal=spec.is_clear,
                    effect=spec.effect,
                    effects=list(spec.effects),
                    effect_duration=spec.effect_duration,
                ),
            ),
        )
        return True

    def record_choice(self, history: List[HistoryEntry], node: StoryNodeDef, choice: ChoiceDef) -> None:
        """Selections are always appended, even when repeating the prompt entry."""
        self._append(
            history,
            HistoryEntry(
                node_id=node.id,
                type="choice",
                content=node.text or "",
                speaker=node.speaker,
                timestamp=self._clock(),
                choice_text=choice.text,
            ),
        )

    def _append(self, history: List[HistoryEntry], entry: HistoryEntry) -> None:
        history.append(entry)
        overflow = len(history) - self._limit
        if overflow > 0:
            del history[:overflow]
