"""Runtime state owned by a single engine instance."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from storyloom.core.types import Value


@dataclass(slots=True)
class VariableStore:
    """Live variable values plus the legacy flag map and choice log."""

    variables: Dict[str, Value] = field(default_factory=dict)
    flags: Dict[str, Value] = field(default_factory=dict)
    choices_made: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ActiveImage:
    """An image currently on screen; slot identity is (layer, layer_order)."""

    id: str
    instance_id: int
    resource_path: str
    layer: str
    layer_order: int
    alignment: str = "center"
    x: float | None = None
    y: float | None = None
    flip_horizontal: bool = False
    effect: str | None = None
    effects: List[str] = field(default_factory=list)
    effect_duration: float = 0
    is_exiting: bool = False
    exit_effect: str | None = None
    exit_effect_duration: float | None = None

    @property
    def slot(self) -> tuple[str, int]:
        return (self.layer, self.layer_order)


@dataclass(slots=True)
class HistoryImageData:
    resource_path: str
    layer: str
    is_removal: bool = False
    effect: str | None = None
    effects: List[str] = field(default_factory=list)
    effect_duration: float = 0


@dataclass(slots=True)
class HistoryEntry:
    """A presented narrative beat, as shown by backlog views."""

    node_id: str
    type: str
    content: str
    timestamp: float
    speaker: str | None = None
    choice_text: str | None = None
    image_data: HistoryImageData | None = None


@dataclass
class GameState:
    """Serializable snapshot: the unit of save/load."""

    current_node_id: str = ""
    current_stage_id: str = ""
    current_chapter_id: str = ""
    variables: VariableStore = field(default_factory=VariableStore)
    history: List[HistoryEntry] = field(default_factory=list)
    active_images: List[ActiveImage] = field(default_factory=list)
    started_at: float = 0.0
    play_time: float = 0.0
    last_choice_index: int | None = None
    last_choice_text: str | None = None


@dataclass(frozen=True, slots=True)
class ChapterTransition:
    """Where play should continue after leaving a chapter_end node."""

    action: str
    next_stage_id: str | None = None
    next_chapter_id: str | None = None
    clear_visuals: bool = True

    @property
    def has_target(self) -> bool:
        return bool(self.next_stage_id and self.next_chapter_id)
