"""Image node payload definitions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

DEFAULT_EXIT_DURATION_MS = 500


@dataclass(slots=True)
class ImageSpec:
    """Describes what an image node shows (or clears) and how it animates."""

    resource_path: str = ""
    layer: str = "background"
    layer_order: int = 0
    alignment: str = "center"
    x: float | None = None
    y: float | None = None
    flip_horizontal: bool = False
    object_fit: str | None = None
    effect: str | None = None
    effects: List[str] = field(default_factory=list)
    effect_duration: float = 0
    exit_effect: str | None = None
    exit_effect_duration: float | None = None
    transition_timing: str = "sequential"

    @property
    def slot(self) -> tuple[str, int]:
        return (self.layer, self.layer_order)

    @property
    def is_clear(self) -> bool:
        return not self.resource_path

    def entrance_effects(self) -> List[str]:
        """Return the entrance effects, falling back to the single legacy effect."""
        if self.effects:
            return list(self.effects)
        if self.effect and self.effect != "none":
            return [self.effect]
        return []

    def has_exit_effect(self) -> bool:
        return bool(self.exit_effect) and self.exit_effect != "none"
