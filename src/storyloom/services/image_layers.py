"""Slot-addressed image layers with timed exit and entrance sequencing.

A slot is ``(layer, layer_order)``; at most one non-exiting image occupies
it. Timed work is handed to a ``schedule`` callable supplied by the engine,
which drops callbacks belonging to a superseded run.
"""
from __future__ import annotations

import itertools
import logging
from typing import Callable, Dict, List, Tuple

from storyloom.domain.defs import DEFAULT_EXIT_DURATION_MS, ImageSpec
from storyloom.domain.state import ActiveImage

logger = logging.getLogger(__name__)

ScheduleFn = Callable[[float, Callable[[], None]], object]
Slot = Tuple[str, int]


class ImageLayerManager:
    def __init__(
        self,
        schedule: ScheduleFn,
        *,
        default_exit_duration_ms: float = DEFAULT_EXIT_DURATION_MS,
    ) -> None:
        self._schedule = schedule
        self._default_exit_duration_ms = default_exit_duration_ms
        self._instance_counter = 0
        self._waiting: Dict[Slot, Tuple[int, str, ImageSpec]] = {}
        self._tokens = itertools.count(1)

    def drop_pending(self) -> None:
        """Forget entrances still waiting on an exit animation."""
        self._waiting.clear()

    def settle_pending(self, images: List[ActiveImage]) -> None:
        """Add every waiting entrance to ``images`` now instead of after its exit."""
        waiting = sorted(self._waiting.values(), key=lambda entry: entry[0])
        self._waiting.clear()
        for _, node_id, spec in waiting:
            self._add_image(images, node_id, spec)

    def restore_counter(self, images: List[ActiveImage]) -> None:
        """Continue numbering after the highest restored instance id."""
        self._waiting.clear()
        self._instance_counter = max(
            [self._instance_counter, *(image.instance_id for image in images)]
        )

    def apply(self, images: List[ActiveImage], node_id: str, spec: ImageSpec) -> None:
        """Apply one image directive to ``images`` in place."""
        slot = spec.slot
        # Any directive for a slot supersedes an entrance still waiting on it.
        self._waiting.pop(slot, None)
        token = next(self._tokens)

        if spec.is_clear:
            images[:] = [image for image in images if image.slot != slot]
            return

        existing = next(
            (image for image in images if image.slot == slot and not image.is_exiting), None
        )
        if existing is not None and spec.has_exit_effect():
            existing.is_exiting = True
            existing.exit_effect = spec.exit_effect
            existing.exit_effect_duration = spec.exit_effect_duration
            exit_duration = spec.exit_effect_duration or self._default_exit_duration_ms

            def remove_exited() -> None:
                images[:] = [image for image in images if image is not existing]

            self._schedule(exit_duration, remove_exited)
            if spec.transition_timing != "crossfade":
                def add_after_exit() -> None:
                    waiting = self._waiting.get(slot)
                    if waiting is None or waiting[0] != token:
                        logger.debug("Skipping superseded entrance for slot %s", slot)
                        return
                    del self._waiting[slot]
                    self._add_image(images, node_id, spec)

                self._waiting[slot] = (token, node_id, spec)
                logger.debug("Deferring image '%s' for %sms exit", node_id, exit_duration)
                self._schedule(exit_duration, add_after_exit)
                return
        elif existing is not None:
            images[:] = [image for image in images if image is not existing]

        self._add_image(images, node_id, spec)

    def _add_image(self, images: List[ActiveImage], node_id: str, spec: ImageSpec) -> ActiveImage:
        self._instance_counter += 1
        image = ActiveImage(
            id=node_id,
            instance_id=self._instance_counter,
            resource_path=spec.resource_path,
            layer=spec.layer,
            layer_order=spec.layer_order,
            alignment=spec.alignment,
            x=spec.x,
            y=spec.y,
            flip_horizontal=spec.flip_horizontal,
            effect=spec.effect,
            effects=list(spec.effects),
            effect_duration=spec.effect_duration,
        )
        slot = spec.slot
        images[:] = [
            current for current in images if not (current.slot == slot and not current.is_exiting)
        ]
        images.append(image)
        return image
