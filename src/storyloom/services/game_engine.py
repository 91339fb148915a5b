"""Story interpreter: walks a chapter's node graph and drives presentable state."""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

from storyloom.core.scheduler import ManualScheduler, Scheduler, TimerHandle, wall_clock_ms
from storyloom.core.types import EngineStatus, Value
from storyloom.core.values import copy_value
from storyloom.domain.defs import (
    DEFAULT_EXIT_DURATION_MS,
    ChapterDef,
    ChapterEndSpec,
    ChoiceDef,
    ConditionDef,
    StoryDocument,
    StoryNodeDef,
    VariableDefinition,
)
from storyloom.domain.state import ChapterTransition, GameState, HistoryEntry, VariableStore
from storyloom.services.conditions import evaluate_condition
from storyloom.services.errors import SaveLoadError
from storyloom.services.history import DEFAULT_HISTORY_LIMIT, HistoryRecorder
from storyloom.services.image_layers import ImageLayerManager
from storyloom.services.interpolation import interpolate_text
from storyloom.services.save_service import SaveService
from storyloom.services.variable_ops import apply_choice_effects, apply_operations

logger = logging.getLogger(__name__)


class ScriptContext:
    """Variable access handed to a host script handler."""

    def __init__(self, store: VariableStore) -> None:
        self._store = store

    def get(self, variable_id: str, default: Value = None) -> Value:
        value = self._store.variables.get(variable_id)
        return default if value is None else copy_value(value)

    def set(self, variable_id: str, value: Value) -> None:
        self._store.variables[variable_id] = copy_value(value)

    def variables(self) -> Dict[str, Value]:
        return {key: copy_value(value) for key, value in self._store.variables.items()}

    @property
    def flags(self) -> Dict[str, Value]:
        return self._store.flags


ScriptHandler = Callable[[StoryNodeDef, ScriptContext], None]


@dataclass(slots=True)
class EngineOptions:
    on_state_change: Callable[[GameState], None] | None = None
    on_node_change: Callable[[StoryNodeDef | None], None] | None = None
    on_game_end: Callable[[], None] | None = None
    on_chapter_end: Callable[[ChapterTransition], None] | None = None
    script_handler: ScriptHandler | None = None
    scheduler: Scheduler | None = None
    clock: Callable[[], float] | None = None
    history_limit: int = DEFAULT_HISTORY_LIMIT
    default_exit_duration_ms: float = DEFAULT_EXIT_DURATION_MS
    max_auto_steps: int = 1000
    follow_chapter_transitions: bool = False


@dataclass(slots=True)
class AvailableChoice:
    """A choice as the presentation layer should offer it."""

    index: int
    choice: ChoiceDef
    enabled: bool


class GameEngine:
    """Deterministic interpreter for one story document.

    All transitions run synchronously inside a public call or a scheduler
    callback. Observers are notified once, after the whole transition has
    been applied. Timers from a superseded run (``start``, ``restart``,
    ``start_chapter``, ``load``) are discarded by a generation check.
    """

    def __init__(self, document: StoryDocument, options: EngineOptions | None = None) -> None:
        self._document = document
        self._options = options or EngineOptions()
        if self._options.scheduler is not None:
            self._scheduler: Scheduler = self._options.scheduler
            self._clock = self._options.clock or self._scheduler.now
        else:
            self._scheduler = ManualScheduler()
            self._clock = self._options.clock or wall_clock_ms
        self._history = HistoryRecorder(self._clock, self._options.history_limit)
        self._images = ImageLayerManager(
            self._schedule, default_exit_duration_ms=self._options.default_exit_duration_ms
        )
        self._save_service = SaveService(document)
        self._state = GameState(started_at=self._clock())
        self._status: EngineStatus = "idle"
        self._generation = 0
        self._timers: List[TimerHandle] = []
        self._pending_transition = False
        self._node_moved = False

    @property
    def document(self) -> StoryDocument:
        return self._document

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def status(self) -> EngineStatus:
        return self._status

    @property
    def is_waiting(self) -> bool:
        """True while an image effect holds back the next transition."""
        return self._pending_transition

    def start(self, stage_id: str | None = None, chapter_id: str | None = None) -> None:
        """Begin play at a chapter's start node with a freshly seeded variable store."""
        if stage_id:
            stage = self._document.find_stage(stage_id)
        else:
            stage = self._document.stages[0] if self._document.stages else None
        if stage is None:
            logger.error("No stage found: %s", stage_id or "<first>")
            return
        if chapter_id:
            chapter = stage.find_chapter(chapter_id)
        else:
            chapter = stage.chapters[0] if stage.chapters else None
        if chapter is None:
            logger.error("No chapter found: %s in stage '%s'", chapter_id or "<first>", stage.id)
            return

        self._bump_generation()
        self._images.drop_pending()
        self._state = GameState(
            current_stage_id=stage.id,
            current_chapter_id=chapter.id,
            started_at=self._clock(),
        )
        self._seed_variables(self._document.variables)
        self._seed_variables(chapter.variables)
        self._status = "playing"
        self._begin_chapter(chapter)
        self._notify()

    def restart(self) -> None:
        """Start over at the current stage and chapter, discarding all runtime state."""
        self.start(self._state.current_stage_id or None, self._state.current_chapter_id or None)

    def start_chapter(self, stage_id: str, chapter_id: str, *, clear_visuals: bool = True) -> bool:
        """Move to another chapter keeping variables, flags, choices and history."""
        chapter = self._document.find_chapter(stage_id, chapter_id)
        if chapter is None:
            logger.error("Cannot start chapter '%s/%s': not found", stage_id, chapter_id)
            return False
        self._bump_generation()
        if clear_visuals:
            self._images.drop_pending()
            self._state.active_images.clear()
        else:
            # Exit timers are cancelled, so finish each slot's transition immediately.
            self._state.active_images[:] = [
                image for image in self._state.active_images if not image.is_exiting
            ]
            self._images.settle_pending(self._state.active_images)
        self._state.current_stage_id = stage_id
        self._state.current_chapter_id = chapter_id
        self._seed_variables(chapter.variables)
        self._status = "playing"
        self._begin_chapter(chapter)
        self._notify()
        return True

    def advance(self) -> None:
        """Continue past the current narrative node."""
        if self._status != "playing":
            return
        if self._pending_transition:
            logger.debug("advance() ignored while an image effect is pending")
            return
        node = self.get_current_node()
        if node is None or node.type == "choice":
            return
        if node.type == "chapter_end":
            self._finish_chapter(node)
            return
        if not node.next_node_id:
            return
        self._enter_node(node.next_node_id)
        self._notify()

    def select_choice(self, index: int) -> None:
        """Pick a choice at a choice node; gated or out-of-range picks change nothing."""
        if self._status != "playing" or self._pending_transition:
            return
        node = self.get_current_node()
        if node is None or node.type != "choice":
            return
        if index < 0 or index >= len(node.choices):
            logger.debug("Choice index %d out of range at node '%s'", index, node.id)
            return
        choice = node.choices[index]
        if choice.condition is not None and not self.check_condition(choice.condition):
            logger.debug("Choice '%s' rejected: condition not met", choice.id)
            return

        store = self._state.variables
        store.choices_made.append(choice.id)
        self._state.last_choice_index = index
        self._state.last_choice_text = choice.text
        self._history.record_choice(self._state.history, node, choice)
        if choice.effects is not None:
            apply_choice_effects(choice.effects, store)
        if choice.next_node_id:
            self._enter_node(choice.next_node_id)
        self._notify()

    def available_choices(self) -> List[AvailableChoice]:
        node = self.get_current_node()
        if node is None or node.type != "choice":
            return []
        return [
            AvailableChoice(
                index=index,
                choice=choice,
                enabled=choice.condition is None or self.check_condition(choice.condition),
            )
            for index, choice in enumerate(node.choices)
        ]

    def check_condition(self, condition: ConditionDef) -> bool:
        return evaluate_condition(condition, self._state.variables)

    def interpolate_text(self, text: str | None) -> str | None:
        return interpolate_text(text, self._state.variables.variables, self._visible_definitions())

    def get_current_node(self) -> StoryNodeDef | None:
        chapter = self._current_chapter()
        if chapter is None or not self._state.current_node_id:
            return None
        return chapter.find_node(self._state.current_node_id)

    def get_state(self) -> GameState:
        return copy.deepcopy(self._state)

    def get_variables(self) -> VariableStore:
        return copy.deepcopy(self._state.variables)

    def get_history(self) -> List[HistoryEntry]:
        return copy.deepcopy(self._state.history)

    def save(self) -> str:
        """Serialize the state with play time brought up to date."""
        play_time = self._state.play_time + (self._clock() - self._state.started_at)
        return self._save_service.to_json(self._state, play_time=play_time)

    def load(self, data: str) -> bool:
        """Restore a save; malformed data is logged and leaves the current run untouched."""
        try:
            restored = self._save_service.from_json(data)
        except SaveLoadError as exc:
            logger.error("Failed to load save data: %s", exc)
            return False
        self._bump_generation()
        restored.started_at = self._clock()
        # Exit timers are not persisted.
        restored.active_images = [image for image in restored.active_images if not image.is_exiting]
        self._state = restored
        self._images.restore_counter(restored.active_images)
        self._status = "playing"
        self._node_moved = True
        self._notify()
        return True

    def _begin_chapter(self, chapter: ChapterDef) -> None:
        start_node_id = chapter.resolve_start_node_id()
        self._state.current_node_id = start_node_id
        self._node_moved = True
        if chapter.find_node(start_node_id) is None:
            logger.warning(
                "No start node found in chapter '%s'. Add a start node to begin the story.", chapter.id
            )
            return
        self._enter_node(start_node_id)

    def _enter_node(self, node_id: str) -> None:
        """Move to ``node_id`` and keep following automatic transitions."""
        chapter = self._current_chapter()
        target: str | None = node_id
        steps = 0
        while target is not None:
            node = chapter.find_node(target) if chapter is not None else None
            if node is None:
                logger.error("Node not found: %s", target)
                return
            steps += 1
            if steps > self._options.max_auto_steps:
                logger.error(
                    "Stopped after %d automatic transitions at node '%s'; the graph loops without input.",
                    self._options.max_auto_steps,
                    self._state.current_node_id,
                )
                return
            self._state.current_node_id = node.id
            self._node_moved = True
            logger.debug("Entering node '%s' (%s)", node.id, node.type)
            target = self._process_entry(node)

    def _process_entry(self, node: StoryNodeDef) -> str | None:
        """Apply a node's entry behavior; return the next node to enter automatically."""
        store = self._state.variables
        if node.on_enter_effects is not None:
            apply_choice_effects(node.on_enter_effects, store)

        if node.type == "start":
            if node.next_node_id:
                return node.next_node_id
        elif node.type == "variable":
            apply_operations(node.variable_operations, store)
            return node.next_node_id
        elif node.type == "condition":
            return self._route_condition(node)
        elif node.type == "image":
            return self._process_image(node)
        elif node.type == "javascript":
            self._run_script(node)
            return node.next_node_id

        self._history.record_node(self._state.history, node)
        return None

    def _route_condition(self, node: StoryNodeDef) -> str | None:
        for branch in node.condition_branches:
            if self.check_condition(branch.condition):
                return branch.next_node_id
        return node.default_next_node_id

    def _process_image(self, node: StoryNodeDef) -> str | None:
        spec = node.image
        if spec is None:
            return node.next_node_id
        self._images.apply(self._state.active_images, node.id, spec)
        self._history.record_image(self._state.history, node)
        if spec.entrance_effects() and spec.effect_duration > 0 and node.next_node_id:
            self._defer_transition(spec.effect_duration, node.next_node_id)
            return None
        return node.next_node_id

    def _run_script(self, node: StoryNodeDef) -> None:
        handler = self._options.script_handler
        if handler is None:
            logger.debug("No script handler; passing through node '%s'", node.id)
            return
        try:
            handler(node, ScriptContext(self._state.variables))
        except Exception:
            logger.exception("Script handler failed at node '%s'", node.id)

    def _defer_transition(self, delay_ms: float, next_node_id: str) -> None:
        self._pending_transition = True

        def resume() -> None:
            self._pending_transition = False
            self._enter_node(next_node_id)

        logger.debug("Waiting %sms before moving to '%s'", delay_ms, next_node_id)
        self._schedule(delay_ms, resume)

    def _schedule(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        generation = self._generation

        def fire() -> None:
            if handle in self._timers:
                self._timers.remove(handle)
            if generation != self._generation:
                logger.debug("Discarding timer from superseded run %d", generation)
                return
            callback()
            self._notify()

        handle = self._scheduler.call_later(delay_ms, fire)
        self._timers.append(handle)
        return handle

    def _bump_generation(self) -> None:
        self._generation += 1
        self._pending_transition = False
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()

    def _finish_chapter(self, node: StoryNodeDef) -> None:
        transition = self._resolve_transition(node.chapter_end or ChapterEndSpec())
        if self._options.on_chapter_end is not None:
            self._options.on_chapter_end(transition)
        if self._options.follow_chapter_transitions and transition.has_target:
            if self.start_chapter(
                transition.next_stage_id,
                transition.next_chapter_id,
                clear_visuals=transition.clear_visuals,
            ):
                return
        self._status = "ended"
        logger.debug("Story ended at node '%s'", node.id)
        if self._options.on_game_end is not None:
            self._options.on_game_end()

    def _resolve_transition(self, spec: ChapterEndSpec) -> ChapterTransition:
        stage_id = spec.next_stage_id
        chapter_id = spec.next_chapter_id
        if spec.action == "next":
            stage_id, chapter_id = self._next_chapter_position()
        elif spec.action != "goto":
            stage_id = chapter_id = None
        return ChapterTransition(
            action=spec.action,
            next_stage_id=stage_id,
            next_chapter_id=chapter_id,
            clear_visuals=spec.clear_visuals,
        )

    def _next_chapter_position(self) -> tuple[str | None, str | None]:
        stages = self._document.stages
        for stage_index, stage in enumerate(stages):
            if stage.id != self._state.current_stage_id:
                continue
            for chapter_index, chapter in enumerate(stage.chapters):
                if chapter.id != self._state.current_chapter_id:
                    continue
                if chapter_index + 1 < len(stage.chapters):
                    return stage.id, stage.chapters[chapter_index + 1].id
                for following in stages[stage_index + 1 :]:
                    if following.chapters:
                        return following.id, following.chapters[0].id
                return None, None
        return None, None

    def _current_chapter(self) -> ChapterDef | None:
        return self._document.find_chapter(self._state.current_stage_id, self._state.current_chapter_id)

    def _seed_variables(self, definitions: List[VariableDefinition]) -> None:
        for definition in definitions:
            self._state.variables.variables[definition.id] = copy_value(definition.default_value)

    def _visible_definitions(self) -> List[VariableDefinition]:
        chapter = self._current_chapter()
        local = chapter.variables if chapter is not None else []
        return [*self._document.variables, *local]

    def _notify(self) -> None:
        node_moved = self._node_moved
        self._node_moved = False
        if self._options.on_state_change is not None:
            self._options.on_state_change(self.get_state())
        if node_moved and self._options.on_node_change is not None:
            self._options.on_node_change(copy.deepcopy(self.get_current_node()))
