"""Serialization helpers for engine save/load."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from storyloom.core.types import Value
from storyloom.core.values import is_number
from storyloom.domain.defs import StoryDocument
from storyloom.domain.state import (
    ActiveImage,
    GameState,
    HistoryEntry,
    HistoryImageData,
    VariableStore,
)
from storyloom.services.errors import SaveLoadError

SavePayload = Dict[str, Any]


class SaveService:
    """Converts runtime state to/from a validated, versioned payload."""

    SAVE_VERSION = 1

    def __init__(self, document: StoryDocument) -> None:
        self._document = document

    def serialize(self, state: GameState, *, play_time: float | None = None) -> SavePayload:
        """Return a JSON-serializable payload; ``play_time`` overrides the stored total."""
        total_play_time = state.play_time if play_time is None else play_time
        return {
            "save_version": self.SAVE_VERSION,
            "metadata": self._build_metadata(state, total_play_time),
            "state": self._serialize_state(state, total_play_time),
        }

    def to_json(self, state: GameState, *, play_time: float | None = None) -> str:
        return json.dumps(self.serialize(state, play_time=play_time))

    def from_json(self, text: str) -> GameState:
        try:
            payload = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise SaveLoadError(f"Save data is not valid JSON: {exc}") from exc
        except RecursionError as exc:
            raise SaveLoadError("Save data is nested too deeply.") from exc
        return self.deserialize(payload)

    def deserialize(self, payload: Mapping[str, Any]) -> GameState:
        """Rehydrate a GameState, checking it against the loaded document."""
        if not isinstance(payload, Mapping):
            raise SaveLoadError("Save data must be a JSON object.")
        if payload.get("save_version") != self.SAVE_VERSION:
            raise SaveLoadError("Unsupported save format version.")
        state_payload = payload.get("state")
        if not isinstance(state_payload, Mapping):
            raise SaveLoadError("Save data is missing required sections.")

        stage_id = self._require_str(state_payload.get("current_stage_id"), "state.current_stage_id")
        chapter_id = self._require_str(state_payload.get("current_chapter_id"), "state.current_chapter_id")
        node_id = self._require_str(state_payload.get("current_node_id"), "state.current_node_id")
        self._validate_position(stage_id, chapter_id, node_id)

        return GameState(
            current_node_id=node_id,
            current_stage_id=stage_id,
            current_chapter_id=chapter_id,
            variables=self._coerce_variables(state_payload.get("variables")),
            history=self._coerce_history(state_payload.get("history")),
            active_images=self._coerce_images(state_payload.get("active_images")),
            started_at=self._coerce_number(state_payload.get("started_at"), "state.started_at", default=0.0),
            play_time=self._coerce_number(state_payload.get("play_time"), "state.play_time", default=0.0),
            last_choice_index=self._coerce_optional_int(
                state_payload.get("last_choice_index"), "state.last_choice_index"
            ),
            last_choice_text=self._coerce_optional_str(
                state_payload.get("last_choice_text"), "state.last_choice_text"
            ),
        )

    def _build_metadata(self, state: GameState, play_time: float) -> Dict[str, Any]:
        return {
            "story_name": self._document.name,
            "current_stage_id": state.current_stage_id,
            "current_chapter_id": state.current_chapter_id,
            "current_node_id": state.current_node_id,
            "play_time": play_time,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }

    def _serialize_state(self, state: GameState, play_time: float) -> Dict[str, Any]:
        return {
            "current_node_id": state.current_node_id,
            "current_stage_id": state.current_stage_id,
            "current_chapter_id": state.current_chapter_id,
            "variables": {
                "variables": {key: _copy_json(value) for key, value in state.variables.variables.items()},
                "flags": {key: _copy_json(value) for key, value in state.variables.flags.items()},
                "choices_made": list(state.variables.choices_made),
            },
            "history": [self._serialize_history_entry(entry) for entry in state.history],
            "active_images": [self._serialize_image(image) for image in state.active_images],
            "started_at": state.started_at,
            "play_time": play_time,
            "last_choice_index": state.last_choice_index,
            "last_choice_text": state.last_choice_text,
        }

    @staticmethod
    def _serialize_history_entry(entry: HistoryEntry) -> Dict[str, Any]:
        image_data = None
        if entry.image_data is not None:
            image_data = {
                "resource_path": entry.image_data.resource_path,
                "layer": entry.image_data.layer,
                "is_removal": entry.image_data.is_removal,
                "effect": entry.image_data.effect,
                "effects": list(entry.image_data.effects),
                "effect_duration": entry.image_data.effect_duration,
            }
        return {
            "node_id": entry.node_id,
            "type": entry.type,
            "content": entry.content,
            "timestamp": entry.timestamp,
            "speaker": entry.speaker,
            "choice_text": entry.choice_text,
            "image_data": image_data,
        }

    @staticmethod
    def _serialize_image(image: ActiveImage) -> Dict[str, Any]:
        return {
            "id": image.id,
            "instance_id": image.instance_id,
            "resource_path": image.resource_path,
            "layer": image.layer,
            "layer_order": image.layer_order,
            "alignment": image.alignment,
            "x": image.x,
            "y": image.y,
            "flip_horizontal": image.flip_horizontal,
            "effect": image.effect,
            "effects": list(image.effects),
            "effect_duration": image.effect_duration,
            "is_exiting": image.is_exiting,
            "exit_effect": image.exit_effect,
            "exit_effect_duration": image.exit_effect_duration,
        }

    def _validate_position(self, stage_id: str, chapter_id: str, node_id: str) -> None:
        chapter = self._document.find_chapter(stage_id, chapter_id)
        if chapter is None:
            raise SaveLoadError(f"Saved chapter '{stage_id}/{chapter_id}' does not exist in this story.")
        if node_id and chapter.find_node(node_id) is None:
            raise SaveLoadError(f"Saved node '{node_id}' does not exist in chapter '{chapter_id}'.")

    def _coerce_variables(self, value: Any) -> VariableStore:
        if not isinstance(value, Mapping):
            raise SaveLoadError("state.variables must be an object.")
        return VariableStore(
            variables=self._coerce_value_dict(value.get("variables"), "state.variables.variables"),
            flags=self._coerce_value_dict(value.get("flags"), "state.variables.flags"),
            choices_made=self._coerce_str_list(value.get("choices_made"), "state.variables.choices_made"),
        )

    def _coerce_value_dict(self, value: Any, context: str) -> Dict[str, Value]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise SaveLoadError(f"{context} must be an object.")
        result: Dict[str, Value] = {}
        for key, entry in value.items():
            if not isinstance(key, str):
                raise SaveLoadError(f"{context} keys must be strings.")
            result[key] = self._coerce_value(entry, f"{context}.{key}")
        return result

    @staticmethod
    def _coerce_value(value: Any, context: str) -> Value:
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, list):
            for item in value:
                if not isinstance(item, (bool, int, float, str)):
                    raise SaveLoadError(f"{context} array items must be scalars.")
            return list(value)
        raise SaveLoadError(f"{context} has an unsupported value type.")

    def _coerce_history(self, value: Any) -> List[HistoryEntry]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise SaveLoadError("state.history must be a list.")
        entries: List[HistoryEntry] = []
        for index, raw in enumerate(value):
            context = f"state.history[{index}]"
            if not isinstance(raw, Mapping):
                raise SaveLoadError(f"{context} must be an object.")
            entries.append(
                HistoryEntry(
                    node_id=self._require_str(raw.get("node_id"), f"{context}.node_id"),
                    type=self._require_str(raw.get("type"), f"{context}.type"),
                    content=self._coerce_optional_str(raw.get("content"), f"{context}.content") or "",
                    timestamp=self._coerce_number(raw.get("timestamp"), f"{context}.timestamp", default=0.0),
                    speaker=self._coerce_optional_str(raw.get("speaker"), f"{context}.speaker"),
                    choice_text=self._coerce_optional_str(raw.get("choice_text"), f"{context}.choice_text"),
                    image_data=self._coerce_history_image(raw.get("image_data"), f"{context}.image_data"),
                )
            )
        return entries

    def _coerce_history_image(self, value: Any, context: str) -> HistoryImageData | None:
        if value is None:
            return None
        if not isinstance(value, Mapping):
            raise SaveLoadError(f"{context} must be an object.")
        return HistoryImageData(
            resource_path=self._coerce_optional_str(value.get("resource_path"), f"{context}.resource_path") or "",
            layer=self._require_str(value.get("layer"), f"{context}.layer"),
            is_removal=self._coerce_bool(value.get("is_removal"), f"{context}.is_removal"),
            effect=self._coerce_optional_str(value.get("effect"), f"{context}.effect"),
            effects=self._coerce_str_list(value.get("effects"), f"{context}.effects"),
            effect_duration=self._coerce_number(value.get("effect_duration"), f"{context}.effect_duration", default=0),
        )

    def _coerce_images(self, value: Any) -> List[ActiveImage]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise SaveLoadError("state.active_images must be a list.")
        images: List[ActiveImage] = []
        for index, raw in enumerate(value):
            context = f"state.active_images[{index}]"
            if not isinstance(raw, Mapping):
                raise SaveLoadError(f"{context} must be an object.")
            images.append(
                ActiveImage(
                    id=self._require_str(raw.get("id"), f"{context}.id"),
                    instance_id=self._require_int(raw.get("instance_id"), f"{context}.instance_id"),
                    resource_path=self._require_str(raw.get("resource_path"), f"{context}.resource_path"),
                    layer=self._require_str(raw.get("layer"), f"{context}.layer"),
                    layer_order=self._require_int(raw.get("layer_order"), f"{context}.layer_order"),
                    alignment=self._coerce_optional_str(raw.get("alignment"), f"{context}.alignment") or "center",
                    x=self._coerce_optional_number(raw.get("x"), f"{context}.x"),
                    y=self._coerce_optional_number(raw.get("y"), f"{context}.y"),
                    flip_horizontal=self._coerce_bool(raw.get("flip_horizontal"), f"{context}.flip_horizontal"),
                    effect=self._coerce_optional_str(raw.get("effect"), f"{context}.effect"),
                    effects=self._coerce_str_list(raw.get("effects"), f"{context}.effects"),
                    effect_duration=self._coerce_number(
                        raw.get("effect_duration"), f"{context}.effect_duration", default=0
                    ),
                    is_exiting=self._coerce_bool(raw.get("is_exiting"), f"{context}.is_exiting"),
                    exit_effect=self._coerce_optional_str(raw.get("exit_effect"), f"{context}.exit_effect"),
                    exit_effect_duration=self._coerce_optional_number(
                        raw.get("exit_effect_duration"), f"{context}.exit_effect_duration"
                    ),
                )
            )
        return images

    @staticmethod
    def _require_str(value: Any, context: str) -> str:
        if not isinstance(value, str):
            raise SaveLoadError(f"{context} must be a string.")
        return value

    @staticmethod
    def _require_int(value: Any, context: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise SaveLoadError(f"{context} must be an integer.")
        return value

    def _coerce_optional_str(self, value: Any, context: str) -> str | None:
        if value is None:
            return None
        return self._require_str(value, context)

    def _coerce_optional_int(self, value: Any, context: str) -> int | None:
        if value is None:
            return None
        return self._require_int(value, context)

    @staticmethod
    def _coerce_optional_number(value: Any, context: str) -> float | None:
        if value is None:
            return None
        if not is_number(value):
            raise SaveLoadError(f"{context} must be a number.")
        return value

    def _coerce_number(self, value: Any, context: str, *, default: float) -> float:
        number = self._coerce_optional_number(value, context)
        return default if number is None else number

    @staticmethod
    def _coerce_bool(value: Any, context: str) -> bool:
        if value is None:
            return False
        if not isinstance(value, bool):
            raise SaveLoadError(f"{context} must be a boolean.")
        return value

    @staticmethod
    def _coerce_str_list(value: Any, context: str) -> List[str]:
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise SaveLoadError(f"{context} must be a list of strings.")
        return list(value)


def _copy_json(value: Value) -> Value:
    return list(value) if isinstance(value, list) else value
