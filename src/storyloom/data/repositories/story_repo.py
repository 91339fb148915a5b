"""Repository for authored story documents."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping

from storyloom.core.types import Value
from storyloom.data.errors import DataValidationError
from storyloom.data.repositories.base import RepositoryBase
from storyloom.domain.defs import (
    ChapterDef,
    ChapterEndSpec,
    CharacterCondition,
    ChoiceDef,
    ChoiceEffects,
    ChoiceMadeCondition,
    ConditionBranchDef,
    ConditionDef,
    FlagCondition,
    FlagOperation,
    ImageSpec,
    LegacyRangeCondition,
    LegacyStatOperation,
    OperationDef,
    RelicCondition,
    ScriptDef,
    StageDef,
    StatDeltaDef,
    StoryDocument,
    StoryNodeDef,
    UnknownCondition,
    VariableCondition,
    VariableDefinition,
    VariableOperation,
)
from storyloom.domain.defs.condition_def import LEGACY_RANGE_TYPES

_NODE_KEYS = {
    "id",
    "type",
    "speaker",
    "text",
    "nextNodeId",
    "choices",
    "variableOperations",
    "conditionBranches",
    "defaultNextNodeId",
    "imageData",
    "javascriptCode",
    "javascriptFunction",
    "customData",
    "chapterEndData",
    "onEnterEffects",
}


class StoryRepository(RepositoryBase[StoryDocument]):
    """Loads a story document and validates its structure.

    Only container shapes and identifiers are checked here. Graph problems
    (dangling ids, missing start nodes) are left to the validator and to the
    engine's fallback rules.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        super().__init__(path)

    def parse(self, raw: Mapping[str, object]) -> StoryDocument:
        """Build a document from an already-decoded mapping."""
        return self._build(self._require_mapping(raw, "story document"))

    def _build(self, raw: dict[str, object]) -> StoryDocument:
        stages = [
            self._parse_stage(entry, f"stages[{index}]")
            for index, entry in enumerate(self._optional_list(raw.get("stages"), "stages"))
        ]
        variables = self._parse_variable_defs(raw.get("variables"), "variables")
        return StoryDocument(
            stages=stages,
            variables=variables,
            name=self._optional_str(raw.get("name"), "name") or "",
            version=self._optional_str(raw.get("version"), "version") or "",
        )

    def _parse_stage(self, payload: object, context: str) -> StageDef:
        data = self._require_mapping(payload, context)
        stage_id = self._require_str(data.get("id"), f"{context} id")
        chapters = [
            self._parse_chapter(entry, f"stage '{stage_id}' chapters[{index}]")
            for index, entry in enumerate(
                self._optional_list(data.get("chapters"), f"stage '{stage_id}' chapters")
            )
        ]
        return StageDef(
            id=stage_id,
            title=self._optional_str(data.get("title"), f"stage '{stage_id}' title") or "",
            chapters=chapters,
        )

    def _parse_chapter(self, payload: object, context: str) -> ChapterDef:
        data = self._require_mapping(payload, context)
        chapter_id = self._require_str(data.get("id"), f"{context} id")
        chapter_ctx = f"chapter '{chapter_id}'"
        nodes = [
            self._parse_node(entry, f"{chapter_ctx} nodes[{index}]")
            for index, entry in enumerate(self._optional_list(data.get("nodes"), f"{chapter_ctx} nodes"))
        ]
        return ChapterDef(
            id=chapter_id,
            title=self._optional_str(data.get("title"), f"{chapter_ctx} title") or "",
            nodes=nodes,
            start_node_id=self._optional_str(data.get("startNodeId"), f"{chapter_ctx} startNodeId") or "",
            variables=self._parse_variable_defs(data.get("variables"), f"{chapter_ctx} variables"),
            alias=self._optional_str(data.get("alias"), f"{chapter_ctx} alias"),
        )

    def _parse_variable_defs(self, raw_defs: object, context: str) -> List[VariableDefinition]:
        definitions: List[VariableDefinition] = []
        for index, entry in enumerate(self._optional_list(raw_defs, context)):
            entry_ctx = f"{context}[{index}]"
            data = self._require_mapping(entry, entry_ctx)
            variable_id = self._require_str(data.get("id"), f"{entry_ctx} id")
            default_value = data.get("defaultValue")
            declared_type = self._optional_str(data.get("type"), f"{entry_ctx} type")
            definitions.append(
                VariableDefinition(
                    id=variable_id,
                    name=self._optional_str(data.get("name"), f"{entry_ctx} name") or variable_id,
                    type=declared_type or _infer_variable_type(default_value),
                    default_value=default_value,
                    array_item_type=self._optional_str(data.get("arrayItemType"), f"{entry_ctx} arrayItemType"),
                    description=self._optional_str(data.get("description"), f"{entry_ctx} description"),
                )
            )
        return definitions

    def _parse_node(self, payload: object, context: str) -> StoryNodeDef:
        data = self._require_mapping(payload, context)
        node_id = self._require_str(data.get("id"), f"{context} id")
        node_ctx = f"story node '{node_id}'"
        node_type = self._require_str(data.get("type"), f"{node_ctx} type")

        image = None
        if data.get("imageData") is not None:
            image = self._parse_image(data["imageData"], f"{node_ctx} imageData")
        chapter_end = None
        if data.get("chapterEndData") is not None:
            chapter_end = self._parse_chapter_end(data["chapterEndData"], f"{node_ctx} chapterEndData")
        on_enter_effects = None
        if data.get("onEnterEffects") is not None:
            on_enter_effects = self._parse_effects(data["onEnterEffects"], f"{node_ctx} onEnterEffects")
        custom: Dict[str, object] = {}
        if data.get("customData") is not None:
            custom = dict(self._require_mapping(data["customData"], f"{node_ctx} customData"))

        return StoryNodeDef(
            id=node_id,
            type=node_type,
            speaker=self._optional_str(data.get("speaker"), f"{node_ctx} speaker"),
            text=self._optional_str(data.get("text"), f"{node_ctx} text"),
            next_node_id=self._optional_ref(data.get("nextNodeId"), f"{node_ctx} nextNodeId"),
            choices=self._parse_choices(data.get("choices"), node_ctx),
            variable_operations=self._parse_operations(data.get("variableOperations"), node_ctx),
            condition_branches=self._parse_branches(data.get("conditionBranches"), node_ctx),
            default_next_node_id=self._optional_ref(
                data.get("defaultNextNodeId"), f"{node_ctx} defaultNextNodeId"
            ),
            image=image,
            script=self._parse_script(data, node_ctx),
            custom=custom,
            chapter_end=chapter_end,
            on_enter_effects=on_enter_effects,
            extra={key: value for key, value in data.items() if key not in _NODE_KEYS},
        )

    def _parse_choices(self, raw_choices: object, node_ctx: str) -> List[ChoiceDef]:
        choices: List[ChoiceDef] = []
        for index, entry in enumerate(self._optional_list(raw_choices, f"{node_ctx} choices")):
            choice_ctx = f"{node_ctx} choices[{index}]"
            data = self._require_mapping(entry, choice_ctx)
            condition = None
            if data.get("condition") is not None:
                condition = self._parse_condition(data["condition"], f"{choice_ctx} condition")
            effects = None
            if data.get("effects") is not None:
                effects = self._parse_effects(data["effects"], f"{choice_ctx} effects")
            choices.append(
                ChoiceDef(
                    id=self._require_str(data.get("id"), f"{choice_ctx} id"),
                    text=self._optional_str(data.get("text"), f"{choice_ctx} text") or "",
                    next_node_id=self._optional_ref(data.get("nextNodeId"), f"{choice_ctx} nextNodeId"),
                    condition=condition,
                    effects=effects,
                    disabled_text=self._optional_str(data.get("disabledText"), f"{choice_ctx} disabledText"),
                    result_text=self._optional_str(data.get("resultText"), f"{choice_ctx} resultText"),
                )
            )
        return choices

    def _parse_branches(self, raw_branches: object, node_ctx: str) -> List[ConditionBranchDef]:
        branches: List[ConditionBranchDef] = []
        for index, entry in enumerate(self._optional_list(raw_branches, f"{node_ctx} conditionBranches")):
            branch_ctx = f"{node_ctx} conditionBranches[{index}]"
            data = self._require_mapping(entry, branch_ctx)
            branches.append(
                ConditionBranchDef(
                    id=self._optional_str(data.get("id"), f"{branch_ctx} id") or f"branch_{index}",
                    condition=self._parse_condition(data.get("condition"), f"{branch_ctx} condition"),
                    next_node_id=self._optional_ref(data.get("nextNodeId"), f"{branch_ctx} nextNodeId"),
                )
            )
        return branches

    def parse_condition(self, raw: object) -> ConditionDef:
        """Parse a single condition mapping (used for ad-hoc UI queries)."""
        return self._parse_condition(raw, "condition")

    def _parse_condition(self, payload: object, context: str) -> ConditionDef:
        data = self._require_mapping(payload, context)
        condition_type = self._require_str(data.get("type"), f"{context} type")
        if condition_type == "variable":
            return VariableCondition(
                variable_id=self._optional_str(data.get("variableId"), f"{context} variableId"),
                operator=self._optional_str(data.get("operator"), f"{context} operator") or "==",
                value=data.get("value"),
            )
        if condition_type == "flag":
            return FlagCondition(
                flag_key=self._optional_str(data.get("flagKey"), f"{context} flagKey"),
                flag_value=data.get("flagValue"),
            )
        if condition_type == "choice_made":
            return ChoiceMadeCondition(
                choice_id=self._optional_str(data.get("choiceId"), f"{context} choiceId")
            )
        if condition_type == "has_relic":
            relic = data.get("value")
            return RelicCondition(relic_id=str(relic) if relic not in (None, "", False, 0) else None)
        if condition_type == "character":
            return CharacterCondition(
                character_id=self._optional_str(data.get("characterId"), f"{context} characterId")
            )
        if condition_type in LEGACY_RANGE_TYPES:
            subject_id = None
            if condition_type == "affection":
                subject_id = self._optional_str(data.get("characterId"), f"{context} characterId")
            elif condition_type == "reputation":
                subject_id = self._optional_str(data.get("factionId"), f"{context} factionId")
            exact = data.get("value")
            return LegacyRangeCondition(
                kind=condition_type,
                subject_id=subject_id,
                min=self._optional_number(data.get("min"), f"{context} min"),
                max=self._optional_number(data.get("max"), f"{context} max"),
                value=exact if isinstance(exact, (int, float)) and not isinstance(exact, bool) else None,
            )
        payload_data = {key: value for key, value in data.items() if key != "type"}
        return UnknownCondition(type=condition_type, data=payload_data)

    def _parse_operations(self, raw_operations: object, node_ctx: str) -> List[OperationDef]:
        operations: List[OperationDef] = []
        for index, entry in enumerate(self._optional_list(raw_operations, f"{node_ctx} variableOperations")):
            op_ctx = f"{node_ctx} variableOperations[{index}]"
            data = self._require_mapping(entry, op_ctx)
            target = self._optional_str(data.get("target"), f"{op_ctx} target") or "variable"
            common = dict(
                action=self._optional_str(data.get("action"), f"{op_ctx} action") or "set",
                value=data.get("value"),
                index=self._optional_index(data.get("index"), f"{op_ctx} index"),
                use_variable_value=bool(data.get("useVariableValue", False)),
                source_variable_id=self._optional_str(data.get("sourceVariableId"), f"{op_ctx} sourceVariableId"),
            )
            if target == "variable":
                operations.append(
                    VariableOperation(
                        variable_id=self._optional_str(data.get("variableId"), f"{op_ctx} variableId"),
                        **common,
                    )
                )
            elif target == "flag":
                operations.append(
                    FlagOperation(key=self._optional_str(data.get("key"), f"{op_ctx} key"), **common)
                )
            else:
                operations.append(
                    LegacyStatOperation(
                        target=target,
                        character_id=self._optional_str(data.get("characterId"), f"{op_ctx} characterId"),
                        faction_id=self._optional_str(data.get("factionId"), f"{op_ctx} factionId"),
                        **common,
                    )
                )
        return operations

    def _parse_effects(self, payload: object, context: str) -> ChoiceEffects:
        data = self._require_mapping(payload, context)
        set_flags: Dict[str, Value] = {}
        if data.get("setFlags") is not None:
            set_flags = dict(self._require_mapping(data["setFlags"], f"{context} setFlags"))
        return ChoiceEffects(
            set_flags=set_flags,
            gold=self._optional_number(data.get("gold"), f"{context} gold"),
            hp=self._optional_number(data.get("hp"), f"{context} hp"),
            affection=self._parse_deltas(data.get("affection"), "characterId", f"{context} affection"),
            reputation=self._parse_deltas(data.get("reputation"), "factionId", f"{context} reputation"),
            card_id=self._optional_str(data.get("cardId"), f"{context} cardId"),
            relic_id=self._optional_str(data.get("relicId"), f"{context} relicId"),
        )

    def _parse_deltas(self, raw: object, subject_key: str, context: str) -> List[StatDeltaDef]:
        deltas: List[StatDeltaDef] = []
        for index, entry in enumerate(self._optional_list(raw, context)):
            entry_ctx = f"{context}[{index}]"
            data = self._require_mapping(entry, entry_ctx)
            deltas.append(
                StatDeltaDef(
                    subject_id=self._require_str(data.get(subject_key), f"{entry_ctx} {subject_key}"),
                    delta=self._optional_number(data.get("delta"), f"{entry_ctx} delta") or 0,
                )
            )
        return deltas

    def _parse_image(self, payload: object, context: str) -> ImageSpec:
        data = self._require_mapping(payload, context)
        effects = [
            self._require_str(effect, f"{context} effects[{index}]")
            for index, effect in enumerate(self._optional_list(data.get("effects"), f"{context} effects"))
        ]
        layer_order = self._optional_number(data.get("layerOrder"), f"{context} layerOrder")
        return ImageSpec(
            resource_path=self._optional_str(data.get("resourcePath"), f"{context} resourcePath") or "",
            layer=self._optional_str(data.get("layer"), f"{context} layer") or "background",
            layer_order=int(layer_order) if layer_order is not None else 0,
            alignment=self._optional_str(data.get("alignment"), f"{context} alignment") or "center",
            x=self._optional_number(data.get("x"), f"{context} x"),
            y=self._optional_number(data.get("y"), f"{context} y"),
            flip_horizontal=bool(data.get("flipHorizontal", False)),
            object_fit=self._optional_str(data.get("objectFit"), f"{context} objectFit"),
            effect=self._optional_str(data.get("effect"), f"{context} effect"),
            effects=effects,
            effect_duration=self._optional_number(data.get("effectDuration"), f"{context} effectDuration") or 0,
            exit_effect=self._optional_str(data.get("exitEffect"), f"{context} exitEffect"),
            exit_effect_duration=self._optional_number(
                data.get("exitEffectDuration"), f"{context} exitEffectDuration"
            ),
            transition_timing=self._optional_str(data.get("transitionTiming"), f"{context} transitionTiming")
            or "sequential",
        )

    def _parse_script(self, data: Mapping[str, object], node_ctx: str) -> ScriptDef | None:
        code = self._optional_str(data.get("javascriptCode"), f"{node_ctx} javascriptCode")
        function_payload = data.get("javascriptFunction")
        if code is None and function_payload is None:
            return None
        if function_payload is None:
            return ScriptDef(code=code or "")
        function = self._require_mapping(function_payload, f"{node_ctx} javascriptFunction")
        arguments = [
            dict(self._require_mapping(arg, f"{node_ctx} javascriptFunction arguments[{index}]"))
            for index, arg in enumerate(
                self._optional_list(function.get("arguments"), f"{node_ctx} javascriptFunction arguments")
            )
        ]
        return ScriptDef(
            code=self._optional_str(function.get("body"), f"{node_ctx} javascriptFunction body") or code or "",
            function_name=self._optional_str(function.get("name"), f"{node_ctx} javascriptFunction name"),
            arguments=arguments,
        )

    def _parse_chapter_end(self, payload: object, context: str) -> ChapterEndSpec:
        data = self._require_mapping(payload, context)
        return ChapterEndSpec(
            action=self._optional_str(data.get("action"), f"{context} action") or "end",
            next_stage_id=self._optional_ref(data.get("nextStageId"), f"{context} nextStageId"),
            next_chapter_id=self._optional_ref(data.get("nextChapterId"), f"{context} nextChapterId"),
            clear_visuals=bool(data.get("clearVisuals", True)),
        )

    def _optional_ref(self, value: object, context: str) -> str | None:
        # The editor writes "" for an unconnected handle.
        return self._optional_str(value, context) or None

    @staticmethod
    def _optional_index(value: object, context: str) -> int | None:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
            raise DataValidationError(f"{context} must be an integer if provided.")
        return int(value)


def _infer_variable_type(default_value: object) -> str:
    if isinstance(default_value, bool):
        return "boolean"
    if isinstance(default_value, (int, float)):
        return "number"
    if isinstance(default_value, list):
        return "array"
    return "string"


def parse_story_document(raw: Mapping[str, object]) -> StoryDocument:
    """Build a StoryDocument from decoded JSON."""
    return StoryRepository().parse(raw)


def load_story_document(path: Path | str) -> StoryDocument:
    """Read and parse a story document file."""
    return StoryRepository(path).load()
