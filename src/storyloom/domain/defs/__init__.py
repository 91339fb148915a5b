"""Domain definition exports."""

from .condition_def import (
    CharacterCondition,
    ChoiceMadeCondition,
    ConditionDef,
    FlagCondition,
    LegacyRangeCondition,
    RelicCondition,
    UnknownCondition,
    VariableCondition,
)
from .effect_def import ChoiceEffects, StatDeltaDef
from .image_def import DEFAULT_EXIT_DURATION_MS, ImageSpec
from .story_def import (
    AUTO_NODE_TYPES,
    KNOWN_NODE_TYPES,
    SUSPENDING_NODE_TYPES,
    ChapterDef,
    ChapterEndSpec,
    ChoiceDef,
    ConditionBranchDef,
    ScriptDef,
    StageDef,
    StoryDocument,
    StoryNodeDef,
)
from .variable_def import (
    FlagOperation,
    LegacyStatOperation,
    OperationDef,
    VariableDefinition,
    VariableOperation,
)

__all__ = [
    "AUTO_NODE_TYPES",
    "DEFAULT_EXIT_DURATION_MS",
    "KNOWN_NODE_TYPES",
    "SUSPENDING_NODE_TYPES",
    "ChapterDef",
    "ChapterEndSpec",
    "CharacterCondition",
    "ChoiceDef",
    "ChoiceEffects",
    "ChoiceMadeCondition",
    "ConditionBranchDef",
    "ConditionDef",
    "FlagCondition",
    "FlagOperation",
    "ImageSpec",
    "LegacyRangeCondition",
    "LegacyStatOperation",
    "OperationDef",
    "RelicCondition",
    "ScriptDef",
    "StageDef",
    "StatDeltaDef",
    "StoryDocument",
    "StoryNodeDef",
    "UnknownCondition",
    "VariableCondition",
    "VariableDefinition",
    "VariableOperation",
]
