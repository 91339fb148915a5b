"""Story document structures consumed by the interpreter."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from storyloom.domain.defs.condition_def import ConditionDef
from storyloom.domain.defs.effect_def import ChoiceEffects
from storyloom.domain.defs.image_def import ImageSpec
from storyloom.domain.defs.variable_def import OperationDef, VariableDefinition

# Node types that hand control back to the player until advance()/select_choice().
SUSPENDING_NODE_TYPES = frozenset(
    {"dialogue", "choice", "battle", "shop", "event", "chapter_end", "custom"}
)
# Node types the executor passes through without waiting for the player.
AUTO_NODE_TYPES = frozenset({"start", "variable", "condition", "image", "javascript"})
KNOWN_NODE_TYPES = SUSPENDING_NODE_TYPES | AUTO_NODE_TYPES


@dataclass(slots=True)
class ChoiceDef:
    """Represents a selectable choice on a choice node."""

    id: str
    text: str = ""
    next_node_id: str | None = None
    condition: ConditionDef | None = None
    effects: ChoiceEffects | None = None
    disabled_text: str | None = None
    result_text: str | None = None


@dataclass(slots=True)
class ConditionBranchDef:
    """One ordered branch of a condition node."""

    id: str
    condition: ConditionDef
    next_node_id: str | None = None


@dataclass(slots=True)
class ScriptDef:
    """Opaque script payload of a javascript node."""

    code: str = ""
    function_name: str | None = None
    arguments: List[Dict[str, object]] = field(default_factory=list)


@dataclass(slots=True)
class ChapterEndSpec:
    """What happens after the player leaves a chapter_end node."""

    action: str = "end"
    next_stage_id: str | None = None
    next_chapter_id: str | None = None
    clear_visuals: bool = True


@dataclass(slots=True)
class StoryNodeDef:
    """Fully parsed story node; payload fields are filled per node type."""

    id: str
    type: str
    speaker: str | None = None
    text: str | None = None
    next_node_id: str | None = None
    choices: List[ChoiceDef] = field(default_factory=list)
    variable_operations: List[OperationDef] = field(default_factory=list)
    condition_branches: List[ConditionBranchDef] = field(default_factory=list)
    default_next_node_id: str | None = None
    image: ImageSpec | None = None
    script: ScriptDef | None = None
    custom: Dict[str, object] = field(default_factory=dict)
    chapter_end: ChapterEndSpec | None = None
    on_enter_effects: ChoiceEffects | None = None
    extra: Dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class ChapterDef:
    id: str
    title: str = ""
    nodes: List[StoryNodeDef] = field(default_factory=list)
    start_node_id: str = ""
    variables: List[VariableDefinition] = field(default_factory=list)
    alias: str | None = None

    def find_node(self, node_id: str) -> StoryNodeDef | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def resolve_start_node_id(self) -> str:
        """Return startNodeId, else the first start node, else the first node."""
        if self.start_node_id:
            return self.start_node_id
        for node in self.nodes:
            if node.type == "start":
                return node.id
        return self.nodes[0].id if self.nodes else ""


@dataclass(slots=True)
class StageDef:
    id: str
    title: str = ""
    chapters: List[ChapterDef] = field(default_factory=list)

    def find_chapter(self, chapter_id: str) -> ChapterDef | None:
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                return chapter
        return None


@dataclass(slots=True)
class StoryDocument:
    """Root of an authored story: stages, chapters, nodes and global variables."""

    stages: List[StageDef] = field(default_factory=list)
    variables: List[VariableDefinition] = field(default_factory=list)
    name: str = ""
    version: str = ""

    def find_stage(self, stage_id: str) -> StageDef | None:
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        return None

    def find_chapter(self, stage_id: str, chapter_id: str) -> ChapterDef | None:
        stage = self.find_stage(stage_id)
        return stage.find_chapter(chapter_id) if stage else None
