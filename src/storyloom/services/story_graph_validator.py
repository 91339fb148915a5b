"""Static story graph validation utilities.

The interpreter tolerates broken graphs at runtime; these checks report the
problems before play so authors can fix them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, MutableMapping, Sequence

from storyloom.domain.defs import (
    KNOWN_NODE_TYPES,
    ChapterDef,
    ConditionDef,
    StoryDocument,
    StoryNodeDef,
    UnknownCondition,
    VariableCondition,
    VariableDefinition,
    VariableOperation,
)

Severity = str

# Node types whose next_node_id is followed without player input. Condition
# nodes are left out: a loop through one is how counters are written.
_AUTO_ADVANCE_TYPES = {"start", "variable", "image", "javascript"}


@dataclass(frozen=True, slots=True)
class Issue:
    severity: Severity
    code: str
    message: str
    context: dict[str, str]


def format_issue(issue: Issue) -> str:
    context = " ".join(f"{key}={value}" for key, value in issue.context.items())
    suffix = f" ({context})" if context else ""
    return f"[{issue.severity}] {issue.code}: {issue.message}{suffix}"


def has_errors(issues: Iterable[Issue]) -> bool:
    return any(issue.severity == "ERROR" for issue in issues)


def validate_story_document(document: StoryDocument) -> list[Issue]:
    issues: list[Issue] = []
    if not document.stages:
        issues.append(
            Issue(
                severity="ERROR",
                code="NO_STAGES",
                message="Story has no stages.",
                context={},
            )
        )
        return issues
    for stage in document.stages:
        if not stage.chapters:
            issues.append(
                Issue(
                    severity="WARN",
                    code="EMPTY_STAGE",
                    message="Stage has no chapters.",
                    context={"stage_id": stage.id},
                )
            )
            continue
        for chapter in stage.chapters:
            issues.extend(
                validate_chapter(chapter, global_variables=document.variables, stage_id=stage.id)
            )
    return issues


def validate_chapter_by_id(document: StoryDocument, stage_id: str, chapter_id: str) -> list[Issue]:
    chapter = document.find_chapter(stage_id, chapter_id)
    if chapter is None:
        return [
            Issue(
                severity="ERROR",
                code="MISSING_CHAPTER",
                message="Chapter does not exist.",
                context={"stage_id": stage_id, "chapter_id": chapter_id},
            )
        ]
    return validate_chapter(chapter, global_variables=document.variables, stage_id=stage_id)


def validate_chapter(
    chapter: ChapterDef,
    *,
    global_variables: Sequence[VariableDefinition] = (),
    stage_id: str | None = None,
) -> list[Issue]:
    issues: list[Issue] = []
    base_context = {"chapter_id": chapter.id}
    if stage_id is not None:
        base_context = {"stage_id": stage_id, **base_context}

    nodes = _index_nodes(chapter.nodes, base_context, issues)
    _validate_entry_and_exit(chapter, base_context, issues)

    known_variables = {definition.id for definition in global_variables}
    known_variables.update(definition.id for definition in chapter.variables)
    for node in nodes.values():
        _validate_node(node, nodes, known_variables, base_context, issues)

    entry_id = chapter.resolve_start_node_id()
    _validate_reachability(nodes, entry_id, base_context, issues)
    _validate_auto_advance_cycles(nodes, base_context, issues)
    return issues


def _index_nodes(
    story_nodes: Sequence[StoryNodeDef], base_context: Mapping[str, str], issues: list[Issue]
) -> dict[str, StoryNodeDef]:
    nodes: dict[str, StoryNodeDef] = {}
    for node in story_nodes:
        if node.id in nodes:
            issues.append(
                Issue(
                    severity="ERROR",
                    code="DUPLICATE_NODE_ID",
                    message="Duplicate story node id detected.",
                    context={**base_context, "node_id": node.id},
                )
            )
            continue
        nodes[node.id] = node
    return nodes


def _validate_entry_and_exit(
    chapter: ChapterDef, base_context: Mapping[str, str], issues: list[Issue]
) -> None:
    start_nodes = [node for node in chapter.nodes if node.type == "start"]
    if not start_nodes:
        issues.append(
            Issue(
                severity="ERROR",
                code="MISSING_START",
                message="Chapter has no start node.",
                context=dict(base_context),
            )
        )
    elif len(start_nodes) > 1:
        issues.append(
            Issue(
                severity="WARN",
                code="MULTIPLE_START",
                message=f"Chapter has {len(start_nodes)} start nodes; one is recommended.",
                context=dict(base_context),
            )
        )
    if chapter.start_node_id and chapter.find_node(chapter.start_node_id) is None:
        issues.append(
            Issue(
                severity="ERROR",
                code="MISSING_NODE_REF",
                message="Chapter start references missing story node.",
                context={
                    **base_context,
                    "field_path": "startNodeId",
                    "referenced_id": chapter.start_node_id,
                },
            )
        )
    if not any(node.type == "chapter_end" for node in chapter.nodes):
        issues.append(
            Issue(
                severity="ERROR",
                code="MISSING_CHAPTER_END",
                message="Chapter has no chapter_end node.",
                context=dict(base_context),
            )
        )


def _outgoing_refs(node: StoryNodeDef) -> list[tuple[str, str]]:
    """Return ``(field_path, target_id)`` pairs for every outgoing edge."""
    refs: list[tuple[str, str]] = []
    if node.next_node_id:
        refs.append(("nextNodeId", node.next_node_id))
    for index, choice in enumerate(node.choices):
        if choice.next_node_id:
            refs.append((f"choices[{index}].nextNodeId", choice.next_node_id))
    for index, branch in enumerate(node.condition_branches):
        if branch.next_node_id:
            refs.append((f"conditionBranches[{index}].nextNodeId", branch.next_node_id))
    if node.default_next_node_id:
        refs.append(("defaultNextNodeId", node.default_next_node_id))
    return refs


def _validate_node(
    node: StoryNodeDef,
    nodes: Mapping[str, StoryNodeDef],
    known_variables: set[str],
    base_context: Mapping[str, str],
    issues: list[Issue],
) -> None:
    node_context = {**base_context, "node_id": node.id}
    if node.type not in KNOWN_NODE_TYPES:
        issues.append(
            Issue(
                severity="WARN",
                code="UNKNOWN_NODE_TYPE",
                message=f"Unknown node type '{node.type}' will wait for advance().",
                context=node_context,
            )
        )
    for field_path, target_id in _outgoing_refs(node):
        if target_id not in nodes:
            issues.append(
                Issue(
                    severity="ERROR",
                    code="MISSING_NODE_REF",
                    message="Story node references missing node.",
                    context={**node_context, "field_path": field_path, "referenced_id": target_id},
                )
            )

    conditions: list[tuple[str, ConditionDef]] = []
    for index, choice in enumerate(node.choices):
        if choice.condition is not None:
            conditions.append((f"choices[{index}].condition", choice.condition))
    for index, branch in enumerate(node.condition_branches):
        conditions.append((f"conditionBranches[{index}].condition", branch.condition))
    for field_path, condition in conditions:
        _validate_condition(condition, field_path, known_variables, node_context, issues)

    for index, operation in enumerate(node.variable_operations):
        if not isinstance(operation, VariableOperation):
            continue
        field_path = f"variableOperations[{index}]"
        if operation.variable_id and operation.variable_id not in known_variables:
            issues.append(_unknown_variable(operation.variable_id, f"{field_path}.variableId", node_context))
        if (
            operation.use_variable_value
            and operation.source_variable_id
            and operation.source_variable_id not in known_variables
        ):
            issues.append(
                _unknown_variable(operation.source_variable_id, f"{field_path}.sourceVariableId", node_context)
            )


def _validate_condition(
    condition: ConditionDef,
    field_path: str,
    known_variables: set[str],
    node_context: Mapping[str, str],
    issues: list[Issue],
) -> None:
    if isinstance(condition, UnknownCondition):
        issues.append(
            Issue(
                severity="WARN",
                code="UNKNOWN_CONDITION_TYPE",
                message=f"Unknown condition type '{condition.type}' always passes.",
                context={**node_context, "field_path": field_path},
            )
        )
    elif isinstance(condition, VariableCondition):
        if condition.variable_id and condition.variable_id not in known_variables:
            issues.append(_unknown_variable(condition.variable_id, f"{field_path}.variableId", node_context))


def _unknown_variable(variable_id: str, field_path: str, node_context: Mapping[str, str]) -> Issue:
    return Issue(
        severity="WARN",
        code="UNKNOWN_VARIABLE",
        message="Reference to an undeclared variable.",
        context={**node_context, "field_path": field_path, "referenced_id": variable_id},
    )


def _validate_reachability(
    nodes: Mapping[str, StoryNodeDef],
    entry_id: str,
    base_context: Mapping[str, str],
    issues: list[Issue],
) -> None:
    if entry_id not in nodes:
        return
    reachable: set[str] = set()
    stack: list[str] = [entry_id]
    while stack:
        node_id = stack.pop()
        if node_id in reachable:
            continue
        reachable.add(node_id)
        for _, target_id in _outgoing_refs(nodes[node_id]):
            if target_id in nodes:
                stack.append(target_id)
    for node_id in sorted(set(nodes) - reachable):
        issues.append(
            Issue(
                severity="WARN",
                code="UNREACHABLE_NODE",
                message="Node is unreachable from the chapter start.",
                context={**base_context, "node_id": node_id},
            )
        )


def _validate_auto_advance_cycles(
    nodes: Mapping[str, StoryNodeDef],
    base_context: Mapping[str, str],
    issues: list[Issue],
) -> None:
    candidate_ids = {
        node_id
        for node_id, node in nodes.items()
        if node.type in _AUTO_ADVANCE_TYPES and node.next_node_id
    }
    adjacency: MutableMapping[str, str] = {}
    for node_id in candidate_ids:
        next_node_id = nodes[node_id].next_node_id
        if next_node_id in candidate_ids:
            adjacency[node_id] = next_node_id

    visited: set[str] = set()
    cycles: list[list[str]] = []
    for node_id in sorted(candidate_ids):
        if node_id in visited:
            continue
        path: list[str] = []
        on_path: set[str] = set()
        current: str | None = node_id
        while current is not None and current not in visited:
            visited.add(current)
            path.append(current)
            on_path.add(current)
            current = adjacency.get(current)
        if current is not None and current in on_path:
            cycles.append(path[path.index(current) :])

    for cycle in cycles:
        cycle_path = " -> ".join(cycle + [cycle[0]])
        issues.append(
            Issue(
                severity="ERROR",
                code="AUTOADVANCE_CYCLE",
                message="Auto-advance cycle detected.",
                context={**base_context, "cycle": cycle_path},
            )
        )
