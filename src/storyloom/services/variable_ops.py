"""Variable node operations and legacy choice effects."""
from __future__ import annotations

import logging
from typing import Iterable

from storyloom.core.types import Value
from storyloom.core.values import copy_value, is_number, render_value
from storyloom.domain.defs import (
    ChoiceEffects,
    FlagOperation,
    LegacyStatOperation,
    OperationDef,
    VariableOperation,
)
from storyloom.domain.state import VariableStore

logger = logging.getLogger(__name__)


def resolve_operand(operation: OperationDef, store: VariableStore) -> Value:
    """Return the operand, reading the source variable at execution time when asked to."""
    if operation.use_variable_value and operation.source_variable_id:
        source_value = store.variables.get(operation.source_variable_id)
        if source_value is not None:
            return copy_value(source_value)
    return copy_value(operation.value)


def apply_operations(operations: Iterable[OperationDef], store: VariableStore) -> None:
    """Run operations in order; each one sees the results of the ones before it."""
    for operation in operations:
        apply_operation(operation, store)


def apply_operation(operation: OperationDef, store: VariableStore) -> None:
    operand = resolve_operand(operation, store)
    if isinstance(operation, VariableOperation):
        _apply_variable_operation(operation, operand, store)
    elif isinstance(operation, FlagOperation):
        _apply_flag_operation(operation, operand, store)
    elif isinstance(operation, LegacyStatOperation):
        logger.warning(
            "Legacy variable target %r ignored; use a variable operation instead", operation.target
        )
    else:
        logger.warning("Unsupported operation %s ignored", type(operation).__name__)


def apply_arithmetic(current: float, action: str, operand: float) -> float:
    if action == "set":
        return operand
    if action == "add":
        return current + operand
    if action == "subtract":
        return current - operand
    if action == "multiply":
        return current * operand
    return current


def _apply_variable_operation(operation: VariableOperation, operand: Value, store: VariableStore) -> None:
    variable_id = operation.variable_id
    if not variable_id:
        return
    current = store.variables.get(variable_id)
    if isinstance(current, list):
        _apply_array_action(store, variable_id, operation.action, operand, operation.index)
    elif operation.action == "set":
        store.variables[variable_id] = operand
    elif is_number(current):
        store.variables[variable_id] = apply_arithmetic(current, operation.action, _numeric(operand))
    elif isinstance(current, str) and operation.action == "add":
        store.variables[variable_id] = current + render_value(operand)


def _apply_array_action(
    store: VariableStore, variable_id: str, action: str, operand: Value, index: int | None
) -> None:
    items = store.variables[variable_id]
    if action == "push":
        items.append(operand)
    elif action == "pop":
        if items:
            items.pop()
    elif action == "removeAt":
        if index is not None and 0 <= index < len(items):
            del items[index]
    elif action == "setAt":
        if index is not None and 0 <= index < len(items):
            items[index] = operand
    elif action == "clear":
        store.variables[variable_id] = []
    elif action == "set":
        if isinstance(operand, list):
            store.variables[variable_id] = operand
    else:
        logger.debug("Array action %r ignored for variable '%s'", action, variable_id)


def _apply_flag_operation(operation: FlagOperation, operand: Value, store: VariableStore) -> None:
    if not operation.key:
        return
    if operation.action == "set":
        store.flags[operation.key] = operand
        return
    current = store.flags.get(operation.key)
    if is_number(current):
        store.flags[operation.key] = apply_arithmetic(current, operation.action, _numeric(operand))


def apply_choice_effects(effects: ChoiceEffects, store: VariableStore) -> None:
    """Merge flag effects; numeric stat effects are reported and skipped."""
    for key, value in effects.set_flags.items():
        store.flags[key] = copy_value(value)
    if effects.gold is not None or effects.hp is not None:
        logger.warning("Legacy effects (gold/hp) ignored; use variable operations instead")
    if effects.affection or effects.reputation:
        logger.warning("Legacy effects (affection/reputation) ignored; use variable operations instead")


def _numeric(operand: Value) -> float:
    return operand if is_number(operand) else 0
