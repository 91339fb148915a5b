"""Condition evaluation against a variable store.

Evaluation never raises: missing or mistyped variables coerce to safe
defaults, and unrecognized condition types pass.
"""
from __future__ import annotations

import logging

from storyloom.core.values import is_number, is_truthy, loose_equals, strict_equals, zero_value_like
from storyloom.domain.defs import (
    CharacterCondition,
    ChoiceMadeCondition,
    ConditionDef,
    FlagCondition,
    LegacyRangeCondition,
    RelicCondition,
    UnknownCondition,
    VariableCondition,
)
from storyloom.domain.state import VariableStore

logger = logging.getLogger(__name__)

_ORDERING_OPERATORS = {
    ">": lambda left, right: left > right,
    ">=": lambda left, right: left >= right,
    "<": lambda left, right: left < right,
    "<=": lambda left, right: left <= right,
}


def compare_values(left: object, operator: str, right: object) -> bool:
    """Apply a comparison operator to a stored value and an authored operand."""
    if isinstance(left, list):
        left = len(left)
    if left is None:
        left = zero_value_like(right)

    if operator == "==":
        return loose_equals(left, right)
    if operator == "!=":
        return not loose_equals(left, right)
    compare = _ORDERING_OPERATORS.get(operator)
    if compare is None:
        logger.debug("Unknown comparison operator %r", operator)
        return False
    return is_number(left) and is_number(right) and compare(left, right)


def check_number_range(
    value: float,
    minimum: float | None = None,
    maximum: float | None = None,
    exact: float | None = None,
) -> bool:
    """An exact value wins over the bounds; missing bounds are open."""
    if exact is not None:
        return value == exact
    if minimum is not None and value < minimum:
        return False
    if maximum is not None and value > maximum:
        return False
    return True


def evaluate_condition(condition: ConditionDef, store: VariableStore) -> bool:
    if isinstance(condition, VariableCondition):
        if not condition.variable_id:
            return False
        return compare_values(
            store.variables.get(condition.variable_id), condition.operator, condition.value
        )
    if isinstance(condition, ChoiceMadeCondition):
        return bool(condition.choice_id) and condition.choice_id in store.choices_made
    if isinstance(condition, UnknownCondition):
        logger.debug("Unknown condition type %r treated as satisfied", condition.type)
        return True
    return _evaluate_legacy(condition, store)


def _evaluate_legacy(condition: ConditionDef, store: VariableStore) -> bool:
    if isinstance(condition, FlagCondition):
        if not condition.flag_key:
            return False
        flag_value = store.flags.get(condition.flag_key)
        if condition.flag_value is not None:
            return strict_equals(flag_value, condition.flag_value)
        return is_truthy(flag_value)
    if isinstance(condition, RelicCondition):
        if not condition.relic_id:
            return False
        return is_truthy(store.flags.get(f"relic_{condition.relic_id}"))
    if isinstance(condition, CharacterCondition):
        # Party membership is not tracked at runtime.
        return True
    if isinstance(condition, LegacyRangeCondition):
        return _evaluate_range(condition, store)
    logger.debug("Unhandled condition class %s treated as satisfied", type(condition).__name__)
    return True


def _evaluate_range(condition: LegacyRangeCondition, store: VariableStore) -> bool:
    if condition.kind in ("gold", "hp"):
        current = store.variables.get(condition.kind)
        if not is_number(current):
            logger.warning(
                "Legacy condition type %r has no numeric variable of that name; treating as satisfied",
                condition.kind,
            )
            return True
    else:
        if not condition.subject_id:
            return False
        current = store.variables.get(f"{condition.subject_id}_{condition.kind}")
        if not is_number(current):
            current = 0
    return check_number_range(current, condition.min, condition.max, condition.value)
