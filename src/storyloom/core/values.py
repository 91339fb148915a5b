"""Helpers for the JSON-shaped values held by the variable store."""
from __future__ import annotations

import math

from storyloom.core.types import Value


def is_number(value: object) -> bool:
    """Return True for ints and floats, excluding booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def zero_value_like(reference: object) -> Value:
    """Return the zero value matching the type of ``reference``."""
    if isinstance(reference, bool):
        return False
    if is_number(reference):
        return 0
    if isinstance(reference, str):
        return ""
    return False


def copy_value(value: Value) -> Value:
    """Return a copy that does not alias list storage."""
    if isinstance(value, list):
        return list(value)
    return value


def _as_number(value: object) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return None
    return None


def loose_equals(left: object, right: object) -> bool:
    """Compare two values, coercing numbers, booleans and numeric strings."""
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if isinstance(left, list) or isinstance(right, list):
        return left == right
    left_number = _as_number(left)
    right_number = _as_number(right)
    if left_number is None or right_number is None:
        return False
    return left_number == right_number


def strict_equals(left: object, right: object) -> bool:
    """Compare two values without any type coercion."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if is_number(left) and is_number(right):
        return left == right
    return type(left) is type(right) and left == right


def render_value(value: object) -> str:
    """Render a value for display the way it reads in JSON."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ", ".join(render_value(item) for item in value)
    return str(value)


def is_truthy(value: object) -> bool:
    """Truthiness as story data expects it: any list counts as set."""
    if isinstance(value, list):
        return True
    return bool(value)
