"""Shared type aliases for the core and domain layers."""
from typing import List, Literal, Union

Scalar = Union[bool, int, float, str]
Value = Union[Scalar, List[Scalar], None]

NodeType = Literal[
    "start",
    "dialogue",
    "choice",
    "battle",
    "shop",
    "event",
    "chapter_end",
    "variable",
    "condition",
    "image",
    "javascript",
    "custom",
]
VariableType = Literal["boolean", "number", "string", "array"]
ComparisonOperator = Literal["==", "!=", ">", ">=", "<", "<="]
TransitionTiming = Literal["sequential", "crossfade"]
ChapterEndAction = Literal["next", "select", "end", "goto"]
EngineStatus = Literal["idle", "playing", "ended"]

__all__ = [
    "ChapterEndAction",
    "ComparisonOperator",
    "EngineStatus",
    "NodeType",
    "Scalar",
    "TransitionTiming",
    "Value",
    "VariableType",
]
