"""Condition variants used by condition nodes and choice gating.

``VariableCondition`` is the primary path. The flag, relic, character and
range variants describe older story data and are evaluated on a separate
legacy code path.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from storyloom.core.types import Value

LEGACY_RANGE_TYPES = ("gold", "hp", "affection", "reputation")


@dataclass(slots=True)
class ConditionDef:
    """Base class for condition variants."""


@dataclass(slots=True)
class VariableCondition(ConditionDef):
    variable_id: str | None = None
    operator: str = "=="
    value: Value = None


@dataclass(slots=True)
class ChoiceMadeCondition(ConditionDef):
    choice_id: str | None = None


@dataclass(slots=True)
class FlagCondition(ConditionDef):
    flag_key: str | None = None
    flag_value: Value = None


@dataclass(slots=True)
class RelicCondition(ConditionDef):
    relic_id: str | None = None


@dataclass(slots=True)
class CharacterCondition(ConditionDef):
    character_id: str | None = None


@dataclass(slots=True)
class LegacyRangeCondition(ConditionDef):
    """gold/hp read the like-named variable; affection/reputation read ``<subject>_<kind>``."""

    kind: str = "gold"
    subject_id: str | None = None
    min: float | None = None
    max: float | None = None
    value: float | None = None


@dataclass(slots=True)
class UnknownCondition(ConditionDef):
    type: str = ""
    data: Dict[str, object] = field(default_factory=dict)
