"""Variable schema and variable-mutation definitions."""
from __future__ import annotations

from dataclasses import dataclass

from storyloom.core.types import Value


@dataclass(slots=True)
class VariableDefinition:
    """Declares a variable; the live value lives in the variable store."""

    id: str
    name: str
    type: str
    default_value: Value = None
    array_item_type: str | None = None
    description: str | None = None


@dataclass(slots=True)
class OperationDef:
    """Fields shared by every variable-node operation."""

    action: str = "set"
    value: Value = None
    index: int | None = None
    use_variable_value: bool = False
    source_variable_id: str | None = None


@dataclass(slots=True)
class VariableOperation(OperationDef):
    """Mutates a declared variable."""

    variable_id: str | None = None


@dataclass(slots=True)
class FlagOperation(OperationDef):
    """Legacy mutation of the free-form flags map."""

    key: str | None = None


@dataclass(slots=True)
class LegacyStatOperation(OperationDef):
    """Legacy gold/hp/affection/reputation target; kept only to be reported."""

    target: str = ""
    character_id: str | None = None
    faction_id: str | None = None
