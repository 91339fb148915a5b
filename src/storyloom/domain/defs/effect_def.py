"""Legacy choice/node effect definitions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from storyloom.core.types import Value


@dataclass(slots=True)
class StatDeltaDef:
    """Affection or reputation delta for a character or faction."""

    subject_id: str
    delta: float


@dataclass(slots=True)
class ChoiceEffects:
    """Effects attached to a choice or applied on node entry."""

    set_flags: Dict[str, Value] = field(default_factory=dict)
    gold: float | None = None
    hp: float | None = None
    affection: List[StatDeltaDef] = field(default_factory=list)
    reputation: List[StatDeltaDef] = field(default_factory=list)
    card_id: str | None = None
    relic_id: str | None = None
