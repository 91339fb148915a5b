"""``{{token}}`` substitution for story text."""
from __future__ import annotations

import re
from typing import Iterable, Mapping

from storyloom.core.types import Value
from storyloom.core.values import render_value
from storyloom.domain.defs import VariableDefinition

_TOKEN_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def interpolate_text(
    text: str | None,
    variables: Mapping[str, Value],
    definitions: Iterable[VariableDefinition] = (),
) -> str | None:
    """Replace tokens by variable id, then by definition name; leave unknown tokens as written."""
    if not text:
        return text
    names = {}
    for definition in definitions:
        names.setdefault(definition.name, definition.id)

    def replace(match: re.Match[str]) -> str:
        token = match.group(1).strip()
        value = variables.get(token)
        if value is not None:
            return render_value(value)
        variable_id = names.get(token)
        if variable_id is not None and variables.get(variable_id) is not None:
            return render_value(variables[variable_id])
        return match.group(0)

    return _TOKEN_PATTERN.sub(replace, text)
