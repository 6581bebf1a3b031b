"""Variable context used for ``{{placeholder}}`` substitution."""

from __future__ import annotations

import re
from typing import Dict, Iterable, Iterator, List, Mapping

PLACEHOLDER_PATTERN = re.compile(r"\{\{([A-Za-z_][A-Za-z0-9_]*)\}\}")


class VariableContext:
    """Name to value mapping consulted while resolving task parameters.

    Unknown names resolve to the empty string, mirroring how unset shell
    variables expand. Callers that need a variable to be present should
    check :meth:`missing` before starting a run.
    """

    def __init__(self, values: Mapping[str, object] | None = None) -> None:
        self._values: Dict[str, str] = {}
        if values:
            self.update(values)

    def set(self, name: str, value: object) -> None:
        self._values[name] = "" if value is None else str(value)

    def update(self, values: Mapping[str, object]) -> None:
        for name, value in values.items():
            self.set(str(name), value)

    def get(self, name: str, default: str = "") -> str:
        return self._values.get(name, default)

    def names(self) -> List[str]:
        return list(self._values)

    def missing(self, names: Iterable[str]) -> List[str]:
        """Return the names from ``names`` that are unset or empty."""

        return [name for name in names if not self._values.get(name)]

    def resolve(self, template: str) -> str:
        """Replace every placeholder, substituting ``""`` for unknown names."""

        return PLACEHOLDER_PATTERN.sub(lambda match: self._values.get(match.group(1), ""), template)

    def substitute_known(self, text: str) -> str:
        """Replace only the placeholders whose names are set, leave the rest."""

        def replace(match: re.Match[str]) -> str:
            name = match.group(1)
            if name in self._values:
                return self._values[name]
            return match.group(0)

        return PLACEHOLDER_PATTERN.sub(replace, text)

    def copy(self) -> "VariableContext":
        return VariableContext(self._values)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"VariableContext({sorted(self._values)!r})"


def placeholders(text: str) -> List[str]:
    """Return placeholder names in order of first appearance."""

    seen: List[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(text):
        name = match.group(1)
        if name not in seen:
            seen.append(name)
    return seen


__all__ = ["PLACEHOLDER_PATTERN", "VariableContext", "placeholders"]
