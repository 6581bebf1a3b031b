"""Task registry used by the recipe executor."""

from __future__ import annotations

import dataclasses
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from ..errors import HandlerFailure, ProviderError, RegistryError
from ..execution.context import ExecutionContext
from ..models import ActionKind, PARAMETER_TYPES, build_params

TaskHandler = Callable[[Any, ExecutionContext], Optional[str]]


@dataclasses.dataclass(slots=True)
class TaskDefinition:
    kind: ActionKind
    summary: str
    params_type: type
    handler: TaskHandler
    tags: Tuple[str, ...]

    def parameters(self, values: Mapping[str, str], *, position: int | None = None) -> Any:
        """Build the typed parameters, raising ``MissingParameter`` when incomplete."""

        return build_params(self.params_type, values, action=self.kind.value, position=position)

    def run(self, params: Any, context: ExecutionContext) -> str:
        position = context.task.position
        try:
            message = self.handler(params, context)
        except HandlerFailure as exc:
            if exc.position is None:
                exc.position = position
            raise
        except (ProviderError, OSError, ValueError) as exc:
            raise HandlerFailure(self.kind.value, str(exc), position) from exc
        return message or self.summary


class TaskRegistry:
    """Book-keeping for available task handlers."""

    def __init__(self) -> None:
        self._tasks: Dict[ActionKind, TaskDefinition] = {}

    def register(
        self,
        kind: ActionKind,
        *,
        summary: str,
        tags: Iterable[str] | None = None,
    ) -> Callable[[TaskHandler], TaskHandler]:
        tags_tuple = tuple(tags or ())

        def decorator(func: TaskHandler) -> TaskHandler:
            if kind in self._tasks:
                raise RegistryError(f"Task '{kind.value}' is already registered")
            self._tasks[kind] = TaskDefinition(
                kind=kind,
                summary=summary,
                params_type=PARAMETER_TYPES[kind],
                handler=func,
                tags=tags_tuple,
            )
            return func

        return decorator

    def get(self, kind: ActionKind) -> TaskDefinition:
        try:
            return self._tasks[kind]
        except KeyError as exc:
            raise RegistryError(f"No handler registered for '{kind.value}'") from exc

    def lookup(self, action: str) -> Optional[TaskDefinition]:
        """Return the definition for a raw action name, or ``None`` if unknown."""

        kind = ActionKind.parse(action)
        if kind is None:
            return None
        return self._tasks.get(kind)

    def __contains__(self, kind: object) -> bool:
        return kind in self._tasks

    def __iter__(self) -> Iterator[TaskDefinition]:
        return iter(self._tasks.values())


registry = TaskRegistry()

__all__ = ["registry", "TaskDefinition", "TaskRegistry", "TaskHandler"]
