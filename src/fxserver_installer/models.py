"""Domain models used by the recipe interpreter."""

from __future__ import annotations

import dataclasses
import enum
from typing import Dict, Mapping, Optional, Tuple, Type, TypeVar

from .errors import MissingParameter

ALL_VARIABLES_MODE = "all_vars"


class ActionKind(str, enum.Enum):
    """Actions a recipe task can request."""

    DOWNLOAD_SOURCE_TREE = "download_source_tree"
    DOWNLOAD_FILE = "download_file"
    UNZIP = "unzip"
    MOVE_PATH = "move_path"
    QUERY_DATABASE = "query_database"
    REPLACE_STRING = "replace_string"
    REMOVE_PATH = "remove_path"

    @classmethod
    def parse(cls, action: str) -> Optional["ActionKind"]:
        """Return the kind for ``action`` or ``None`` if it is not recognised."""

        name = ACTION_ALIASES.get(action, action)
        try:
            return cls(name)
        except ValueError:
            return None


# txAdmin recipes call the source tree download ``download_github``.
ACTION_ALIASES: Dict[str, str] = {
    "download_github": ActionKind.DOWNLOAD_SOURCE_TREE.value,
}


@dataclasses.dataclass(frozen=True)
class Task:
    """One declarative recipe step."""

    action: str
    parameters: Mapping[str, str]
    position: int

    @property
    def kind(self) -> Optional[ActionKind]:
        return ActionKind.parse(self.action)

    def summary(self) -> str:
        details = " ".join(f"{key}={value}" for key, value in self.parameters.items())
        if details:
            return f"#{self.position} {self.action} {details}"
        return f"#{self.position} {self.action}"


@dataclasses.dataclass(frozen=True)
class Recipe:
    """An ordered sequence of tasks plus the recipe's descriptive metadata."""

    tasks: Tuple[Task, ...]
    name: str = ""
    author: str = ""
    description: str = ""
    version: str = ""

    def __len__(self) -> int:
        return len(self.tasks)

    def __iter__(self):
        return iter(self.tasks)

    def unknown_tasks(self) -> Tuple[Task, ...]:
        return tuple(task for task in self.tasks if task.kind is None)


@dataclasses.dataclass(frozen=True)
class DownloadSourceTreeParams:
    src: str
    dest: str
    ref: str = ""
    subpath: str = ""


@dataclasses.dataclass(frozen=True)
class DownloadFileParams:
    url: str
    path: str


@dataclasses.dataclass(frozen=True)
class UnzipParams:
    src: str
    dest: str


@dataclasses.dataclass(frozen=True)
class MovePathParams:
    src: str
    dest: str


@dataclasses.dataclass(frozen=True)
class QueryDatabaseParams:
    file: str


@dataclasses.dataclass(frozen=True)
class ReplaceStringParams:
    file: str
    search: str = ""
    replace: str = ""
    mode: str = ""

    @property
    def all_variables(self) -> bool:
        return self.mode == ALL_VARIABLES_MODE

    @property
    def literal(self) -> bool:
        return bool(self.search) and bool(self.replace)


@dataclasses.dataclass(frozen=True)
class RemovePathParams:
    path: str


ParamsT = TypeVar("ParamsT")


def build_params(
    params_type: Type[ParamsT],
    values: Mapping[str, str],
    *,
    action: str,
    position: int | None = None,
) -> ParamsT:
    """Build a typed parameter object from resolved values.

    Fields without a default are required and must be non-empty. Keys that
    the parameter type does not declare are ignored.
    """

    kwargs: Dict[str, str] = {}
    for field in dataclasses.fields(params_type):  # type: ignore[arg-type]
        value = values.get(field.name, "")
        required = field.default is dataclasses.MISSING
        if required and not value:
            raise MissingParameter(action, field.name, position)
        if value or required:
            kwargs[field.name] = value
    return params_type(**kwargs)


PARAMETER_TYPES: Dict[ActionKind, type] = {
    ActionKind.DOWNLOAD_SOURCE_TREE: DownloadSourceTreeParams,
    ActionKind.DOWNLOAD_FILE: DownloadFileParams,
    ActionKind.UNZIP: UnzipParams,
    ActionKind.MOVE_PATH: MovePathParams,
    ActionKind.QUERY_DATABASE: QueryDatabaseParams,
    ActionKind.REPLACE_STRING: ReplaceStringParams,
    ActionKind.REMOVE_PATH: RemovePathParams,
}


__all__ = [
    "ACTION_ALIASES",
    "ALL_VARIABLES_MODE",
    "ActionKind",
    "DownloadFileParams",
    "DownloadSourceTreeParams",
    "MovePathParams",
    "PARAMETER_TYPES",
    "QueryDatabaseParams",
    "Recipe",
    "RemovePathParams",
    "ReplaceStringParams",
    "Task",
    "UnzipParams",
    "build_params",
]
