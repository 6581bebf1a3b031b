"""Recipe document loading."""

from __future__ import annotations

import logging
import pathlib
import types
from typing import Dict, List, Mapping

import httpx
import yaml

from .errors import MalformedRecipe, ProviderError
from .models import Recipe, Task
from .providers.downloads import REQUEST_ERRORS

logger = logging.getLogger(__name__)

_METADATA_KEYS = ("name", "author", "description", "version")


def load_recipe(path: pathlib.Path) -> Recipe:
    """Load a recipe from a YAML file on disk."""

    if not path.exists():
        raise MalformedRecipe(f"Recipe file does not exist: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise MalformedRecipe(f"Recipe file could not be read: {exc}") from exc
    return recipe_from_text(text, source=str(path))


def recipe_from_text(text: str, *, source: str = "<string>") -> Recipe:
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise MalformedRecipe(f"Recipe {source} is not valid YAML: {exc}") from exc
    return recipe_from_mapping(payload, source=source)


def recipe_from_mapping(payload: object, *, source: str = "<mapping>") -> Recipe:
    """Decode an already parsed document into a :class:`Recipe`.

    Only the document structure is checked here. Whether each task carries
    the parameters its action needs is left to the handler that uses them.
    """

    if not isinstance(payload, Mapping):
        raise MalformedRecipe(f"Recipe {source} must define a mapping at the top level")

    raw_tasks = payload.get("tasks")
    if not isinstance(raw_tasks, list):
        raise MalformedRecipe(f"Recipe {source} must define a 'tasks' list")

    tasks: List[Task] = []
    for position, item in enumerate(raw_tasks):
        if not isinstance(item, Mapping):
            raise MalformedRecipe(f"Recipe {source} task {position} must be a mapping")
        action = item.get("action")
        if action is None or not str(action).strip():
            raise MalformedRecipe(f"Recipe {source} task {position} is missing an 'action'")
        parameters: Dict[str, str] = {
            str(key): _as_text(value) for key, value in item.items() if key != "action"
        }
        tasks.append(
            Task(
                action=str(action).strip(),
                parameters=types.MappingProxyType(parameters),
                position=position,
            )
        )

    metadata = {key: _as_text(payload.get(key)) for key in _METADATA_KEYS}
    logger.debug("Loaded recipe %s with %d tasks", source, len(tasks))
    return Recipe(tasks=tuple(tasks), **metadata)


def fetch_recipe(url: str, client: httpx.Client | None = None, *, timeout: float | None = 30.0) -> Recipe:
    """Download a recipe document over HTTP and decode it."""

    owns_client = client is None
    http = client or httpx.Client(follow_redirects=True, timeout=timeout)
    try:
        response = http.get(url)
        response.raise_for_status()
    except REQUEST_ERRORS as exc:
        raise ProviderError(f"Failed to fetch recipe from {url}: {exc!s}") from exc
    finally:
        if owns_client:
            http.close()
    return recipe_from_text(response.text, source=url)


def _as_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


__all__ = ["fetch_recipe", "load_recipe", "recipe_from_mapping", "recipe_from_text"]
