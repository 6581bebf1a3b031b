"""Recipe action handlers and the registry that maps actions to them."""

from .registry import registry, TaskDefinition, TaskHandler, TaskRegistry

# Handlers register themselves on the shared registry when the catalog loads.
from . import catalog  # noqa: F401

__all__ = ["catalog", "registry", "TaskDefinition", "TaskHandler", "TaskRegistry"]
