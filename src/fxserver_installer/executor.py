"""Sequential interpreter for recipe tasks."""

from __future__ import annotations

import enum
import logging
import pathlib
import threading
from typing import Dict, Optional

from .errors import ExecutorError, HandlerFailure, MalformedRecipe, UnknownAction
from .execution.context import ExecutionContext
from .execution.report import ExecutionReport, RunStatus, TaskOutcome, TaskResult
from .logging_utils import log_event
from .models import Recipe, Task
from .providers import Providers
from .recipe import load_recipe
from .tasks import TaskRegistry, registry as default_registry
from .variables import VariableContext

logger = logging.getLogger(__name__)


class ExecutorState(str, enum.Enum):
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RecipeExecutor:
    """Run the tasks of a recipe one at a time, in document order.

    Unknown actions are recorded as warnings and skipped. A failing handler
    aborts the run unless ``continue_on_error`` is set, in which case the
    failure is recorded and the next task runs. Nothing is retried.

    Cancellation is checked between tasks, never while a handler runs, and
    stays in effect for later runs once the event is set.
    ``timeout`` is forwarded to every collaborator call that may block.
    Without explicit ``providers`` each run builds its own bundle and closes
    it when the run ends.

    An executor instance is not thread safe: drive it from one thread only.
    """

    def __init__(
        self,
        *,
        providers: Optional[Providers] = None,
        registry: Optional[TaskRegistry] = None,
        base_dir: Optional[pathlib.Path] = None,
        continue_on_error: bool = False,
        timeout: Optional[float] = None,
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._providers = providers
        self._registry = registry or default_registry
        self._base_dir = base_dir or pathlib.Path.cwd()
        self._continue_on_error = continue_on_error
        self._timeout = timeout
        self._dry_run = dry_run
        self._cancel_event = cancel_event or threading.Event()
        self._state = ExecutorState.READY

    @property
    def state(self) -> ExecutorState:
        return self._state

    @property
    def continue_on_error(self) -> bool:
        return self._continue_on_error

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def cancel(self) -> None:
        """Ask the running recipe to stop before its next task."""

        self._cancel_event.set()

    def run_file(self, path: pathlib.Path, variables: VariableContext) -> ExecutionReport:
        """Load ``path`` and run it; load errors abort before any task runs."""

        try:
            recipe = load_recipe(path)
        except MalformedRecipe:
            self._state = ExecutorState.FAILED
            raise
        return self.run(recipe, variables)

    def run(self, recipe: Recipe, variables: VariableContext) -> ExecutionReport:
        if self._state is ExecutorState.RUNNING:
            raise ExecutorError("Executor is already running a recipe")
        self._state = ExecutorState.RUNNING

        report = ExecutionReport(total_tasks=len(recipe), dry_run=self._dry_run)
        log_event(
            logger,
            logging.INFO,
            "recipe.start",
            recipe=recipe.name or None,
            tasks=len(recipe),
            dry_run=self._dry_run or None,
        )

        owns_providers = self._providers is None
        providers = Providers() if owns_providers else self._providers
        try:
            for task in recipe:
                if self._cancel_event.is_set():
                    log_event(logger, logging.WARNING, "recipe.cancelled", index=task.position)
                    report.cancel()
                    break
                result = self._run_task(task, variables, providers)
                report.add(result)
                if result.fatal:
                    report.abort(task.position)
                    break
            else:
                report.finish()
        except BaseException:
            self._state = ExecutorState.FAILED
            raise
        finally:
            if owns_providers:
                providers.close()

        if report.status in (RunStatus.FAILED, RunStatus.CANCELLED):
            self._state = ExecutorState.FAILED
        else:
            self._state = ExecutorState.COMPLETED
        log_event(logger, logging.INFO, "recipe.finish", status=report.status.value)
        return report

    def _run_task(self, task: Task, variables: VariableContext, providers: Providers) -> TaskResult:
        definition = self._registry.lookup(task.action)
        if definition is None:
            warning = UnknownAction(task.action, task.position)
            log_event(logger, logging.WARNING, "task.unknown_action", index=task.position, action=task.action)
            return TaskResult(task.position, task.action, TaskOutcome.UNKNOWN_ACTION, str(warning))

        resolved: Dict[str, str] = {
            name: variables.resolve(value) for name, value in task.parameters.items()
        }
        context = ExecutionContext(
            task=task,
            variables=variables,
            providers=providers,
            base_dir=self._base_dir,
            timeout=self._timeout,
        )
        log_event(logger, logging.INFO, "task.start", index=task.position, action=task.action)

        try:
            params = definition.parameters(resolved, position=task.position)
            if self._dry_run:
                return TaskResult(
                    task.position,
                    task.action,
                    TaskOutcome.PLANNED,
                    f"Would run: {definition.summary}",
                )
            message = definition.run(params, context)
        except HandlerFailure as exc:
            fatal = not self._continue_on_error
            log_event(
                logger,
                logging.ERROR,
                "task.failed",
                index=task.position,
                action=task.action,
                reason=exc.reason,
                fatal=fatal,
            )
            return TaskResult(task.position, task.action, TaskOutcome.FAILED, exc.reason, fatal=fatal)

        log_event(logger, logging.DEBUG, "task.done", index=task.position, action=task.action)
        return TaskResult(task.position, task.action, TaskOutcome.SUCCEEDED, message)


__all__ = ["ExecutorState", "RecipeExecutor"]
