"""Reporting structures for recipe runs."""

from __future__ import annotations

import dataclasses
import enum
from typing import List, Optional


class TaskOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    PLANNED = "planned"
    UNKNOWN_ACTION = "unknown-action"
    FAILED = "failed"


class RunStatus(str, enum.Enum):
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed-with-warnings"
    COMPLETED_WITH_ERRORS = "completed-with-errors"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def successful(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.COMPLETED_WITH_WARNINGS)


@dataclasses.dataclass(slots=True)
class TaskResult:
    index: int
    action: str
    outcome: TaskOutcome
    message: str = ""
    fatal: bool = False

    def as_dict(self) -> dict:
        payload = {
            "index": self.index,
            "action": self.action,
            "outcome": self.outcome.value,
            "message": self.message,
        }
        if self.fatal:
            payload["fatal"] = True
        return payload


@dataclasses.dataclass(slots=True)
class ExecutionReport:
    total_tasks: int
    dry_run: bool = False
    tasks: List[TaskResult] = dataclasses.field(default_factory=list)
    status: RunStatus = RunStatus.COMPLETED
    failed_index: Optional[int] = None

    def add(self, result: TaskResult) -> None:
        self.tasks.append(result)

    @property
    def warnings(self) -> List[TaskResult]:
        return [task for task in self.tasks if task.outcome is TaskOutcome.UNKNOWN_ACTION]

    @property
    def errors(self) -> List[TaskResult]:
        return [task for task in self.tasks if task.outcome is TaskOutcome.FAILED]

    @property
    def executed_indexes(self) -> List[int]:
        return [task.index for task in self.tasks]

    def finish(self) -> RunStatus:
        """Derive the overall status once every task has been processed."""

        if self.errors:
            self.status = RunStatus.COMPLETED_WITH_ERRORS
        elif self.warnings:
            self.status = RunStatus.COMPLETED_WITH_WARNINGS
        else:
            self.status = RunStatus.COMPLETED
        return self.status

    def abort(self, index: int) -> None:
        self.status = RunStatus.FAILED
        self.failed_index = index

    def cancel(self) -> None:
        self.status = RunStatus.CANCELLED

    def as_dict(self) -> dict:
        return {
            "status": self.status.value,
            "dry_run": self.dry_run,
            "total_tasks": self.total_tasks,
            "failed_index": self.failed_index,
            "tasks": [task.as_dict() for task in self.tasks],
        }
