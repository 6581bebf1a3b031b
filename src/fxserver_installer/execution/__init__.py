"""Execution context and reporting for recipe runs."""

from .context import ExecutionContext
from .report import ExecutionReport, RunStatus, TaskOutcome, TaskResult

__all__ = ["ExecutionContext", "ExecutionReport", "RunStatus", "TaskOutcome", "TaskResult"]
