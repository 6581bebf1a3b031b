"""Execution context objects passed to tasks."""

from __future__ import annotations

import dataclasses
import os
import pathlib
from typing import Optional

from ..models import Task
from ..providers import ConnectionInfo, Providers
from ..providers.database import DEFAULT_HOST, DEFAULT_PORT
from ..variables import VariableContext

DB_USER_VARIABLE = "dbUsername"
DB_PASSWORD_VARIABLE = "dbPassword"
DB_NAME_VARIABLE = "dbName"
DB_HOST_VARIABLE = "dbHost"
DB_PORT_VARIABLE = "dbPort"


@dataclasses.dataclass
class ExecutionContext:
    """Runtime information handed to task handlers."""

    task: Task
    variables: VariableContext
    providers: Providers
    base_dir: pathlib.Path
    timeout: Optional[float] = None

    def path(self, value: str) -> pathlib.Path:
        """Resolve a task path against the base directory."""

        candidate = pathlib.Path(os.path.expanduser(value))
        if candidate.is_absolute():
            return candidate
        return self.base_dir / candidate

    def connection_info(self) -> ConnectionInfo:
        port_raw = self.variables.get(DB_PORT_VARIABLE)
        try:
            port = int(port_raw) if port_raw else DEFAULT_PORT
        except ValueError:
            port = DEFAULT_PORT
        return ConnectionInfo(
            user=self.variables.get(DB_USER_VARIABLE),
            password=self.variables.get(DB_PASSWORD_VARIABLE),
            database=self.variables.get(DB_NAME_VARIABLE),
            host=self.variables.get(DB_HOST_VARIABLE) or DEFAULT_HOST,
            port=port,
        )

