"""MariaDB access through mysql-connector-python."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Optional

import mysql.connector
from mysql.connector import Error as MySQLError

from ..errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3306

Connector = Callable[..., Any]


@dataclasses.dataclass(frozen=True)
class ConnectionInfo:
    """Where and as whom to connect."""

    user: str
    password: str
    database: str = ""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def describe(self) -> str:
        target = f"{self.host}:{self.port}"
        if self.database:
            target += f"/{self.database}"
        return f"{self.user}@{target}"

    def connection_string(self) -> str:
        """Connection string in the form oxmysql/mysql-async expect in server.cfg."""

        return (
            f"user={self.user};password={self.password};host={self.host};"
            f"port={self.port};database={self.database}"
        )


class MariaDBClient:
    """Run SQL scripts against a MariaDB server."""

    def __init__(self, connector: Optional[Connector] = None) -> None:
        self._connect = connector or mysql.connector.connect

    def exec_script(
        self,
        info: ConnectionInfo,
        script: str,
        *,
        timeout: float | None = None,
    ) -> int:
        """Execute every statement in ``script`` and commit; return the statement count."""

        connection = self._open(info, timeout=timeout)
        try:
            cursor = connection.cursor()
            try:
                cursor.execute(script)
                statements = 0
                for _statement, _rows in cursor.fetchsets():
                    statements += 1
            finally:
                cursor.close()
            connection.commit()
        except MySQLError as exc:
            raise ProviderError(f"SQL execution on {info.describe()} failed: {exc}") from exc
        finally:
            connection.close()
        logger.debug("Executed %d statement(s) on %s", statements, info.describe())
        return statements

    def ping(self, info: ConnectionInfo, *, timeout: float | None = None) -> bool:
        """Return ``True`` when ``info`` can log in (and select its database)."""

        try:
            connection = self._open(info, timeout=timeout)
        except ProviderError:
            return False
        connection.close()
        return True

    def _open(self, info: ConnectionInfo, *, timeout: float | None) -> Any:
        options: dict[str, Any] = {
            "host": info.host,
            "port": info.port,
            "user": info.user,
            "password": info.password,
            "charset": "utf8mb4",
            "collation": "utf8mb4_general_ci",
        }
        if info.database:
            options["database"] = info.database
        if timeout is not None:
            options["connection_timeout"] = max(1, int(timeout))
            options["read_timeout"] = max(1, int(timeout))
        try:
            return self._connect(**options)
        except MySQLError as exc:
            raise ProviderError(f"Could not connect to {info.describe()}: {exc}") from exc


__all__ = ["ConnectionInfo", "DEFAULT_HOST", "DEFAULT_PORT", "MariaDBClient"]
