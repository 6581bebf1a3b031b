"""MariaDB database and user provisioning for a new server."""

from __future__ import annotations

import base64
import dataclasses
import logging
import re
import secrets
from typing import Callable, Optional

from .errors import ProviderError, ProvisioningError
from .providers.database import DEFAULT_HOST, DEFAULT_PORT, ConnectionInfo, MariaDBClient

logger = logging.getLogger(__name__)

ROOT_USER = "root"
PasswordSource = Callable[[int], str]

_IDENTIFIER = re.compile(r"^[A-Za-z0-9_]{1,64}$")


def generate_password(length_bytes: int = 16) -> str:
    """Random password, base64 encoded like ``openssl rand -base64 16``."""

    if length_bytes <= 0:
        raise ValueError("Password length must be greater than zero")
    return base64.b64encode(secrets.token_bytes(length_bytes)).decode("ascii")


@dataclasses.dataclass(frozen=True)
class DatabaseCredentials:
    name: str
    user: str
    password: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def connection_info(self) -> ConnectionInfo:
        return ConnectionInfo(
            user=self.user,
            password=self.password,
            database=self.name,
            host=self.host,
            port=self.port,
        )


class DatabaseProvisioner:
    """Create the server database and its dedicated account.

    Root authentication is attempted at most ``max_attempts`` times; each
    attempt asks ``password_source`` for a password.
    """

    def __init__(
        self,
        client: Optional[MariaDBClient] = None,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        max_attempts: int = 3,
        timeout: float | None = None,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be greater than zero")
        self._client = client or MariaDBClient()
        self._host = host
        self._port = port
        self._max_attempts = max_attempts
        self._timeout = timeout

    def authenticate_root(self, password_source: PasswordSource) -> ConnectionInfo:
        for attempt in range(1, self._max_attempts + 1):
            info = ConnectionInfo(
                user=ROOT_USER,
                password=password_source(attempt),
                host=self._host,
                port=self._port,
            )
            if self._client.ping(info, timeout=self._timeout):
                logger.info("Authenticated with MariaDB as %s", ROOT_USER)
                return info
            logger.warning(
                "MariaDB root authentication failed (attempt %d of %d)",
                attempt,
                self._max_attempts,
            )
        raise ProvisioningError(
            f"Could not authenticate as {ROOT_USER} after {self._max_attempts} attempt(s)"
        )

    def provision(
        self,
        root: ConnectionInfo,
        *,
        name: str,
        user: str,
        password: Optional[str] = None,
    ) -> DatabaseCredentials:
        """Create ``name`` and ``user`` (idempotently) and grant the user full access."""

        for label, value in (("database name", name), ("database user", user)):
            if not _IDENTIFIER.match(value):
                raise ProvisioningError(f"Invalid {label} '{value}'")

        credentials = DatabaseCredentials(
            name=name,
            user=user,
            password=password or generate_password(),
            host=self._host,
            port=self._port,
        )
        secret = _quote(credentials.password)
        script = (
            f"CREATE DATABASE IF NOT EXISTS `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci;\n"
            f"CREATE USER IF NOT EXISTS '{user}'@'localhost' IDENTIFIED BY {secret};\n"
            f"ALTER USER '{user}'@'localhost' IDENTIFIED BY {secret};\n"
            f"GRANT ALL PRIVILEGES ON `{name}`.* TO '{user}'@'localhost';\n"
            "FLUSH PRIVILEGES;\n"
        )
        try:
            self._client.exec_script(root, script, timeout=self._timeout)
        except ProviderError as exc:
            raise ProvisioningError(f"Failed to create database '{name}': {exc}") from exc
        logger.info("Created database %s for user %s", name, user)
        return credentials

    def verify(self, credentials: DatabaseCredentials) -> None:
        if not self._client.ping(credentials.connection_info(), timeout=self._timeout):
            raise ProvisioningError(
                f"Unable to access database '{credentials.name}' as '{credentials.user}'"
            )


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


__all__ = [
    "DatabaseCredentials",
    "DatabaseProvisioner",
    "PasswordSource",
    "ROOT_USER",
    "generate_password",
]
