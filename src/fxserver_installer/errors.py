"""Custom exceptions for the FXServer installer."""

from __future__ import annotations


class InstallerError(RuntimeError):
    """Base class for every error raised by the installer."""


class ConfigurationError(InstallerError):
    """Raised when configuration files or payloads are invalid."""


class MalformedRecipe(ConfigurationError):
    """Raised when a recipe document is structurally invalid."""


class RegistryError(InstallerError):
    """Raised when the task registry encounters an invalid operation."""


class UnknownAction(InstallerError):
    """Raised when a task names an action no handler is registered for."""

    def __init__(self, action: str, position: int) -> None:
        super().__init__(f"Unknown task action '{action}' at task {position}")
        self.action = action
        self.position = position


class HandlerFailure(InstallerError):
    """Raised when a task handler fails while the installer is running."""

    def __init__(self, action: str, reason: str, position: int | None = None) -> None:
        super().__init__(reason)
        self.action = action
        self.reason = reason
        self.position = position

    def __str__(self) -> str:
        if self.position is None:
            return f"{self.action}: {self.reason}"
        return f"{self.action} (task {self.position}): {self.reason}"


class MissingParameter(HandlerFailure):
    """Raised when a handler needs a parameter that is absent after resolution."""

    def __init__(self, action: str, parameter: str, position: int | None = None) -> None:
        super().__init__(action, f"missing required parameter '{parameter}'", position)
        self.parameter = parameter


class ProviderError(InstallerError):
    """Raised when an external collaborator (git, HTTP, archive, database) fails."""


class ExecutorError(InstallerError):
    """Raised when the recipe executor is used incorrectly."""


class ProvisioningError(InstallerError):
    """Raised when the database could not be provisioned."""
