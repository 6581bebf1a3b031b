"""Logging helpers shared across the installer."""

from __future__ import annotations

import logging
import sys
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(verbosity: int = 0) -> None:
    """Send installer logs to stderr; ``verbosity`` > 0 enables debug output."""

    level = logging.DEBUG if verbosity > 0 else logging.INFO
    root = logging.getLogger("fxserver_installer")
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, "_fxserver_installer", False):
            root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._fxserver_installer = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc_info: Any | None = None,
    **fields: Any,
) -> None:
    """Emit a log event with structured context fields."""
    payload: dict[str, Any] = {"event": event}
    payload.update({key: value for key, value in fields.items() if value is not None})
    details = " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)
    message = f"{event} {details}" if details else event
    logger.log(level, message, extra={"fields": payload}, exc_info=exc_info)


__all__ = ["LOG_FORMAT", "configure_logging", "log_event"]
