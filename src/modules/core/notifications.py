"""Notification sink for operator and shopper facing messages.

The sink is fire-and-forget: it never raises into the caller and never
changes control flow.  ``LogNotifier`` routes every message to the
``notifications`` structlog logger, where the log pipeline picks it up.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog


class INotifier(Protocol):
    """success / info / warning / error channel."""

    def success(self, message: str, **context: Any) -> None: ...

    def info(self, message: str, **context: Any) -> None: ...

    def warning(self, message: str, **context: Any) -> None: ...

    def error(self, message: str, **context: Any) -> None: ...


class LogNotifier:
    """Notifier backed by structured logging."""

    def __init__(self, logger_name: str = "notifications") -> None:
        self._logger = structlog.get_logger(logger_name)

    def success(self, message: str, **context: Any) -> None:
        self._logger.info("notification", channel="success", message=message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._logger.info("notification", channel="info", message=message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._logger.warning(
            "notification", channel="warning", message=message, **context
        )

    def error(self, message: str, **context: Any) -> None:
        self._logger.error("notification", channel="error", message=message, **context)
