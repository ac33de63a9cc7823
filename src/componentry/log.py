"""Injected logging collaborator for the register and its helpers."""

import logging
from collections import deque
from typing import Optional

from componentry.config import RegisterConfig

__all__ = ["ComponentLog"]


class ComponentLog:
    """Thin wrapper around a :class:`logging.Logger`.

    Messages are only emitted while ``enabled`` is set. The last ``keep``
    messages are retained in :attr:`recent` so that tests and diagnostics can
    inspect what the register reported without configuring handlers.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        enabled: bool = True,
        keep: int = 50,
        raise_errors: bool = False,
    ):
        self.logger = logger or logging.getLogger("componentry")
        self.enabled = enabled
        self.raise_errors = raise_errors
        self._recent: deque[str] = deque(maxlen=keep)

    @staticmethod
    def from_config(
        config: RegisterConfig, logger: Optional[logging.Logger] = None
    ) -> "ComponentLog":
        return ComponentLog(
            logger, config.trace, config.keep_messages, config.raise_errors
        )

    @property
    def recent(self) -> list[str]:
        return list(self._recent)

    def trace(self, message: str, level: int = logging.DEBUG):
        if not self.enabled:
            return
        self._recent.append(message)
        self.logger.log(level, message)

    def warning(self, message: str):
        self.trace(message, logging.WARNING)

    def exception(self, error: BaseException):
        """Record an exception that nothing else is going to handle.

        Re-raises it when ``raise_errors`` is set.
        """
        if self.enabled:
            self._recent.append(repr(error))
            self.logger.error("%r", error, exc_info=error)
        if self.raise_errors:
            raise error
