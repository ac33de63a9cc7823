"""Configuration for the component register."""

from dataclasses import dataclass, fields
from typing import Any, Mapping

__all__ = ["RegisterConfig"]


@dataclass(frozen=True)
class RegisterConfig:
    """Settings read by :class:`~componentry.register.Register`.

    Attributes:
        timeout_ms: Watchdog duration bounding discovery and run. ``0`` disables it.
        trace: Whether diagnostic messages are logged at all.
        keep_messages: Number of recent messages kept in memory for inspection.
        raise_errors: Re-raise exceptions thrown by components instead of only
            logging them. Useful while developing components.
    """

    timeout_ms: int = 0
    trace: bool = True
    keep_messages: int = 50
    raise_errors: bool = False

    def __post_init__(self):
        if self.timeout_ms < 0:
            raise ValueError(f"timeout_ms must not be negative, got {self.timeout_ms}")
        if self.keep_messages < 0:
            raise ValueError(
                f"keep_messages must not be negative, got {self.keep_messages}"
            )

    @staticmethod
    def from_mapping(settings: Mapping[str, Any]) -> "RegisterConfig":
        """Build a config from a plain mapping, ignoring keys it does not know.

        Example:
            >>> RegisterConfig.from_mapping({"timeout_ms": 2000, "colour": "red"})
            RegisterConfig(timeout_ms=2000, trace=True, keep_messages=50, raise_errors=False)
        """
        known = {field.name for field in fields(RegisterConfig)}
        return RegisterConfig(**{k: v for k, v in settings.items() if k in known})
