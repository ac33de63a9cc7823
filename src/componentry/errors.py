__all__ = [
    "ComponentError",
    "CreationFailedError",
    "ComponentTimeoutError",
    "ShutdownConflictError",
    "UnknownComponentTypeError",
]


class ComponentError(Exception):
    """Base class for errors raised by the component register."""

    pass


class CreationFailedError(ComponentError):
    """Reported to ready listeners when the factory failed to create a component."""

    pass


class ComponentTimeoutError(ComponentError):
    """Reported when a watchdog or task sequence timeout elapses."""

    pass


class ShutdownConflictError(ComponentError):
    """Raised when removing a component that other components still depend on."""

    pass


class UnknownComponentTypeError(ComponentError):
    """Raised by a factory asked to build a type tag it has no provider for."""

    pass
