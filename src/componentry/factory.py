"""Factories turning attachment points into components."""

import inspect
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Optional

from componentry.attachment import AttachmentPoint
from componentry.component import Component
from componentry.errors import ComponentError, UnknownComponentTypeError
from componentry.log import ComponentLog
from componentry.tasks import Dispatcher

if TYPE_CHECKING:
    from componentry.register import Register

__all__ = ["ComponentFactory", "TypeTagFactory", "inferred_tag"]


class ComponentFactory(ABC):
    """Creates component instances for the register.

    Calls are made on a deferred tick, so errors cannot propagate back to the
    ``discover`` call that caused them. Instead, every call must end, now or
    later, in exactly one of ``register.on_created(component, correlation_id)``
    or ``register.on_creation_failed(correlation_id)``.
    """

    @abstractmethod
    def create_component(
        self, register: "Register", point: AttachmentPoint, correlation_id: str
    ) -> None:
        pass


ComponentConstructor = Callable[[AttachmentPoint], Component]


def inferred_tag(target: Any) -> str:
    """Derive a type tag from a class or function name, removing any 'make_' prefix.

    Example:
        >>> inferred_tag(SampleA)        # Returns "SampleA"
        >>> inferred_tag(make_sample_b)  # Returns "sample_b"
    """
    if inspect.isclass(target):
        return target.__name__

    if target.__name__.startswith("make_"):
        return target.__name__[5:]
    else:
        return target.__name__


class TypeTagFactory(ComponentFactory):
    """Factory dispatching on the attachment point's declared type tag.

    Constructors are registered per tag and receive the attachment point.
    Classes taking no arguments are accepted too.

    Example:
        >>> factory = TypeTagFactory()
        >>>
        >>> @factory.provides()
        ... class SampleB(Component):
        ...     def init(self, node):
        ...         node.require_value("Value1")
        ...
        ...     def run(self, node):
        ...         node.complete()
    """

    def __init__(
        self,
        dispatcher: Optional[Dispatcher] = None,
        log: Optional[ComponentLog] = None,
    ):
        self._constructors: dict[str, ComponentConstructor] = {}
        self._dispatcher = dispatcher
        self._log = log or ComponentLog()

    @property
    def tags(self) -> list[str]:
        return list(self._constructors)

    def register(self, tag: str, constructor: ComponentConstructor):
        """Register a constructor explicitly.

        Raises:
            ComponentError: If the tag already has a constructor.
        """
        if tag in self._constructors:
            raise ComponentError(f"Duplicate provider for component type '{tag}'")
        self._constructors[tag] = constructor

    def provides(self, tag: Optional[str] = None) -> Callable:
        """Decorator registering a class or function as the constructor for a tag.

        Args:
            tag: The declared type tag handled; defaults to the class name, or
                the function name with any 'make_' prefix removed.
        """

        def decorator(obj):
            if not (inspect.isclass(obj) or inspect.isfunction(obj)):
                raise ComponentError(f"{obj} is not a class or function")
            self.register(tag or inferred_tag(obj), _accepting_point(obj))
            return obj

        return decorator

    def build(self, point: AttachmentPoint) -> Component:
        """Construct a component synchronously.

        Raises:
            UnknownComponentTypeError: If nothing provides the point's type tag.
        """
        constructor = self._constructors.get(point.declared_type)
        if constructor is None:
            raise UnknownComponentTypeError(
                f"No provider for component type '{point.declared_type}'"
            )
        return constructor(point)

    def create_component(
        self, register: "Register", point: AttachmentPoint, correlation_id: str
    ) -> None:
        if self._dispatcher is None:
            self._create(register, point, correlation_id)
        else:
            self._dispatcher.defer(self._create, register, point, correlation_id)

    def _create(self, register: "Register", point: AttachmentPoint, correlation_id: str):
        try:
            component = self.build(point)
        except Exception as e:
            self._log.exception(e)
            register.on_creation_failed(correlation_id)
            return
        register.on_created(component, correlation_id)


def _accepting_point(obj: Callable) -> ComponentConstructor:
    """Adapt constructors that can be called without arguments to take the point."""
    try:
        parameters = inspect.signature(obj).parameters.values()
    except (TypeError, ValueError):
        parameters = []
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    if any(p.default is p.empty and p.kind in positional for p in parameters):
        return obj
    return lambda _point: obj()
