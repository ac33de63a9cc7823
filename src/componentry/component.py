"""The component contract and the dependency graph node that carries it.

A :class:`Component` is pure behaviour: it declares its dependencies in
:meth:`Component.init`, does its work in :meth:`Component.run` and may expose
an API object to other components. Everything the scheduler needs to know
about it (what it waits for, who waits for it, where it is in its lifecycle)
lives on the :class:`ComponentNode` the register wraps around it. Components
only ever touch their own node; other nodes are reached through the
``require_*`` calls.

Note that circular dependencies are possible. When that happens none of the
components involved is ever run.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Hashable, Optional

from componentry.attachment import AttachmentPoint
from componentry.errors import ShutdownConflictError

if TYPE_CHECKING:
    from componentry.register import Register

__all__ = ["Component", "ComponentNode", "ComponentState"]


class ComponentState(Enum):
    CREATED = "created"
    INITIALIZED = "initialized"
    WAITING = "waiting"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ComponentState.COMPLETED, ComponentState.FAILED)


class Component(ABC):
    """Base for concrete component variants built by a factory.

    Example:
        >>> class Greeting(Component):
        ...     def init(self, node):
        ...         node.require_value("Name")
        ...
        ...     def run(self, node):
        ...         print("Hello", node.point.get_value("Name"))
        ...         node.complete()
    """

    @abstractmethod
    def init(self, node: "ComponentNode") -> None:
        """Declare dependencies through ``node``.

        Called once, after every component found by the same discovery pass
        has been created, so lookups by id or type see all of them.
        """

    @abstractmethod
    def run(self, node: "ComponentNode") -> None:
        """Do the work of the component.

        Called once everything this component depends on has completed. It
        must eventually call ``node.complete()`` or ``node.fail()``, also when
        the work finishes asynchronously.
        """

    def api(self) -> Any:
        """Capability object exposed to other components, if any."""
        return None

    def shutdown(self, node: "ComponentNode") -> None:
        """Prepare the component for removal from the register.

        The default refuses while other components depend on this one.
        Override to unbind resources, remove dependents or cascade.
        """
        if node.depended_on:
            raise ShutdownConflictError(
                f"Cannot shut down {node}: "
                f"{', '.join(str(d) for d in node.depended_on)} depend on it"
            )


class ComponentNode:
    """A component's place in the register's dependency graph."""

    def __init__(self, component: Component, point: AttachmentPoint, register: "Register"):
        self.component = component
        self.point = point
        self.register = register
        self.state = ComponentState.CREATED
        self.depends_on: list[ComponentNode] = []
        self.depended_on: list[ComponentNode] = []
        self.required_values: list[str] = []
        self.required_assets: list[str] = []
        self._waiting_notified = False

    @property
    def identity(self) -> Hashable:
        return self.point.identity

    @property
    def declared_id(self) -> Optional[str]:
        return self.point.declared_id or None

    @property
    def declared_type(self) -> str:
        return self.point.declared_type or ""

    @property
    def terminal(self) -> bool:
        return self.state.terminal

    def require_component_instance(self, target: Optional["ComponentNode"]):
        """Wait for ``target`` to complete before running.

        Already terminal targets are treated as satisfied and ignored.
        """
        if target is None or target.terminal or target is self:
            return
        if not self._declaring("component " + str(target)):
            return
        if target not in self.depends_on:
            self.depends_on.append(target)
        target._register_wait_intent(self)

    def require_component_by_id(self, component_id: str):
        target = self.register.get_component_by_id(component_id)
        if target is None:
            self.register.log.trace(
                f"{self}: Unable to depend on component #{component_id}. No such id."
            )
            return
        self.require_component_instance(target)

    def require_component_by_type(self, component_type: str):
        target = self.register.get_component_by_type(component_type)
        if target is None:
            self.register.log.trace(
                f"{self}: Unable to depend on component type {component_type}. No such type."
            )
            return
        self.require_component_instance(target)

    def require_value(self, name: str):
        if self._declaring("value " + name):
            self.required_values.append(name)

    def require_asset(self, name: str):
        if self._declaring("asset " + name):
            self.required_assets.append(name)

    def dependency_count(self) -> int:
        """Number of unresolved dependencies.

        Component dependencies take precedence: missing values and assets are
        only counted once every component this one depends on has completed.
        """
        if self.depends_on:
            return len(self.depends_on)
        return len(self._missing_assets()) + len(self._missing_values())

    def unresolved_dependencies(self) -> list[str]:
        """Human readable version of :meth:`dependency_count`."""
        if self.depends_on:
            return [f"Component:{node.declared_id or '*'}@{node.declared_type}" for node in self.depends_on]
        return [f"Asset:{name}" for name in self._missing_assets()] + [
            f"Value:{name}" for name in self._missing_values()
        ]

    def api_of(self, component_id: str) -> Any:
        return self.register.api_of(component_id)

    def api_of_type(self, component_type: str) -> Any:
        return self.register.api_of_type(component_type)

    def complete(self):
        """Mark the run as successful. Only the first terminal call counts."""
        if self.terminal:
            return
        self.state = ComponentState.COMPLETED
        self.register.on_component_ready(self)

    def fail(self):
        """Mark the run as unsuccessful.

        Components waiting on this one are never released.
        """
        if self.terminal:
            return
        self.state = ComponentState.FAILED
        self.register.on_component_failed(self)

    def notify_waiting(self):
        """Release every component waiting on this one.

        ``depended_on`` is kept afterwards; :meth:`Component.shutdown` uses it.
        """
        if self._waiting_notified:
            return
        self._waiting_notified = True
        for dependant in self.depended_on:
            dependant._dependency_resolved(self)

    def shutdown(self):
        self.component.shutdown(self)

    def _register_wait_intent(self, waiting: "ComponentNode"):
        if waiting not in self.depended_on:
            self.depended_on.append(waiting)

    def _dependency_resolved(self, resolved: "ComponentNode"):
        if resolved in self.depends_on:
            self.depends_on.remove(resolved)

    def _declaring(self, what: str) -> bool:
        if self.state is ComponentState.CREATED:
            return True
        self.register.log.warning(
            f"{self}: Ignored dependency on {what} declared outside init()."
        )
        return False

    def _missing_assets(self) -> list[str]:
        return [name for name in self.required_assets if self.point.get_asset(name) is None]

    def _missing_values(self) -> list[str]:
        return [name for name in self.required_values if self.point.get_value(name) is None]

    def __str__(self):
        if self.declared_id:
            return f"{self.declared_id}@{self.declared_type}"
        return self.declared_type

    def __repr__(self):
        return f"<ComponentNode {self} {self.state.value}>"
