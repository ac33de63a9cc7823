"""The component register: discovery, creation, initialisation and run scheduling.

To use the register:

    - Implement a number of :class:`~componentry.component.Component` variants.
    - Provide a :class:`~componentry.factory.ComponentFactory` for them, for
      example a :class:`~componentry.factory.TypeTagFactory`.
    - Create a :class:`Register` and call :meth:`Register.discover`.

Each discovery pass moves through the phases of :class:`Phase`. Creation
requests are dispatched one tick later and fan back in through
:meth:`Register.on_created` / :meth:`Register.on_creation_failed`. When no
request is outstanding every new component is initialised, and then
components are run strictly one at a time, always picking the earliest
discovered component that has no unresolved dependencies. When nothing more
can run, the one-shot ready listeners are told whether the pass succeeded.
"""

import uuid
from enum import Enum
from typing import Any, Callable, Hashable, Iterable, Optional

from componentry.attachment import AttachmentPoint, find_components
from componentry.component import Component, ComponentNode, ComponentState
from componentry.config import RegisterConfig
from componentry.errors import (
    ComponentError,
    ComponentTimeoutError,
    CreationFailedError,
)
from componentry.factory import ComponentFactory
from componentry.log import ComponentLog
from componentry.tasks import DeferredQueue, Dispatcher, Timer

__all__ = ["Phase", "ReadyListener", "Register"]


class Phase(Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    AWAITING_CREATION = "awaiting creation"
    INITIALIZING = "initializing"
    SCHEDULING = "scheduling"
    DRAINED = "drained"


ReadyListener = Callable[[Optional[ComponentError]], Any]
"""Called once per discovery pass, with ``None`` on success or the error."""

Locator = Callable[[Any], Iterable[AttachmentPoint]]


class Register:
    """Holds components and schedules their lifecycle.

    Attributes:
        factory: Creates a component for each discovered attachment point.
        dispatcher: Where deferred creation and run calls are scheduled.
        config: Watchdog and logging settings.
        log: Diagnostics sink shared with the nodes of this register.
    """

    def __init__(
        self,
        factory: ComponentFactory,
        dispatcher: Optional[Dispatcher] = None,
        config: Optional[RegisterConfig] = None,
        log: Optional[ComponentLog] = None,
        locator: Locator = find_components,
    ):
        self.factory = factory
        self.dispatcher = dispatcher or DeferredQueue()
        self.config = config or RegisterConfig()
        self.log = log or ComponentLog.from_config(self.config)
        self._locator = locator

        self._by_identity: dict[Hashable, ComponentNode] = {}
        self._by_id: dict[str, ComponentNode] = {}
        self._pending: dict[str, AttachmentPoint] = {}
        self._run_list: Optional[list[ComponentNode]] = None
        self._running: Optional[ComponentNode] = None
        self._ready_listeners: list[ReadyListener] = []

        self._failed = False
        self._timed_out = False
        self._notified = False

        self._watchdog: Optional[Timer] = None
        self._timeout_ms = 0
        self.phase = Phase.IDLE

        if self.config.timeout_ms:
            self.set_timeout(self.config.timeout_ms)

    @property
    def failed(self) -> bool:
        """Sticky flag: a creation failed or the watchdog fired in this pass."""
        return self._failed

    @property
    def running(self) -> Optional[ComponentNode]:
        return self._running

    @property
    def run_list(self) -> list[ComponentNode]:
        return list(self._run_list or ())

    @property
    def pending_requests(self) -> frozenset[str]:
        return frozenset(self._pending)

    @property
    def components(self) -> list[ComponentNode]:
        return list(self._by_identity.values())

    def discover(self, scope: Any = None):
        """Request a component for every new attachment point under ``scope``.

        Points already known to the register, or already awaiting creation,
        are skipped. Starting a pass while a previous one has not drained is
        not supported.

        A component that never calls ``complete()`` or ``fail()`` keeps the
        register's single run slot. The watchdog reports it but does not
        release the slot, so later passes create and initialise their
        components but run none of them until it finishes.
        """
        if self.phase in (Phase.AWAITING_CREATION, Phase.INITIALIZING, Phase.SCHEDULING):
            self.log.warning(
                f"discover() called while the previous pass is {self.phase.value}; "
                "overlapping discovery passes are not supported."
            )
        self.phase = Phase.DISCOVERING
        self._failed = False
        self._timed_out = False
        self._notified = False
        if self._watchdog is not None:
            self._watchdog.schedule(self._timeout_ms)

        awaiting = {point.identity for point in self._pending.values()}
        for point in self._locator(scope):
            if point.identity in self._by_identity or point.identity in awaiting:
                continue
            awaiting.add(point.identity)
            correlation_id = self._create_correlation_id(point)
            self._pending[correlation_id] = point
            self.dispatcher.defer(
                self.factory.create_component, self, point, correlation_id
            )

        self.phase = Phase.AWAITING_CREATION
        if not self._pending:
            self.dispatcher.defer(self._creation_complete)

    def on_created(self, component: Component, correlation_id: str):
        """Factory callback for a successfully created component."""
        point = self._pending.pop(correlation_id, None)
        if point is None:
            self.log.warning(
                f"Ignoring {component!r} created for unknown request {correlation_id}"
            )
            return
        node = ComponentNode(component, point, self)
        self._by_identity[node.identity] = node
        if node.declared_id:
            self._by_id[node.declared_id] = node
        self._creation_complete()

    def on_creation_failed(self, correlation_id: str):
        """Factory callback for a component that could not be created."""
        if self._pending.pop(correlation_id, None) is None:
            self.log.warning(f"Ignoring failure of unknown request {correlation_id}")
            return
        self._failed = True
        self.log.warning(f"Failed to create component: {correlation_id}")
        self._creation_complete()

    def on_component_ready(self, target: Optional[ComponentNode] = None):
        """Scheduling step: release ``target``'s dependants and run the next component.

        ``target`` is ``None`` when the step is triggered internally rather
        than by a component completing. At most one component runs at a time;
        while one is still running no other is started.
        """
        if self._run_list is None:
            return

        if target is not None:
            target.notify_waiting()
            self._leave_run_list(target)

        if self._running is not None and not self._running.terminal:
            return
        self._running = None

        next_node = self._next_ready()
        if next_node is not None:
            self._run_async(next_node)
        else:
            self._drained()

    def on_component_failed(self, target: ComponentNode):
        """Drop ``target`` from the schedule without releasing its dependants."""
        self._leave_run_list(target)
        self.log.warning(f"Failed trying to run component: {target}")
        self.on_component_ready(None)

    def resume(self):
        """Look for runnable components again, e.g. after a resource appeared."""
        self.on_component_ready(None)

    def set_timeout(self, duration_ms: int, timer: Optional[Timer] = None):
        """Bound the duration of each discovery pass.

        When the built-in watchdog fires, ready listeners get a
        :class:`ComponentTimeoutError` and every component still waiting is
        logged with what it is waiting for. Pass ``timer`` to use a timer of
        your own instead; its callback may call :meth:`timeout` to get the
        same behaviour. A zero duration without a timer disables the watchdog.
        """
        if duration_ms < 0:
            raise ValueError(f"timeout must not be negative, got {duration_ms}")
        if self._watchdog is not None:
            self._watchdog.cancel()
        if timer is None and duration_ms == 0:
            self._watchdog = None
        else:
            self._watchdog = timer or Timer(self.dispatcher, self.timeout)
        self._timeout_ms = duration_ms

    def timeout(self):
        """Watchdog action: fail the pass, notify listeners and audit."""
        self._failed = True
        self._timed_out = True
        self.log.warning(f"Components not ready after {self._timeout_ms}ms")
        self._invoke_ready_listeners()
        self.audit()

    def attach_ready_listener(self, callback: ReadyListener):
        """Call ``callback`` once, when the current or next pass finishes.

        It receives ``None`` when every component was created and nothing
        timed out, otherwise a :class:`CreationFailedError` or
        :class:`ComponentTimeoutError`. Listeners are told as soon as nothing
        more can run, so a pass where some components stalled on missing
        dependencies may still report success; the watchdog audit lists them.
        """
        self._ready_listeners.append(callback)

    def audit(self) -> int:
        """Log every component still running or waiting.

        Returns:
            The number of components that have not reached a terminal state.
        """
        waiting = 0
        if self._run_list is not None:
            if self._running is not None:
                self.log.warning(
                    f"Component:{self._running} is running. Did you forget to call complete()?"
                )
                waiting += 1
            for node in self._run_list:
                if node is self._running:
                    continue
                missing = node.unresolved_dependencies()
                self.log.warning(
                    f"Component:{node} is waiting: "
                    + (", ".join(missing) if missing else "No outstanding dependencies.")
                )
                waiting += 1
        if self._pending:
            for correlation_id in self._pending:
                self.log.warning(f"Waiting on component request: {correlation_id}")
            self.log.warning(
                "Some components may not be implemented by the factory "
                "or are taking a long time to load."
            )
        return waiting

    def get_component(self, point: AttachmentPoint) -> Optional[ComponentNode]:
        return self._by_identity.get(point.identity)

    def get_component_by_id(self, component_id: str) -> Optional[ComponentNode]:
        return self._by_id.get(component_id)

    def get_component_by_type(self, component_type: str) -> Optional[ComponentNode]:
        """Return the earliest registered component with the given type tag."""
        return next(
            (
                node
                for node in self._by_identity.values()
                if node.declared_type == component_type
            ),
            None,
        )

    def api_of(self, component_id: str) -> Any:
        node = self.get_component_by_id(component_id)
        return node.component.api() if node else None

    def api_of_type(self, component_type: str) -> Any:
        node = self.get_component_by_type(component_type)
        return node.component.api() if node else None

    def remove_component(self, node: ComponentNode):
        """Shut a component down and forget it.

        Dependants are not touched; that is the business of the component's
        own ``shutdown``.

        Raises:
            ShutdownConflictError: From the default ``shutdown`` when other
                components still depend on this one.
        """
        node.shutdown()
        if self._by_identity.get(node.identity) is node:
            del self._by_identity[node.identity]
        if node.declared_id and self._by_id.get(node.declared_id) is node:
            del self._by_id[node.declared_id]

    def purge_by_type(self, component_type: str) -> int:
        """Remove every component with the given type tag.

        Returns:
            How many components were removed.
        """
        removed = 0
        node = self.get_component_by_type(component_type)
        while node is not None:
            self.remove_component(node)
            removed += 1
            node = self.get_component_by_type(component_type)
        return removed

    def _create_correlation_id(self, point: AttachmentPoint) -> str:
        return f"r{uuid.uuid4().hex}__c{point.declared_type}"

    def _creation_complete(self):
        if self._pending:
            return
        self.phase = Phase.INITIALIZING
        self._run_list = self._init_components()
        self.phase = Phase.SCHEDULING
        self.on_component_ready(None)

    def _init_components(self) -> list[ComponentNode]:
        run_list = []
        broken = []
        for node in list(self._by_identity.values()):
            if node.terminal or node is self._running:
                continue
            if node.state is ComponentState.CREATED:
                try:
                    node.component.init(node)
                except Exception as e:
                    broken.append((node, e))
                    continue
                node.state = ComponentState.INITIALIZED
            run_list.append(node)

        # Failed only once every init() returned, so dependants always record the edge.
        for node, _ in broken:
            node.state = ComponentState.FAILED
        for node, error in broken:
            self.log.warning(f"Failed trying to initialise component: {node}")
            self.log.exception(error)
        return run_list

    def _next_ready(self) -> Optional[ComponentNode]:
        for node in self._run_list:
            if node.dependency_count() == 0:
                return node
            node.state = ComponentState.WAITING
        return None

    def _run_async(self, node: ComponentNode):
        self._running = node
        node.state = ComponentState.READY
        self.dispatcher.defer(self._run, node)

    def _run(self, node: ComponentNode):
        if node.terminal:
            return
        node.state = ComponentState.RUNNING
        try:
            node.component.run(node)
        except Exception as e:
            node.fail()
            self.log.exception(e)

    def _leave_run_list(self, node: ComponentNode):
        if self._run_list is not None and node in self._run_list:
            self._run_list.remove(node)

    def _drained(self):
        self.phase = Phase.DRAINED
        if not self._run_list:
            if self._watchdog is not None:
                self._watchdog.cancel()
        self._invoke_ready_listeners()

    def _invoke_ready_listeners(self):
        if self._notified:
            return
        self._notified = True

        error: Optional[ComponentError] = None
        if self._timed_out:
            error = ComponentTimeoutError(
                "Timeout occurred before component creation was completed."
            )
        elif self._failed:
            error = CreationFailedError("Component creation failed.")

        listeners, self._ready_listeners = self._ready_listeners, []
        for listener in listeners:
            self.dispatcher.defer(listener, error)
