"""Componentry component lifecycle scheduler.

Componentry brings independently defined components online in an order that
respects the dependencies they declare on each other and on named resources.
Components are found at attachment points of an external tree, created
asynchronously by a pluggable factory, initialised together, and then run one
at a time as their dependencies complete. Everything asynchronous is an
explicit deferred continuation, so a whole lifecycle can be stepped through
deterministically.

Key Features:
    - Dependencies by instance, declared id or type tag, plus required values and assets
    - Strictly serialised run scheduling in discovery order
    - Failures stall dependants instead of aborting the whole pass
    - One-shot ready listeners with an optional watchdog and diagnostic audit
    - Virtual-clock dispatcher for tests, asyncio dispatcher for real loops

Basic Usage:
    >>> from componentry.attachment import Element
    >>> from componentry.component import Component
    >>> from componentry.factory import TypeTagFactory
    >>> from componentry.register import Register
    >>>
    >>> factory = TypeTagFactory()
    >>>
    >>> @factory.provides()
    ... class Banner(Component):
    ...     def init(self, node):
    ...         node.require_value("Title")
    ...
    ...     def run(self, node):
    ...         node.complete()
    >>>
    >>> register = Register(factory)
    >>> register.attach_ready_listener(print)
    >>> register.discover(Element("Banner", values={"Title": "Hi"}))
    >>> register.dispatcher.run_pending()

The package consists of several modules:
    - register: Discovery, creation fan-in and run scheduling
    - component: The component contract and its dependency graph node
    - factory: Component factories, including type-tag dispatch
    - tasks: Deferred continuation queues, timers and task sequences
    - attachment: The attachment point protocol and an in-memory tree
    - config, log: Register settings and the injected logging collaborator
    - errors: Framework-specific exceptions
"""
