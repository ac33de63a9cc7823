from typing import Callable, Optional

from componentry.attachment import Element
from componentry.component import Component, ComponentNode
from componentry.factory import TypeTagFactory

NodeAction = Callable[[ComponentNode], None]


def make_sample_factory(run_order: list[str], dispatcher=None) -> TypeTagFactory:
    factory = TypeTagFactory(dispatcher)

    @factory.provides()
    class SampleA(Component):
        def init(self, node):
            node.require_component_by_id("IdSetToB")
            node.require_component_by_type("SampleC")
            node.require_value("Value1")
            node.require_asset("Asset1")

        def run(self, node):
            run_order.append(str(node))
            node.complete()

    @factory.provides()
    class SampleB(Component):
        def init(self, node):
            node.require_value("Value1")
            node.require_asset("Asset1")

        def run(self, node):
            run_order.append(str(node))
            node.complete()

    factory.register("SampleC", lambda point: SampleB())

    return factory


def sample_page(with_value_on_c: bool = True) -> Element:
    def sample(declared_type, declared_id, with_value=True):
        return Element(
            declared_type,
            declared_id,
            values={"Value1": "Value"} if with_value else {},
            assets={"Asset1": object()},
        )

    return Element(
        children=[
            Element(
                children=[
                    sample("SampleA", "IdSetToA"),
                    sample("SampleB", "IdSetToB"),
                    sample("SampleC", "IdSetToC", with_value_on_c),
                ]
            )
        ]
    )


class Scripted(Component):
    """Component whose init and run behaviour is supplied by the test."""

    def __init__(
        self,
        on_init: Optional[NodeAction] = None,
        on_run: Optional[NodeAction] = None,
        api: object = None,
    ):
        self.on_init = on_init or (lambda node: None)
        self.on_run = on_run or (lambda node: node.complete())
        self._api = api
        self.node: Optional[ComponentNode] = None
        self.runs = 0

    def init(self, node):
        self.node = node
        self.on_init(node)

    def run(self, node):
        self.runs += 1
        self.on_run(node)

    def api(self):
        return self._api


def hold(node: ComponentNode):
    """Run action for components that finish later, under test control."""
    pass
