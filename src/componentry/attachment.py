"""Attachment points: where components live in the external tree.

The register never walks a markup tree itself. It consumes attachment points
through the narrow :class:`AttachmentPoint` protocol and asks a locator
callable to find them under a discovery scope. :class:`Element` is a small
in-memory tree satisfying that protocol, used by the default locator
:func:`find_components` and convenient for tests and headless use.
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Iterator, Optional, Protocol

__all__ = ["AttachmentPoint", "Element", "find_components"]


class AttachmentPoint(Protocol):
    """Resource accessor for a single component attachment point."""

    @property
    def identity(self) -> Hashable:
        """Stable key tying a component to this point for its lifetime."""

    @property
    def declared_id(self) -> Optional[str]:
        """Human addressable id, if the point has one."""

    @property
    def declared_type(self) -> str:
        """Type tag used by factories and type-based dependency lookups."""

    def get_value(self, name: str) -> Optional[str]:
        """Return the named value, or ``None`` when absent."""

    def get_asset(self, name: str) -> Optional[Any]:
        """Return a handle on the named asset, or ``None`` when absent."""


@dataclass(eq=False)
class Element:
    """A node of an in-memory attachment tree.

    Elements compare and hash by reference, so two elements with identical
    content are still distinct attachment points. Only elements with a
    ``declared_type`` are components; the rest are plain structure.

    Example:
        >>> body = Element(children=[
        ...     Element("SampleB", "IdSetToB", values={"Value1": "Value"}),
        ... ])
        >>> [e.declared_type for e in find_components(body)]
        ['SampleB']
    """

    declared_type: Optional[str] = None
    declared_id: Optional[str] = None
    values: dict[str, str] = field(default_factory=dict)
    assets: dict[str, Any] = field(default_factory=dict)
    children: list["Element"] = field(default_factory=list)

    @property
    def identity(self) -> Hashable:
        return self

    @property
    def is_component(self) -> bool:
        return bool(self.declared_type)

    def get_value(self, name: str) -> Optional[str]:
        return self.values.get(name)

    def get_asset(self, name: str) -> Optional[Any]:
        return self.assets.get(name)

    def walk(self) -> Iterator["Element"]:
        """Yield this element and its descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def __repr__(self):
        if self.declared_id:
            return f"<Element {self.declared_id}@{self.declared_type}>"
        return f"<Element {self.declared_type or '-'}>"


def find_components(scope: Any) -> list[AttachmentPoint]:
    """Default locator used by the register's ``discover`` call.

    Args:
        scope: Either an :class:`Element`, whose component descendants
            (including itself) are returned in document order, or any iterable
            of attachment points, returned as given.

    Returns:
        The attachment points found under the scope.
    """
    if isinstance(scope, Element):
        return [element for element in scope.walk() if element.is_component]
    return list(_as_iterable(scope))


def _as_iterable(scope: Any) -> Iterable[AttachmentPoint]:
    if scope is None:
        return ()
    if hasattr(scope, "declared_type") and hasattr(scope, "identity"):
        return (scope,)
    return scope
