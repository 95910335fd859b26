"""Include builder — fluent construction of eager-load paths from relationship selectors.

    path = (
        IncludeBuilder(Order)
        .include(lambda o: o.customer)
        .then_include(Customer.addresses)
        .done()
    )
    str(path)  # "Customer.Address"

Segments are the related type names (element type for collections). The
builder does not check them against live metadata; a bad path fails when the
gateway applies it.
"""

from typing import Any, Callable, List, Optional, Union

from sqlalchemy.orm import QueryableAttribute
from sqlalchemy.orm.relationships import RelationshipProperty

from dbgateway.core.exceptions import GatewayError
from dbgateway.domain.schemas.navigation import IncludePath

Selector = Union[QueryableAttribute, Callable[[type], Any]]


def _selected_relation(owner: type, selector: Selector) -> RelationshipProperty:
    attr = selector
    if not isinstance(attr, QueryableAttribute) and callable(attr):
        attr = attr(owner)

    prop = getattr(attr, "property", None)
    if not isinstance(prop, RelationshipProperty):
        raise GatewayError(f"Selector on {owner.__name__} does not select a relationship.")
    return prop


class IncludeBuilder:
    """Records an include / then-include chain and freezes it into an IncludePath."""

    def __init__(self, root: type):
        self.root = root
        self._segments: List[str] = []
        self._current: Optional[type] = None

    def include(self, selector: Selector) -> "IncludeBuilder":
        """Start a new chain from the root type."""
        self._segments = []
        self._current = self.root
        return self._append(selector)

    def then_include(self, selector: Selector) -> "IncludeBuilder":
        """Extend the chain from the type reached so far."""
        if self._current is None:
            raise GatewayError("then_include() called before include().")
        return self._append(selector)

    def _append(self, selector: Selector) -> "IncludeBuilder":
        prop = _selected_relation(self._current, selector)
        # mapper.class_ is the element type for collection relationships
        target = prop.mapper.class_
        self._segments.append(target.__name__)
        self._current = target
        return self

    def done(self) -> IncludePath:
        if not self._segments:
            raise GatewayError("Include path is empty; call include() first.")
        return IncludePath(segments=tuple(self._segments))
