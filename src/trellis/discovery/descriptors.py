"""
Test Descriptor Tree
====================
The containment tree built by discovery.

- EngineDescriptor: root node, one per engine
- ClassTestDescriptor: a top-level test container
- NestedClassTestDescriptor: a nested test container
- MethodTestDescriptor: a test method

Container and method descriptors know which extensions their declaring
element carries and can build an ExtensionPointRegistry that inherits from
the registry of their parent.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Optional

from trellis.api import DISPLAY_NAME_MARKER, EXTEND_WITH_MARKER
from trellis.discovery.introspection import Introspector, MarkerIntrospector, method_spec, qualified_name
from trellis.discovery.unique_id import UniqueId
from trellis.extension.registry import ExtensionPointRegistry


class TestDescriptor:
    """A node of the discovered test tree."""

    __test__ = False

    def __init__(self, unique_id: UniqueId, display_name: str):
        self.unique_id = unique_id
        self.display_name = display_name
        self.parent: Optional[TestDescriptor] = None
        self._children: List[TestDescriptor] = []

    @property
    def children(self) -> List["TestDescriptor"]:
        return list(self._children)

    @property
    def is_container(self) -> bool:
        return False

    @property
    def is_test(self) -> bool:
        return False

    @property
    def kind(self) -> str:
        return "node"

    def add_child(self, child: "TestDescriptor") -> "TestDescriptor":
        """Attach ``child`` unless a child with the same unique ID exists; return the attached node."""
        existing = self.find_child(child.unique_id)
        if existing is not None:
            return existing
        child.parent = self
        self._children.append(child)
        return child

    def find_child(self, unique_id: UniqueId) -> Optional["TestDescriptor"]:
        for child in self._children:
            if child.unique_id == unique_id:
                return child
        return None

    def find_by_unique_id(self, unique_id: UniqueId) -> Optional["TestDescriptor"]:
        if self.unique_id == unique_id:
            return self
        for child in self._children:
            if unique_id.has_prefix(child.unique_id):
                return child.find_by_unique_id(unique_id)
        return None

    def all_descendants(self) -> Iterator["TestDescriptor"]:
        for child in self._children:
            yield child
            yield from child.all_descendants()

    def tests(self) -> List["TestDescriptor"]:
        return [d for d in self.all_descendants() if d.is_test]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "unique_id": self.unique_id.to_string(),
            "display_name": self.display_name,
            "kind": self.kind,
            "children": [child.to_dict() for child in self._children],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.unique_id})"


class EngineDescriptor(TestDescriptor):
    """Root of the tree for one engine."""

    @property
    def kind(self) -> str:
        return "engine"

    @property
    def is_container(self) -> bool:
        return True


class _ElementDescriptor(TestDescriptor):
    """Descriptor backed by a declared class or function."""

    def __init__(
        self,
        unique_id: UniqueId,
        element: Any,
        default_name: str,
        introspector: Optional[Introspector] = None,
    ):
        self.introspector = introspector or MarkerIntrospector()
        marker = self.introspector.find_marker(element, DISPLAY_NAME_MARKER)
        super().__init__(unique_id, marker.get("value", default_name) if marker else default_name)
        self.element = element

    @property
    def extension_types(self) -> tuple:
        """Extensions declared on the element with @extend_with."""
        marker = self.introspector.find_marker(self.element, EXTEND_WITH_MARKER)
        return tuple(marker.get("extensions", ())) if marker else ()

    def create_extension_registry(self, parent_registry: Optional[ExtensionPointRegistry] = None) -> ExtensionPointRegistry:
        """Registry holding this element's extensions on top of ``parent_registry``."""
        return ExtensionPointRegistry.new_registry_from(parent_registry, self.extension_types)


class ClassTestDescriptor(_ElementDescriptor):

    def __init__(self, unique_id: UniqueId, test_class: type, introspector: Optional[Introspector] = None):
        super().__init__(unique_id, test_class, test_class.__name__, introspector)
        self.test_class = test_class

    @property
    def kind(self) -> str:
        return "class"

    @property
    def is_container(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["class"] = qualified_name(self.test_class)
        return data


class NestedClassTestDescriptor(ClassTestDescriptor):

    @property
    def kind(self) -> str:
        return "nested-class"


class MethodTestDescriptor(_ElementDescriptor):

    def __init__(
        self,
        unique_id: UniqueId,
        test_class: type,
        method: Any,
        introspector: Optional[Introspector] = None,
    ):
        super().__init__(unique_id, method, method_spec(method), introspector)
        self.test_class = test_class
        self.method = method

    @property
    def kind(self) -> str:
        return "method"

    @property
    def is_test(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["class"] = qualified_name(self.test_class)
        data["method"] = method_spec(self.method)
        return data


def extension_registry_for(
    descriptor: TestDescriptor,
    root: Optional[ExtensionPointRegistry] = None,
) -> ExtensionPointRegistry:
    """
    Registry in effect for ``descriptor``.

    Starts from ``root`` and stacks the declared extensions of every ancestor,
    outermost first, ending with the descriptor's own.
    """
    chain = []
    current: Optional[TestDescriptor] = descriptor
    while current is not None:
        chain.append(current)
        current = current.parent

    registry = root
    for node in reversed(chain):
        if isinstance(node, _ElementDescriptor):
            registry = node.create_extension_registry(registry)
    return registry if registry is not None else ExtensionPointRegistry()
