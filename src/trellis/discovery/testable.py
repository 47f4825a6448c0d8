"""
Testable model.

The resolved, in-memory representation of a test container or test case:

- TopLevelContainer: a class that is a test container on its own
- NestedContainer: a nested-marked class inside another container
- TestCase: a test method, resolved against the class that owns it
- UNRESOLVED: sentinel for anything that could not be resolved

``parent`` links a testable to the testable of its enclosing container. It is
a relation only; the containment tree is built separately from descriptors.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from trellis.discovery.unique_id import UniqueId


class TestableVisitor(Protocol):
    """Receives the resolved variant of a testable."""

    def visit_class(self, testable: "TopLevelContainer") -> None:
        ...

    def visit_nested_class(self, testable: "NestedContainer") -> None:
        ...

    def visit_method(self, testable: "TestCase") -> None:
        ...


class Testable:
    """
    Base of all testable variants.

    Variants provide ``unique_id`` and ``parent`` (None for top-level
    containers and UNRESOLVED).
    """

    @property
    def is_resolved(self) -> bool:
        return True

    @property
    def is_container(self) -> bool:
        return False

    def accept(self, visitor: TestableVisitor) -> None:
        raise NotImplementedError

    @property
    def element(self) -> Any:
        """The declared class or function this testable stands for."""
        raise NotImplementedError

    def ancestry(self) -> List["Testable"]:
        """Testables from the outermost container down to this one."""
        chain = []
        current: Optional[Testable] = self
        while current is not None:
            chain.append(current)
            current = current.parent
        return list(reversed(chain))


@dataclass(frozen=True)
class TopLevelContainer(Testable):
    unique_id: UniqueId
    test_class: type

    @property
    def parent(self) -> None:
        return None

    @property
    def is_container(self) -> bool:
        return True

    @property
    def element(self) -> type:
        return self.test_class

    def accept(self, visitor: TestableVisitor) -> None:
        visitor.visit_class(self)


@dataclass(frozen=True)
class NestedContainer(Testable):
    unique_id: UniqueId
    test_class: type
    parent: Testable

    @property
    def is_container(self) -> bool:
        return True

    @property
    def element(self) -> type:
        return self.test_class

    def accept(self, visitor: TestableVisitor) -> None:
        visitor.visit_nested_class(self)


@dataclass(frozen=True)
class TestCase(Testable):
    """A test method together with the container class it runs in."""

    __test__ = False

    unique_id: UniqueId
    method: Any
    test_class: type
    parent: Testable

    @property
    def element(self) -> Any:
        return self.method

    def accept(self, visitor: TestableVisitor) -> None:
        visitor.visit_method(self)


class Unresolved(Testable):
    """Nothing to schedule. Callers can treat it like any other testable."""

    _instance: Optional["Unresolved"] = None
    unique_id = None
    parent = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def is_resolved(self) -> bool:
        return False

    @property
    def element(self) -> None:
        return None

    def accept(self, visitor: TestableVisitor) -> None:
        pass

    def ancestry(self) -> List[Testable]:
        return []

    def __repr__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = Unresolved()
