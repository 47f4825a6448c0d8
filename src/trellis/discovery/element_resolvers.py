"""
Element Resolver Registry
=========================
Pluggable resolvers that claim declared elements during hierarchy expansion.

Each resolver:
- Declares whether it claims an element as a child of a parent descriptor
- Mints the unique ID of the claimed element
- Builds the descriptor for it

Architecture:
- ElementResolver: Protocol for element resolvers
- TestContainerResolver / NestedContainerResolver / TestMethodResolver: built-ins
- ElementResolverRegistry: ordered chain, first claimant wins

New container or test shapes are added by registering another resolver;
the resolution core does not change.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

from trellis.api import NESTED_MARKER, TEST_MARKER
from trellis.discovery.descriptors import (
    ClassTestDescriptor,
    EngineDescriptor,
    MethodTestDescriptor,
    NestedClassTestDescriptor,
    TestDescriptor,
)
from trellis.discovery.introspection import (
    Introspector,
    MarkerIntrospector,
    UnresolvableElementError,
    method_spec,
    qualified_name,
)
from trellis.discovery.predicates import IsNestedTestClass, IsPotentialTestContainer, IsTestMethod
from trellis.discovery.testable_resolver import TYPE_CLASS, TYPE_METHOD, TYPE_NESTED_CLASS
from trellis.discovery.unique_id import UniqueId
from trellis.utils.diagnostics import Diagnostic, DiagnosticKind, DiagnosticLog, Severity

logger = logging.getLogger(__name__)


class ElementResolver(Protocol):
    """Protocol for element resolvers."""

    def can_resolve(self, element: Any, parent: TestDescriptor) -> bool:
        """Check if this resolver claims ``element`` as a child of ``parent``."""
        ...

    def create_unique_id(self, element: Any, parent: TestDescriptor) -> UniqueId:
        """Mint the unique ID of ``element`` below ``parent``."""
        ...

    def resolve(self, element: Any, parent: TestDescriptor, unique_id: UniqueId) -> TestDescriptor:
        """Build the descriptor for a claimed element."""
        ...


def describe(element: Any) -> str:
    """Readable name of a class or function for messages."""
    if isinstance(element, type):
        return qualified_name(element)
    return getattr(element, "__qualname__", repr(element))


class TestContainerResolver:
    """Top-level test classes, children of the engine descriptor."""

    __test__ = False

    def __init__(self, introspector: Optional[Introspector] = None, nested_marker: str = NESTED_MARKER):
        self.introspector = introspector or MarkerIntrospector()
        self.is_potential_test_container = IsPotentialTestContainer(self.introspector, nested_marker)

    def can_resolve(self, element: Any, parent: TestDescriptor) -> bool:
        return isinstance(parent, EngineDescriptor) and self.is_potential_test_container(element)

    def create_unique_id(self, element: type, parent: TestDescriptor) -> UniqueId:
        return parent.unique_id.append(TYPE_CLASS, qualified_name(element))

    def resolve(self, element: type, parent: TestDescriptor, unique_id: UniqueId) -> TestDescriptor:
        return ClassTestDescriptor(unique_id, element, self.introspector)


class NestedContainerResolver:
    """Nested test classes, children of the descriptor of their enclosing class."""

    def __init__(self, introspector: Optional[Introspector] = None, nested_marker: str = NESTED_MARKER):
        self.introspector = introspector or MarkerIntrospector()
        self.is_nested_test_class = IsNestedTestClass(self.introspector, nested_marker)

    def can_resolve(self, element: Any, parent: TestDescriptor) -> bool:
        if not isinstance(parent, ClassTestDescriptor) or not self.is_nested_test_class(element):
            return False
        return self.introspector.enclosing_class(element) is parent.test_class

    def create_unique_id(self, element: type, parent: TestDescriptor) -> UniqueId:
        return parent.unique_id.append(TYPE_NESTED_CLASS, element.__name__)

    def resolve(self, element: type, parent: TestDescriptor, unique_id: UniqueId) -> TestDescriptor:
        return NestedClassTestDescriptor(unique_id, element, self.introspector)


class TestMethodResolver:
    """Test methods, children of the descriptor of the class they run in."""

    __test__ = False

    def __init__(self, introspector: Optional[Introspector] = None, test_marker: str = TEST_MARKER):
        self.introspector = introspector or MarkerIntrospector()
        self.is_test_method = IsTestMethod(self.introspector, test_marker)

    def can_resolve(self, element: Any, parent: TestDescriptor) -> bool:
        return isinstance(parent, ClassTestDescriptor) and self.is_test_method(element)

    def create_unique_id(self, element: Any, parent: TestDescriptor) -> UniqueId:
        return parent.unique_id.append(TYPE_METHOD, method_spec(element))

    def resolve(self, element: Any, parent: TestDescriptor, unique_id: UniqueId) -> TestDescriptor:
        return MethodTestDescriptor(unique_id, parent.test_class, element, self.introspector)


class ElementResolverRegistry:
    """
    Ordered chain of element resolvers.

    Resolvers are queried in registration order and the first one that
    claims an element wins. When more than one resolver claims the same
    element the first still wins, and the contest is logged and recorded.
    """

    def __init__(
        self,
        introspector: Optional[Introspector] = None,
        diagnostics: Optional[DiagnosticLog] = None,
        markers: Optional[Dict[str, str]] = None,
        register_defaults: bool = True,
        warn_on_contested_claims: bool = True,
    ):
        self.introspector = introspector or MarkerIntrospector()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.markers = markers or {}
        self.warn_on_contested_claims = warn_on_contested_claims
        self._resolvers: List[ElementResolver] = []
        if register_defaults:
            self._register_default_resolvers()

    def _register_default_resolvers(self) -> None:
        """Register the built-in container, nested container and method resolvers."""
        nested_marker = self.markers.get("nested", NESTED_MARKER)
        resolvers = [
            TestContainerResolver(self.introspector, nested_marker),
            NestedContainerResolver(self.introspector, nested_marker),
            TestMethodResolver(self.introspector, self.markers.get("test", TEST_MARKER)),
        ]
        for resolver in resolvers:
            self.register(resolver)

    def register(self, resolver: ElementResolver) -> None:
        """Append a resolver to the chain."""
        self._resolvers.append(resolver)

    @property
    def resolvers(self) -> List[ElementResolver]:
        return list(self._resolvers)

    def resolver_for(self, element: Any, parent: TestDescriptor) -> ElementResolver:
        """
        Return the first resolver that claims ``element`` below ``parent``.

        Raises:
            UnresolvableElementError: if no resolver claims the element
        """
        claimants = [r for r in self._resolvers if r.can_resolve(element, parent)]
        if not claimants:
            raise UnresolvableElementError(
                f"No element resolver claims '{describe(element)}' below '{parent.unique_id}'"
            )

        if len(claimants) > 1:
            names = ", ".join(type(r).__name__ for r in claimants)
            message = f"Element '{describe(element)}' is claimed by several resolvers: {names}"
            if self.warn_on_contested_claims:
                logger.warning("%s; using %s", message, type(claimants[0]).__name__)
                severity = Severity.WARNING
            else:
                logger.debug("%s; using %s", message, type(claimants[0]).__name__)
                severity = Severity.INFO
            self.diagnostics.report(Diagnostic(
                kind=DiagnosticKind.CONTESTED_CLAIM,
                subject=describe(element),
                message=message,
                severity=severity,
                context=f"winner: {type(claimants[0]).__name__}",
            ))

        return claimants[0]

    def resolve(self, element: Any, parent: TestDescriptor) -> TestDescriptor:
        """
        Resolve ``element`` and attach it to ``parent``.

        An element already present below ``parent`` is not rebuilt; the
        existing descriptor is returned.
        """
        resolver = self.resolver_for(element, parent)
        unique_id = resolver.create_unique_id(element, parent)
        existing = parent.find_child(unique_id)
        if existing is not None:
            return existing
        descriptor = resolver.resolve(element, parent, unique_id)
        logger.debug("Resolved %s with %s", unique_id, type(resolver).__name__)
        return parent.add_child(descriptor)
