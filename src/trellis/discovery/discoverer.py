"""
Test Discovery
==============
Builds the descriptor tree for a set of selectors.

Selectors:
- ModuleSelector: every test container declared in a module, including
  inner classes that are not marked nested
- ClassSelector: one class (top-level or nested container)
- MethodSelector: one test method of a class
- UniqueIdSelector: anything addressable by a unique ID

Each selected element is first resolved to a testable. Its ancestry is then
attached top-down through the element resolver registry, and containers are
expanded recursively. A selector that cannot be resolved produces a
diagnostic and is skipped; the rest of the pass carries on.
"""
from __future__ import annotations

import importlib
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Union

from trellis.discovery.descriptors import EngineDescriptor, TestDescriptor
from trellis.discovery.element_resolvers import ElementResolverRegistry, describe
from trellis.discovery.introspection import (
    Introspector,
    MarkerIntrospector,
    UnresolvableElementError,
    find_members,
    find_nested_classes,
    load_class,
)
from trellis.discovery.testable import Testable
from trellis.discovery.testable_resolver import TestableResolver
from trellis.discovery.unique_id import UniqueId
from trellis.utils.config import DEFAULT_ENGINE_ID
from trellis.utils.diagnostics import Diagnostic, DiagnosticKind, DiagnosticLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleSelector:
    module_name: str


@dataclass(frozen=True)
class ClassSelector:
    test_class: type


@dataclass(frozen=True)
class MethodSelector:
    test_class: type
    method: Any


@dataclass(frozen=True)
class UniqueIdSelector:
    unique_id: UniqueId


Selector = Union[ModuleSelector, ClassSelector, MethodSelector, UniqueIdSelector]


def parse_selector(text: str) -> Selector:
    """
    Build a selector from its command-line form.

    Forms:
        [engine:trellis]/[class:pkg.mod.Outer]  unique ID
        pkg.mod                                 module
        pkg.mod:Outer or pkg.mod:Outer.Inner    class
        pkg.mod:Outer#method_name               method

    Raises:
        MalformedIdentifierError: for bracketed text that is not a unique ID
        UnresolvableElementError: if a class or method cannot be loaded
    """
    if text.startswith("["):
        return UniqueIdSelector(UniqueId.parse(text))

    if ":" not in text:
        return ModuleSelector(text)

    module_name, _, rest = text.partition(":")
    class_path, _, method_name = rest.partition("#")
    test_class = load_class(f"{module_name}.{class_path.replace('.', '$')}")
    if not method_name:
        return ClassSelector(test_class)

    method = vars(test_class).get(method_name) or getattr(test_class, method_name, None)
    if not inspect.isfunction(method):
        raise UnresolvableElementError(f"Class '{class_path}' has no method '{method_name}'")
    return MethodSelector(test_class, method)


class Discoverer:
    """
    Discovers tests for one engine.

    Args:
        engine_id: Engine name, the value of the first unique ID segment
        registry: Element resolver registry (default: built-in resolvers)
        resolver: Testable resolver sharing the same diagnostics
        introspector: Marker and signature lookup
        markers: Marker names, e.g. {"test": "test", "nested": "nested"}
    """

    def __init__(
        self,
        engine_id: str = DEFAULT_ENGINE_ID,
        registry: Optional[ElementResolverRegistry] = None,
        resolver: Optional[TestableResolver] = None,
        introspector: Optional[Introspector] = None,
        diagnostics: Optional[DiagnosticLog] = None,
        markers: Optional[dict] = None,
        warn_on_contested_claims: bool = True,
    ):
        self.engine_id = UniqueId.for_engine(engine_id)
        self.introspector = introspector or MarkerIntrospector()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.registry = registry or ElementResolverRegistry(
            self.introspector,
            self.diagnostics,
            markers=markers,
            warn_on_contested_claims=warn_on_contested_claims,
        )
        self.resolver = resolver or TestableResolver(self.introspector, self.diagnostics, markers=markers)

    def discover(self, selectors: Iterable[Selector], engine: Optional[EngineDescriptor] = None) -> EngineDescriptor:
        """Resolve ``selectors`` into the tree below ``engine`` (a new one by default)."""
        engine = engine or EngineDescriptor(self.engine_id, self.engine_id.engine_id)
        for selector in selectors:
            for testable in self._testables_for(selector):
                if testable.is_resolved:
                    self._attach(testable, engine)
        return engine

    def _testables_for(self, selector: Selector) -> List[Testable]:
        if isinstance(selector, ModuleSelector):
            return self._module_testables(selector.module_name)
        if isinstance(selector, ClassSelector):
            return [self.resolver.from_class(selector.test_class, self.engine_id)]
        if isinstance(selector, MethodSelector):
            return [self.resolver.from_method(selector.method, selector.test_class, self.engine_id)]
        if isinstance(selector, UniqueIdSelector):
            return [self.resolver.from_unique_id(selector.unique_id, self.engine_id)]
        raise TypeError(f"Unsupported selector: {selector!r}")

    def _module_testables(self, module_name: str) -> List[Testable]:
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            self._report(DiagnosticKind.UNRESOLVABLE_ELEMENT, module_name, f"Cannot import module '{module_name}': {e}")
            return []

        testables = []
        for member in self._declared_classes(module):
            if self.resolver.is_potential_test_container(member) and self._contains_tests(member):
                testables.append(self.resolver.from_class(member, self.engine_id))
        return testables

    @staticmethod
    def _declared_classes(module: Any) -> List[type]:
        """Classes declared in ``module``, inner classes following their enclosing class."""
        declared: List[type] = []
        pending = [
            member for member in vars(module).values()
            if inspect.isclass(member) and member.__module__ == module.__name__
        ]
        while pending:
            cls = pending.pop(0)
            if cls in declared:
                continue
            declared.append(cls)
            inner = [c for c in find_nested_classes(cls) if c.__module__ == module.__name__]
            pending[:0] = inner
        return declared

    def _contains_tests(self, test_class: type) -> bool:
        for _, member in find_members(test_class):
            if self.resolver.is_test_method(member):
                return True
            if self.resolver.is_nested_test_class(member) and self._contains_tests(member):
                return True
        return False

    def _attach(self, testable: Testable, engine: EngineDescriptor) -> Optional[TestDescriptor]:
        """Attach ``testable`` and its ancestors, then expand it if it is a container."""
        descriptor: TestDescriptor = engine
        for link in testable.ancestry():
            try:
                descriptor = self.registry.resolve(link.element, descriptor)
            except UnresolvableElementError as e:
                self._report(DiagnosticKind.UNRESOLVABLE_ELEMENT, describe(link.element), str(e))
                return None
            if descriptor.unique_id != link.unique_id:
                logger.debug("Resolver minted %s for %s", descriptor.unique_id, link.unique_id)

        if testable.is_container:
            self._expand(descriptor)
        return descriptor

    def _expand(self, descriptor: TestDescriptor) -> None:
        """Attach every claimed member of a container descriptor, recursively."""
        test_class = getattr(descriptor, "test_class", None)
        if test_class is None:
            return
        for name, member in find_members(test_class):
            if not (inspect.isfunction(member) or inspect.isclass(member)):
                continue
            try:
                child = self.registry.resolve(member, descriptor)
            except UnresolvableElementError:
                logger.debug("Skipping %s.%s: not claimed by any resolver", describe(test_class), name)
                continue
            if child.is_container:
                self._expand(child)

    def _report(self, kind: DiagnosticKind, subject: str, message: str) -> None:
        logger.warning("%s", message)
        self.diagnostics.report(Diagnostic(kind=kind, subject=subject, message=message))
