"""
Testable Resolution
===================
Translates between declared program elements and unique IDs.

Forward direction (element -> unique ID) is recursive, parent first:
a nested class resolves its enclosing class and appends a ``nested-class``
segment; a method resolves its owning class and appends a ``method`` segment.

Reverse direction (unique ID -> element) is a left fold over the segments
with an index cursor and an accumulator holding the last resolved testable:

    class         load a top-level class by qualified name
    nested-class  needs a container accumulator, loads ``<container>$<value>``
    method        needs a container accumulator, finds ``name(types)`` on it

Any segment that cannot be resolved stops the fold early, logs a warning,
records a diagnostic and yields UNRESOLVED. Only malformed text raises.

This module is the only place where segment types carry meaning.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from trellis.api import NESTED_MARKER, TEST_MARKER
from trellis.discovery.introspection import (
    Introspector,
    MarkerIntrospector,
    UnresolvableElementError,
    find_method,
    load_class,
    method_spec,
    qualified_name,
    NESTED_SEPARATOR,
)
from trellis.discovery.predicates import IsNestedTestClass, IsPotentialTestContainer, IsTestMethod
from trellis.discovery.testable import (
    UNRESOLVED,
    NestedContainer,
    TestCase,
    Testable,
    TopLevelContainer,
)
from trellis.discovery.unique_id import Segment, UniqueId
from trellis.utils.diagnostics import Diagnostic, DiagnosticKind, DiagnosticLog

logger = logging.getLogger(__name__)

TYPE_CLASS = "class"
TYPE_NESTED_CLASS = "nested-class"
TYPE_METHOD = "method"


class TestableResolver:
    """
    Produces testables from classes, methods or unique IDs.

    Args:
        introspector: Marker and signature lookup (default: MarkerIntrospector)
        diagnostics: Collector for structured warnings
        markers: Marker names, e.g. {"test": "test", "nested": "nested"}
    """

    __test__ = False

    def __init__(
        self,
        introspector: Optional[Introspector] = None,
        diagnostics: Optional[DiagnosticLog] = None,
        markers: Optional[Dict[str, str]] = None,
    ):
        self.introspector = introspector or MarkerIntrospector()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        markers = markers or {}
        nested_marker = markers.get("nested", NESTED_MARKER)
        self.is_potential_test_container = IsPotentialTestContainer(self.introspector, nested_marker)
        self.is_nested_test_class = IsNestedTestClass(self.introspector, nested_marker)
        self.is_test_method = IsTestMethod(self.introspector, markers.get("test", TEST_MARKER))

    # -------------------------------------------------------------------------
    # Element -> unique ID
    # -------------------------------------------------------------------------

    def from_class(self, cls: type, engine_id: UniqueId) -> Testable:
        """Resolve a class to a top-level or nested container."""
        if cls is None:
            raise ValueError("Class must not be None")
        if engine_id is None:
            raise ValueError("Engine ID must not be None")

        if self.is_potential_test_container(cls):
            unique_id = engine_id.append(TYPE_CLASS, qualified_name(cls))
            return TopLevelContainer(unique_id, cls)

        if self.is_nested_test_class(cls):
            return self._nested_class_testable(cls, engine_id)

        name = qualified_name(cls) if isinstance(cls, type) else repr(cls)
        return self._unresolved(
            DiagnosticKind.NOT_A_CONTAINER, name, f"Class '{name}' is not a test container"
        )

    def _nested_class_testable(self, cls: type, engine_id: UniqueId) -> Testable:
        container = self.introspector.enclosing_class(cls)
        parent = self.from_class(container, engine_id)
        if not parent.is_resolved:
            return self._unresolved(
                DiagnosticKind.NOT_A_CONTAINER,
                qualified_name(cls),
                f"Enclosing class of nested class '{qualified_name(cls)}' is not a test container",
            )
        unique_id = parent.unique_id.append(TYPE_NESTED_CLASS, cls.__name__)
        return NestedContainer(unique_id, cls, parent)

    def from_method(self, method: Any, cls: type, engine_id: UniqueId) -> Testable:
        """Resolve a method of ``cls`` to a test case."""
        if not self.is_test_method(method):
            name = f"{qualified_name(cls)}#{getattr(method, '__name__', method)}"
            return self._unresolved(
                DiagnosticKind.NOT_A_TEST, name, f"Method '{name}' is not a test method"
            )

        parent = self.from_class(cls, engine_id)
        if not parent.is_resolved:
            return parent
        unique_id = parent.unique_id.append(TYPE_METHOD, method_spec(method))
        return TestCase(unique_id, method, cls, parent)

    # -------------------------------------------------------------------------
    # Unique ID -> element
    # -------------------------------------------------------------------------

    def from_unique_id(self, unique_id: Union[UniqueId, str], engine_id: UniqueId) -> Testable:
        """
        Re-resolve a unique ID (or its text form) against live classes.

        Raises:
            MalformedIdentifierError: if ``unique_id`` is text that cannot be parsed
        """
        if unique_id is None:
            raise ValueError("Unique ID must not be None")
        unique_id = UniqueId.coerce(unique_id)
        text = unique_id.to_string()

        if not unique_id.has_prefix(engine_id):
            return self._unresolved(
                DiagnosticKind.UNRESOLVABLE_SEGMENT,
                text,
                f"Unique ID '{text}' does not belong to engine '{engine_id}'",
            )

        segments = unique_id.segments
        cursor = len(engine_id.segments)
        if cursor >= len(segments):
            return self._unresolved(
                DiagnosticKind.UNRESOLVABLE_SEGMENT, text, f"Unique ID '{text}' has no segments to resolve"
            )

        current: Optional[Testable] = None
        while cursor < len(segments):
            segment = segments[cursor]
            try:
                current = self._resolve_segment(segment, current, engine_id)
            except UnresolvableElementError as e:
                return self._unresolved(
                    DiagnosticKind.UNRESOLVABLE_SEGMENT,
                    text,
                    f"Cannot resolve part '{segment}' of unique ID '{text}'",
                    context=str(e),
                )
            if not current.is_resolved:
                return self._unresolved(
                    DiagnosticKind.UNRESOLVABLE_SEGMENT,
                    text,
                    f"Cannot resolve part '{segment}' of unique ID '{text}'",
                )
            # one unique ID names one element: the resolved prefix must match verbatim
            if current.unique_id.segments != segments[:cursor + 1]:
                return self._unresolved(
                    DiagnosticKind.UNRESOLVABLE_SEGMENT,
                    text,
                    f"Part '{segment}' of unique ID '{text}' names an element "
                    f"whose unique ID is '{current.unique_id}'",
                )
            cursor += 1

        return current

    def _resolve_segment(self, segment: Segment, current: Optional[Testable], engine_id: UniqueId) -> Testable:
        if segment.type == TYPE_CLASS:
            if current is not None:
                raise UnresolvableElementError("A class segment can only follow the engine segment")
            return self.from_class(load_class(segment.value), engine_id)

        if segment.type == TYPE_NESTED_CLASS:
            container = self._require_container(current, segment)
            nested = load_class(f"{qualified_name(container)}{NESTED_SEPARATOR}{segment.value}")
            return self.from_class(nested, engine_id)

        if segment.type == TYPE_METHOD:
            container = self._require_container(current, segment)
            return self.from_method(find_method(container, segment.value), container, engine_id)

        raise UnresolvableElementError(f"Unknown segment type '{segment.type}'")

    @staticmethod
    def _require_container(current: Optional[Testable], segment: Segment) -> type:
        if current is None or not current.is_container:
            raise UnresolvableElementError(f"Segment '{segment}' must follow a container segment")
        return current.test_class

    def _unresolved(
        self,
        kind: DiagnosticKind,
        subject: str,
        message: str,
        context: Optional[str] = None,
    ) -> Testable:
        if context:
            logger.warning("%s: %s", message, context)
        else:
            logger.warning("%s", message)
        self.diagnostics.report(Diagnostic(kind=kind, subject=subject, message=message, context=context))
        return UNRESOLVED
