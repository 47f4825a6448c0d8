"""
Element classification predicates.

Which classes count as test containers and which functions count as tests
is decided by marker names handed in as configuration, so the resolution
core never hard-codes marker semantics.
"""

import inspect
from typing import Any, Optional

from trellis.api import NESTED_MARKER, TEST_MARKER
from trellis.discovery.introspection import Introspector, MarkerIntrospector, is_importable


class IsPotentialTestContainer:
    """
    A class that can stand on its own as a test container.

    Abstract classes, classes declared inside function bodies and classes
    marked as nested containers do not qualify.
    """

    def __init__(self, introspector: Optional[Introspector] = None, nested_marker: str = NESTED_MARKER):
        self.introspector = introspector or MarkerIntrospector()
        self.nested_marker = nested_marker

    def __call__(self, candidate: Any) -> bool:
        if not inspect.isclass(candidate):
            return False
        if inspect.isabstract(candidate) or not is_importable(candidate):
            return False
        return not self.introspector.has_marker(candidate, self.nested_marker)


class IsNestedTestClass:
    """A class carrying the nested marker and declared inside another class."""

    def __init__(self, introspector: Optional[Introspector] = None, nested_marker: str = NESTED_MARKER):
        self.introspector = introspector or MarkerIntrospector()
        self.nested_marker = nested_marker

    def __call__(self, candidate: Any) -> bool:
        if not inspect.isclass(candidate) or inspect.isabstract(candidate):
            return False
        if not self.introspector.has_marker(candidate, self.nested_marker):
            return False
        return self.introspector.enclosing_class(candidate) is not None


class IsTestMethod:
    """A plain, concrete function carrying the test marker."""

    def __init__(self, introspector: Optional[Introspector] = None, test_marker: str = TEST_MARKER):
        self.introspector = introspector or MarkerIntrospector()
        self.test_marker = test_marker

    def __call__(self, candidate: Any) -> bool:
        if not inspect.isfunction(candidate):
            return False
        if getattr(candidate, "__isabstractmethod__", False):
            return False
        return self.introspector.has_marker(candidate, self.test_marker)
