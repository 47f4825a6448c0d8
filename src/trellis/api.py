"""
Decorators for declaring test containers, test methods and extensions.

Usage:
    from trellis.api import test, nested, extend_with, display_name

    @extend_with(TimingExtension)
    class CalculatorTests:

        @test
        def adds(self):
            ...

        @nested
        @display_name("when empty")
        class WhenEmpty:

            @test
            def has_no_total(self, info: TestInfo):
                ...
"""

from typing import Any, Callable

from trellis.discovery.introspection import MarkerIntrospector, add_marker

TEST_MARKER = "test"
NESTED_MARKER = "nested"
DISPLAY_NAME_MARKER = "display_name"
EXTEND_WITH_MARKER = "extend_with"


def mark(name: str, **attributes: Any) -> Callable:
    """Attach an arbitrary marker; used for custom test or nested marker names."""

    def decorator(element):
        return add_marker(element, name, **attributes)

    return decorator


def test(function: Callable) -> Callable:
    """Mark a method as a test method."""
    return add_marker(function, TEST_MARKER)


# Not a test function itself
test.__test__ = False


def nested(cls: type) -> type:
    """Mark a class declared inside a test container as a nested test container."""
    return add_marker(cls, NESTED_MARKER)


def display_name(name: str) -> Callable:
    return mark(DISPLAY_NAME_MARKER, value=name)


def extend_with(*extension_types: Any) -> Callable:
    """
    Declare extensions for a container or test method.

    Repeated use accumulates extensions in the order the decorators are
    applied, so the decorator closest to the definition comes first.
    """
    if not extension_types:
        raise ValueError("extend_with() needs at least one extension")

    def decorator(element):
        existing = MarkerIntrospector().find_marker(element, EXTEND_WITH_MARKER)
        declared = tuple(existing.get("extensions", ())) if existing else ()
        return add_marker(element, EXTEND_WITH_MARKER, extensions=declared + tuple(extension_types))

    return decorator
