"""
Introspection: markers, qualified names, class loading and method signatures.
"""
import inspect

import pytest

from trellis import api
from trellis.discovery.introspection import (
    MarkerIntrospector,
    UnresolvableElementError,
    add_marker,
    enclosing_class,
    find_method,
    find_methods,
    find_nested_classes,
    formal_parameters,
    load_class,
    method_spec,
    qualified_name,
    render_type,
)
from trellis.discovery.tests import sample_suite as suite
from trellis.extension import parameters


SUITE = suite.__name__


@pytest.mark.discovery
def test_markers_are_found_with_attributes():
    """
    Decorators attach markers the introspector can read

    Given: The nested Inner class with a display name
    When: Asking the introspector for its markers
    Then: nested and display_name are present, with the display name value
    """
    introspector = MarkerIntrospector()

    assert introspector.has_marker(suite.Outer.Inner, "nested")
    assert introspector.find_marker(suite.Outer.Inner, "display_name").get("value") == "inner scenarios"
    assert introspector.has_marker(suite.Outer.works, "test")
    assert not introspector.has_marker(suite.Outer.helper, "test")


@pytest.mark.discovery
def test_class_markers_are_not_inherited():
    """
    A subclass does not inherit its base's class markers

    Given: A base class carrying a marker and a subclass
    When: Marking the subclass with a second marker
    Then: The base keeps only its own marker, the subclass only its own
    """

    class Base:
        pass

    add_marker(Base, "base")

    class Derived(Base):
        pass

    add_marker(Derived, "derived")
    introspector = MarkerIntrospector()

    assert introspector.has_marker(Base, "base")
    assert not introspector.has_marker(Base, "derived")
    assert not introspector.has_marker(Derived, "base")


@pytest.mark.discovery
def test_repeated_marker_merges_attributes():
    """
    Marking twice merges attributes

    Given: A function marked with the same marker twice
    When: Reading the marker
    Then: Attributes from both calls are present
    """

    def function():
        pass

    add_marker(function, "tag", a=1)
    add_marker(function, "tag", b=2)

    marker = MarkerIntrospector().find_marker(function, "tag")
    assert dict(marker.attributes) == {"a": 1, "b": 2}


@pytest.mark.discovery
def test_extend_with_accumulates():
    """
    @extend_with used twice keeps every extension in order

    Given: A class decorated twice with extend_with
    When: Reading the extend_with marker
    Then: Both extensions are listed, innermost decorator first
    """

    @api.extend_with(suite.InnerExtension)
    @api.extend_with(suite.RecordingExtension)
    class Extended:
        pass

    marker = MarkerIntrospector().find_marker(Extended, api.EXTEND_WITH_MARKER)
    assert marker.get("extensions") == (suite.RecordingExtension, suite.InnerExtension)

    with pytest.raises(ValueError):
        api.extend_with()


@pytest.mark.discovery
def test_qualified_name_uses_dollar_for_nesting():
    """
    Nested class names join levels with '$'

    Given: A class nested two levels deep
    When: Rendering its qualified name
    Then: The module path is followed by Outer$Inner$Deeper
    """
    assert qualified_name(suite.Outer) == f"{SUITE}.Outer"
    assert qualified_name(suite.Outer.Inner.Deeper) == f"{SUITE}.Outer$Inner$Deeper"


@pytest.mark.discovery
def test_load_class_round_trips_qualified_name():
    """
    load_class() reverses qualified_name()

    Given: Top-level and nested classes
    When: Loading them back from their qualified names
    Then: The same class objects are returned
    """
    for cls in (suite.Outer, suite.Outer.Inner, suite.Outer.Inner.Deeper, suite.Outer.Helper):
        assert load_class(qualified_name(cls)) is cls


@pytest.mark.discovery
@pytest.mark.parametrize("name", [
    "NoModule",
    f"{SUITE}.Missing",
    f"{SUITE}.Outer$Missing",
    f"{SUITE}.RecordingExtension$before_each",
    "trellis.no_such_module.Outer",
])
def test_load_class_rejects_unknown_names(name):
    """
    Unknown class names raise UnresolvableElementError

    Given: A qualified name whose module or class level is missing
    When: Loading it
    Then: UnresolvableElementError is raised
    """
    with pytest.raises(UnresolvableElementError):
        load_class(name)


@pytest.mark.discovery
def test_enclosing_class():
    """
    Enclosing class is found for nested classes only

    Given: Nested and top-level classes
    When: Asking for their enclosing class
    Then: Nested classes report their container, top-level ones None
    """
    assert enclosing_class(suite.Outer.Inner) is suite.Outer
    assert enclosing_class(suite.Outer.Inner.Deeper) is suite.Outer.Inner
    assert enclosing_class(suite.Outer) is None


@pytest.mark.discovery
def test_method_spec_renders_parameter_types():
    """
    Method segments encode name and parameter types

    Given: Methods without parameters, with a class annotation, with var-args
    When: Rendering their method specs
    Then: Builtins use bare names, classes qualified names, var-args keep '*'
    """
    assert method_spec(suite.Outer.works) == "works()"
    assert method_spec(suite.Outer.with_info) == "with_info(trellis.extension.parameters.TestInfo)"
    assert method_spec(suite.Outer.Inner.Deeper.deepest) == "deepest(int, *str)"


@pytest.mark.discovery
def test_unannotated_parameters_render_as_object():
    """
    Parameters without annotations render as object

    Given: A method with unannotated positional and keyword var-args
    When: Rendering its spec
    Then: Each parameter renders as object with its prefix
    """

    class Holder:
        def run(self, a, *b, **c):
            pass

    assert method_spec(Holder.run) == "run(object, *object, **object)"
    assert render_type(inspect.Parameter.empty) == "object"


@pytest.mark.discovery
def test_formal_parameters_drop_self():
    """
    Formal parameters exclude self and name their declaring method

    Given: A nested test method with one annotated parameter
    When: Listing its formal parameters
    Then: One parameter with the evaluated TestInfo annotation is returned
    """
    params = formal_parameters(suite.Outer.Inner.with_info)

    assert len(params) == 1
    assert params[0].name == "info"
    assert params[0].annotation is parameters.TestInfo
    assert params[0].index == 0
    assert params[0].declaring_method == f"{SUITE}.Outer$Inner#with_info"


@pytest.mark.discovery
def test_find_method_matches_signature():
    """
    find_method() looks methods up by name and signature

    Given: The method spec of an inherited test
    When: Looking it up on the subclass
    Then: The base class function is returned
    And: A signature mismatch or missing name raises
    """
    assert find_method(suite.DerivedSuite, "inherited()") is suite.AbstractBase.inherited

    with pytest.raises(UnresolvableElementError):
        find_method(suite.Outer, "works(int)")
    with pytest.raises(UnresolvableElementError):
        find_method(suite.Outer, "removed()")


@pytest.mark.discovery
def test_member_listing():
    """
    Methods and nested classes are listed in declaration order

    Given: The Outer container
    When: Listing its methods and nested classes
    Then: Declaration order is kept
    """
    assert [m.__name__ for m in find_methods(suite.Outer)] == ["works", "with_info", "helper"]
    assert find_nested_classes(suite.Outer) == [suite.Outer.Inner, suite.Outer.Helper]
