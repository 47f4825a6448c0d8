"""
Discovery passes: selectors in, descriptor tree out.

Validates:
1. Module, class, method and unique ID selectors build the expected tree
2. Repeated selections share nodes
3. An unresolvable selector is isolated and the rest of the pass carries on
"""
import json

import pytest

from trellis.discovery.descriptors import extension_registry_for
from trellis.discovery.discoverer import (
    ClassSelector,
    MethodSelector,
    ModuleSelector,
    UniqueIdSelector,
    parse_selector,
)
from trellis.discovery.introspection import UnresolvableElementError
from trellis.discovery.tests import sample_suite as suite
from trellis.discovery.unique_id import MalformedIdentifierError, UniqueId
from trellis.extension.extension_points import BeforeEachCallback
from trellis.utils.diagnostics import DiagnosticKind


SUITE = suite.__name__
OUTER_ID = UniqueId.for_engine("trellis").append("class", f"{SUITE}.Outer")


def names(descriptor):
    return [child.display_name for child in descriptor.children]


@pytest.mark.discovery
def test_module_selector_builds_full_tree(discoverer):
    """
    A module selector discovers every container with tests

    Given: The sample suite module
    When: Discovering it
    Then: Outer, its unmarked inner class Helper and DerivedSuite are top-level nodes
    And: Classes without tests, abstract classes and extensions are skipped
    And: Seven tests are found
    """
    engine = discoverer.discover([ModuleSelector(SUITE)])

    assert names(engine) == ["Outer", "Helper", "DerivedSuite"]
    outer = engine.find_child(OUTER_ID)
    assert names(outer) == ["works()", "with_info(trellis.extension.parameters.TestInfo)", "inner scenarios"]
    assert len(engine.tests()) == 7


@pytest.mark.discovery
def test_unmarked_inner_class_is_not_expanded_below_outer(discoverer):
    """
    Inner classes without the nested marker are not children of their outer class

    Given: Outer.Helper, which is not marked nested
    When: Discovering Outer
    Then: Helper does not appear below Outer
    """
    engine = discoverer.discover([ClassSelector(suite.Outer)])

    outer = engine.find_child(OUTER_ID)
    assert "Helper" not in names(outer)
    assert not [d for d in engine.all_descendants() if d.display_name == "helps()"]


@pytest.mark.discovery
def test_unmarked_inner_class_selected_directly(discoverer):
    """
    An unmarked inner class can still be selected on its own

    Given: A class selector for Outer.Helper
    When: Discovering it
    Then: It is a top-level node with its own test
    """
    engine = discoverer.discover([ClassSelector(suite.Outer.Helper)])

    (helper,) = engine.children
    assert helper.unique_id == UniqueId.for_engine("trellis").append("class", f"{SUITE}.Outer$Helper")
    assert names(helper) == ["helps()"]


@pytest.mark.discovery
def test_nested_class_selector_attaches_ancestors(discoverer):
    """
    Selecting a nested class attaches its ancestors without siblings

    Given: A class selector for Outer.Inner
    When: Discovering it
    Then: Outer is present with Inner as its only child
    And: Inner is fully expanded
    """
    engine = discoverer.discover([ClassSelector(suite.Outer.Inner)])

    outer = engine.find_child(OUTER_ID)
    assert names(outer) == ["inner scenarios"]
    (inner,) = outer.children
    assert inner.kind == "nested-class"
    assert names(inner) == ["works()", "with_info(trellis.extension.parameters.TestInfo)", "Deeper"]
    assert len(engine.tests()) == 3


@pytest.mark.discovery
def test_same_method_twice_is_one_node(discoverer):
    """
    Repeated selections share nodes

    Given: The same method selected through a method selector and a unique ID
    When: Discovering both
    Then: Exactly one node exists for it
    """
    works_id = OUTER_ID.append("method", "works()")

    engine = discoverer.discover([
        MethodSelector(suite.Outer, suite.Outer.works),
        UniqueIdSelector(works_id),
        ClassSelector(suite.Outer),
    ])

    matches = [d for d in engine.all_descendants() if d.unique_id == works_id]
    assert len(matches) == 1
    assert engine.find_by_unique_id(works_id) is matches[0]
    assert len(engine.children) == 1


@pytest.mark.discovery
def test_stale_unique_id_is_isolated(discoverer, diagnostics):
    """
    One unresolvable selector does not abort the pass

    Given: A stale unique ID next to a valid class selector
    When: Discovering both
    Then: The valid selector is discovered
    And: The stale one leaves an unresolvable_segment diagnostic
    """
    stale = OUTER_ID.append("method", "removed()")

    engine = discoverer.discover([UniqueIdSelector(stale), ClassSelector(suite.DerivedSuite)])

    assert names(engine) == ["DerivedSuite"]
    assert engine.find_by_unique_id(stale) is None
    assert diagnostics.filter_by_kind(DiagnosticKind.UNRESOLVABLE_SEGMENT)


@pytest.mark.discovery
def test_missing_module_is_reported(discoverer, diagnostics):
    """
    Unimportable modules become diagnostics

    Given: A module selector for a module that does not exist
    When: Discovering it
    Then: The tree is empty and an unresolvable_element diagnostic is recorded
    """
    engine = discoverer.discover([ModuleSelector("trellis.no_such_module")])

    assert engine.children == []
    assert diagnostics.filter_by_kind(DiagnosticKind.UNRESOLVABLE_ELEMENT)


@pytest.mark.discovery
def test_discover_into_existing_engine(discoverer):
    """
    Passes can add to an existing tree

    Given: A tree holding DerivedSuite
    When: Discovering Outer into the same engine descriptor
    Then: Both containers are present
    """
    engine = discoverer.discover([ClassSelector(suite.DerivedSuite)])

    same = discoverer.discover([ClassSelector(suite.Outer)], engine=engine)

    assert same is engine
    assert names(engine) == ["DerivedSuite", "Outer"]


@pytest.mark.discovery
def test_tree_serializes_to_json(discoverer):
    """
    The tree converts to JSON

    Given: A discovered method
    When: Serializing the tree
    Then: Each node carries its unique ID, kind and children
    """
    engine = discoverer.discover([MethodSelector(suite.Outer, suite.Outer.works)])

    data = json.loads(engine.to_json())

    assert data["kind"] == "engine"
    (outer,) = data["children"]
    assert outer["class"] == f"{SUITE}.Outer"
    (works,) = outer["children"]
    assert works["kind"] == "method"
    assert works["method"] == "works()"
    assert works["unique_id"] == f"[engine:trellis]/[class:{SUITE}.Outer]/[method:works()]"


@pytest.mark.discovery
def test_descriptor_registries_inherit_extensions(discoverer):
    """
    Nested descriptors see their ancestors' extensions first

    Given: Outer extended with RecordingExtension and Inner with InnerExtension
    When: Building registries from the root down to Inner.works()
    Then: works() sees RecordingExtension then InnerExtension
    """
    engine = discoverer.discover([ClassSelector(suite.Outer.Inner)])
    works = engine.find_by_unique_id(
        OUTER_ID.append("nested-class", "Inner").append("method", "works()")
    )

    registry = extension_registry_for(works)

    kinds = [type(e) for e in registry.all_for(BeforeEachCallback)]
    assert kinds == [suite.RecordingExtension, suite.InnerExtension]


@pytest.mark.discovery
def test_parse_selector_forms():
    """
    Command-line selector forms

    Given: Module, class, nested class, method and unique ID text
    When: Parsing them
    Then: The matching selector types are produced
    """
    assert parse_selector(SUITE) == ModuleSelector(SUITE)
    assert parse_selector(f"{SUITE}:Outer") == ClassSelector(suite.Outer)
    assert parse_selector(f"{SUITE}:Outer.Inner") == ClassSelector(suite.Outer.Inner)
    assert parse_selector(f"{SUITE}:Outer#works") == MethodSelector(suite.Outer, suite.Outer.works)
    assert parse_selector(f"{SUITE}:DerivedSuite#inherited") == MethodSelector(
        suite.DerivedSuite, suite.AbstractBase.inherited
    )
    assert parse_selector(str(OUTER_ID)) == UniqueIdSelector(OUTER_ID)


@pytest.mark.discovery
def test_parse_selector_errors():
    """
    Bad selector text is rejected

    Given: Malformed unique ID text, an unknown class and an unknown method
    When: Parsing them
    Then: The matching error is raised
    """
    with pytest.raises(MalformedIdentifierError):
        parse_selector("[engine:trellis")
    with pytest.raises(UnresolvableElementError):
        parse_selector(f"{SUITE}:Missing")
    with pytest.raises(UnresolvableElementError):
        parse_selector(f"{SUITE}:Outer#missing")
