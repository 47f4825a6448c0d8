"""
Parameter resolution pipeline.

Validates:
1. TestInfo parameters are supplied without any registered resolver
2. Registered resolvers are consulted in registry order, after built-ins
3. A supporting resolver's failure propagates
4. Unsupported parameters raise UnresolvableParameterError
"""
import pytest

from trellis.discovery.descriptors import MethodTestDescriptor
from trellis.discovery.introspection import formal_parameters, method_spec, qualified_name
from trellis.discovery.tests import sample_suite as suite
from trellis.discovery.unique_id import UniqueId
from trellis.extension import parameters
from trellis.extension.extension_points import ExtensionContext, ParameterResolver
from trellis.extension.registry import ExtensionPointRegistry, Position


SUITE = suite.__name__
DEEPEST = suite.Outer.Inner.Deeper.deepest


class IntResolver(ParameterResolver):

    def __init__(self, value=42):
        self.value = value

    def supports(self, parameter):
        return parameter.annotation is int

    def resolve(self, parameter, context):
        return self.value


class StrResolver(ParameterResolver):

    def supports(self, parameter):
        return parameter.annotation is str

    def resolve(self, parameter, context):
        return parameter.name


class FailingIntResolver(IntResolver):

    def resolve(self, parameter, context):
        raise RuntimeError("cannot build an int")


class InfoOverride(ParameterResolver):

    def supports(self, parameter):
        return parameter.annotation is parameters.TestInfo

    def resolve(self, parameter, context):
        return "override"


def context_for(test_class, method):
    uid = UniqueId.for_engine("trellis").append("class", qualified_name(test_class))
    uid = uid.append("method", method_spec(method))
    return ExtensionContext(descriptor=MethodTestDescriptor(uid, test_class, method))


@pytest.fixture
def registry():
    return ExtensionPointRegistry()


@pytest.mark.extension
def test_test_info_is_built_in(registry):
    """
    TestInfo parameters need no registered resolver

    Given: An empty registry and a test method taking TestInfo
    When: Resolving its arguments
    Then: A TestInfo describing the method is supplied
    """
    context = context_for(suite.Outer, suite.Outer.with_info)
    pipeline = parameters.ParameterResolutionPipeline(registry)

    (info,) = pipeline.resolve_arguments(suite.Outer.with_info, context)

    assert isinstance(info, parameters.TestInfo)
    assert info.name == "with_info"
    assert info.display_name == "with_info(trellis.extension.parameters.TestInfo)"
    assert info.unique_id == context.unique_id


@pytest.mark.extension
def test_built_ins_precede_registered_resolvers(registry):
    """
    Built-in resolvers are consulted first

    Given: A registered OUTERMOST resolver that also supports TestInfo
    When: Resolving a TestInfo parameter
    Then: The built-in resolver supplies the value
    """
    registry.register(InfoOverride(), position=Position.OUTERMOST)
    context = context_for(suite.Outer, suite.Outer.with_info)
    pipeline = parameters.ParameterResolutionPipeline(registry)

    (info,) = pipeline.resolve_arguments(suite.Outer.with_info, context)

    assert isinstance(info, parameters.TestInfo)
    assert isinstance(pipeline.resolvers()[0], parameters.TestInfoParameterResolver)


@pytest.mark.extension
def test_unsupported_parameter_names_parameter_and_method(registry):
    """
    No supporting resolver raises UnresolvableParameterError

    Given: deepest(count: int, *names: str) and no int resolver
    When: Resolving its arguments
    Then: The error names 'count', its type and the declaring method
    """
    context = context_for(suite.Outer.Inner.Deeper, DEEPEST)
    pipeline = parameters.ParameterResolutionPipeline(registry)

    with pytest.raises(parameters.UnresolvableParameterError) as excinfo:
        pipeline.resolve_arguments(DEEPEST, context)

    message = str(excinfo.value)
    assert "'count'" in message
    assert "'int'" in message
    assert f"{SUITE}.Outer$Inner$Deeper#deepest" in message
    assert excinfo.value.parameter.name == "count"
    assert isinstance(excinfo.value, LookupError)


@pytest.mark.extension
def test_registered_resolvers_supply_values(registry):
    """
    Registered resolvers supply every supported parameter

    Given: Resolvers for int and str parameters
    When: Resolving deepest(count: int, *names: str)
    Then: Each parameter gets its resolver's value, in declaration order
    """
    registry.register(IntResolver())
    registry.register(StrResolver())
    context = context_for(suite.Outer.Inner.Deeper, DEEPEST)

    values = parameters.ParameterResolutionPipeline(registry).resolve_arguments(DEEPEST, context)

    assert values == [42, "names"]


@pytest.mark.extension
def test_first_supporting_resolver_in_registry_order_wins(registry):
    """
    Position bands order the registered resolvers

    Given: Two int resolvers, the second registered at OUTSIDE_DEFAULT
    When: Resolving an int parameter
    Then: The OUTSIDE_DEFAULT resolver's value is used
    """
    registry.register(IntResolver(1))
    registry.register(IntResolver(2), position=Position.OUTSIDE_DEFAULT)
    (count, _) = formal_parameters(DEEPEST)
    context = context_for(suite.Outer.Inner.Deeper, DEEPEST)

    assert parameters.ParameterResolutionPipeline(registry).resolve(count, context) == 2


@pytest.mark.extension
def test_failing_supporting_resolver_propagates(registry):
    """
    A supporting resolver that fails is not skipped

    Given: A failing int resolver ahead of a working one
    When: Resolving an int parameter
    Then: The failure propagates unchanged
    """
    registry.register(FailingIntResolver(), position=Position.OUTERMOST)
    registry.register(IntResolver())
    (count, _) = formal_parameters(DEEPEST)
    context = context_for(suite.Outer.Inner.Deeper, DEEPEST)

    with pytest.raises(RuntimeError, match="cannot build an int"):
        parameters.ParameterResolutionPipeline(registry).resolve(count, context)


@pytest.mark.extension
def test_nested_registry_resolvers_are_inherited(registry):
    """
    A nested scope sees resolvers registered by its ancestors

    Given: An int resolver in the parent registry
    When: Resolving through a child registry's pipeline
    Then: The parent's resolver supplies the value
    """
    registry.register(IntResolver(7))
    child = ExtensionPointRegistry(parent=registry)
    (count, _) = formal_parameters(DEEPEST)
    context = context_for(suite.Outer.Inner.Deeper, DEEPEST)

    assert parameters.ParameterResolutionPipeline(child).resolve(count, context) == 7


@pytest.mark.extension
def test_no_parameters_no_arguments(registry):
    """
    Methods without parameters resolve to no arguments

    Given: works() with only self
    When: Resolving its arguments
    Then: An empty list is returned
    """
    context = context_for(suite.Outer, suite.Outer.works)

    assert parameters.ParameterResolutionPipeline(registry).resolve_arguments(suite.Outer.works, context) == []
