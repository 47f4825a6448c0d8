"""
Shared fixtures for discovery tests.

Every fixture shares one DiagnosticLog per test so assertions can look at
what the resolver or discoverer reported.
"""
import pytest

from trellis.discovery.discoverer import Discoverer
from trellis.discovery.element_resolvers import ElementResolverRegistry
from trellis.discovery.testable_resolver import TestableResolver
from trellis.discovery.unique_id import UniqueId
from trellis.utils.diagnostics import DiagnosticLog


ENGINE = "trellis"


@pytest.fixture
def engine_id():
    """Root unique ID of the engine under test."""
    return UniqueId.for_engine(ENGINE)


@pytest.fixture
def diagnostics():
    return DiagnosticLog()


@pytest.fixture
def resolver(diagnostics):
    """TestableResolver with default markers."""
    return TestableResolver(diagnostics=diagnostics)


@pytest.fixture
def element_registry(diagnostics):
    """ElementResolverRegistry with the built-in resolvers."""
    return ElementResolverRegistry(diagnostics=diagnostics)


@pytest.fixture
def discoverer(diagnostics, element_registry, resolver):
    return Discoverer(ENGINE, registry=element_registry, resolver=resolver, diagnostics=diagnostics)
