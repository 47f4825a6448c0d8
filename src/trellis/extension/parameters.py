"""
Parameter Resolution
====================
Supplies argument values for test and lifecycle methods.

Resolvers are consulted in order: built-in resolvers for framework-owned
types first, then the ParameterResolver extension points of the registry
(outermost first). The first resolver that supports a parameter is used.
If it then fails, that failure propagates; it is never treated as
"does not support". When nobody supports the parameter,
UnresolvableParameterError names the parameter and its declaring method.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from trellis.discovery.introspection import FormalParameter, formal_parameters
from trellis.discovery.unique_id import UniqueId
from trellis.extension.extension_points import ExtensionContext, ParameterResolver
from trellis.extension.registry import ExtensionPointRegistry

logger = logging.getLogger(__name__)


class UnresolvableParameterError(LookupError):
    """Raised when no parameter resolver supports a formal parameter."""

    def __init__(self, parameter: FormalParameter):
        self.parameter = parameter
        super().__init__(
            f"No ParameterResolver registered for parameter '{parameter.name}' "
            f"of type '{parameter.type_name}' in method '{parameter.declaring_method}'"
        )


@dataclass(frozen=True)
class TestInfo:
    """Information about the current container or test, injectable into tests."""

    __test__ = False

    name: str
    display_name: str
    unique_id: UniqueId

    @classmethod
    def from_context(cls, context: ExtensionContext) -> "TestInfo":
        descriptor = context.descriptor
        method = context.test_method
        test_class = context.test_class
        if method is not None:
            name = method.__name__
        elif test_class is not None:
            name = test_class.__name__
        else:
            name = descriptor.display_name
        return cls(name=name, display_name=descriptor.display_name, unique_id=descriptor.unique_id)


class TestInfoParameterResolver(ParameterResolver):
    """Built-in resolver for parameters annotated with TestInfo."""

    __test__ = False

    def supports(self, parameter: FormalParameter) -> bool:
        return parameter.annotation is TestInfo

    def resolve(self, parameter: FormalParameter, context: ExtensionContext) -> TestInfo:
        return TestInfo.from_context(context)


BUILTIN_RESOLVERS = (TestInfoParameterResolver(),)


class ParameterResolutionPipeline:
    """
    Resolves formal parameters against built-in and registered resolvers.

    Args:
        registry: Extension point registry of the current scope
        builtins: Resolvers consulted before any registered resolver
    """

    def __init__(
        self,
        registry: Optional[ExtensionPointRegistry] = None,
        builtins: Optional[Sequence[ParameterResolver]] = None,
    ):
        self.registry = registry if registry is not None else ExtensionPointRegistry()
        self.builtins = list(BUILTIN_RESOLVERS if builtins is None else builtins)

    def resolvers(self) -> List[ParameterResolver]:
        return self.builtins + self.registry.all_for(ParameterResolver)

    def resolve(self, parameter: FormalParameter, context: ExtensionContext) -> Any:
        """
        Resolve one parameter.

        Raises:
            UnresolvableParameterError: if no resolver supports ``parameter``
        """
        for resolver in self.resolvers():
            if resolver.supports(parameter):
                logger.debug(
                    "Resolving parameter '%s' of %s with %r",
                    parameter.name, parameter.declaring_method, resolver,
                )
                return resolver.resolve(parameter, context)
        raise UnresolvableParameterError(parameter)

    def resolve_arguments(self, method: Any, context: ExtensionContext) -> List[Any]:
        """Resolve every formal parameter of ``method``, ``self`` excluded, in order."""
        return [self.resolve(parameter, context) for parameter in formal_parameters(method)]
