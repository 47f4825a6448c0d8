"""
Extension point kinds.

An extension point kind is a class that directly subclasses ExtensionPoint.
A single extension object may implement several kinds. A plain function can
stand in for any kind with exactly one abstract method (see from_function).

Kinds:
- BeforeAllCallback / AfterAllCallback: around a whole container
- BeforeEachCallback / AfterEachCallback: around every test
- ContainerExecutionCondition / TestExecutionCondition: enable or skip
- ExceptionHandler: sees exceptions thrown by a test
- ParameterResolver: supplies arguments for test and lifecycle methods
"""
from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Type


class ExtensionPoint(ABC):
    """Base of all extension point kinds."""

    @classmethod
    def kinds(cls) -> List[Type["ExtensionPoint"]]:
        """Extension point kinds implemented by ``cls``, in MRO order."""
        return [klass for klass in cls.__mro__ if ExtensionPoint in klass.__bases__]

    @classmethod
    def abstract_method_names(cls) -> List[str]:
        return sorted(
            name for name, member in vars(cls).items()
            if getattr(member, "__isabstractmethod__", False)
        )

    @classmethod
    def from_function(cls, function: Callable) -> "ExtensionPoint":
        """
        Adapt a plain callable to this single-method kind.

        Raises:
            TypeError: if the kind has more than one abstract method
        """
        if ExtensionPoint not in cls.__bases__:
            raise TypeError(f"{cls.__name__} is not an extension point kind")
        names = cls.abstract_method_names()
        if len(names) != 1:
            raise TypeError(
                f"{cls.__name__} has {len(names)} abstract methods; "
                "only single-method kinds accept a function"
            )

        def delegate(self, *args, **kwargs):
            return function(*args, **kwargs)

        adapter_type = type(
            f"{cls.__name__}Function",
            (cls,),
            {names[0]: delegate, "function": function, "__repr__": _function_repr},
        )
        return adapter_type()


def _function_repr(self) -> str:
    return f"{type(self).__name__}({getattr(self.function, '__qualname__', self.function)!r})"


class ExtensionRegistrar(ABC):
    """An extension that registers its extension points programmatically."""

    @abstractmethod
    def register_extensions(self, registry) -> None:
        ...


@dataclass
class ExtensionContext:
    """
    What an extension point sees while a container or test runs.

    Attributes:
        descriptor: The test descriptor being executed
        parent: Context of the enclosing container, if any
        test_instance: The instance the test method runs on, if created
    """

    descriptor: Any
    parent: Optional["ExtensionContext"] = None
    test_instance: Any = None

    @property
    def unique_id(self):
        return self.descriptor.unique_id

    @property
    def display_name(self) -> str:
        return self.descriptor.display_name

    @property
    def test_class(self) -> Optional[type]:
        return getattr(self.descriptor, "test_class", None)

    @property
    def test_method(self) -> Any:
        return getattr(self.descriptor, "method", None)


@dataclass(frozen=True)
class ConditionEvaluationResult:
    enabled: bool
    reason: Optional[str] = None

    @classmethod
    def enable(cls, reason: Optional[str] = None) -> "ConditionEvaluationResult":
        return cls(True, reason)

    @classmethod
    def disable(cls, reason: Optional[str] = None) -> "ConditionEvaluationResult":
        return cls(False, reason)


class BeforeAllCallback(ExtensionPoint):

    @abstractmethod
    def before_all(self, context: ExtensionContext) -> None:
        ...


class AfterAllCallback(ExtensionPoint):

    @abstractmethod
    def after_all(self, context: ExtensionContext) -> None:
        ...


class BeforeEachCallback(ExtensionPoint):

    @abstractmethod
    def before_each(self, context: ExtensionContext) -> None:
        ...


class AfterEachCallback(ExtensionPoint):

    @abstractmethod
    def after_each(self, context: ExtensionContext) -> None:
        ...


class ContainerExecutionCondition(ExtensionPoint):

    @abstractmethod
    def evaluate_container(self, context: ExtensionContext) -> ConditionEvaluationResult:
        ...


class TestExecutionCondition(ExtensionPoint):

    __test__ = False

    @abstractmethod
    def evaluate_test(self, context: ExtensionContext) -> ConditionEvaluationResult:
        ...


class ExceptionHandler(ExtensionPoint):
    """Handle or rethrow an exception thrown by a test."""

    @abstractmethod
    def handle_exception(self, context: ExtensionContext, exception: BaseException) -> None:
        ...


class ParameterResolver(ExtensionPoint):
    """Supplies a value for a formal parameter it supports."""

    @abstractmethod
    def supports(self, parameter) -> bool:
        ...

    @abstractmethod
    def resolve(self, parameter, context: ExtensionContext) -> Any:
        ...


def is_extension_type(candidate: Any) -> bool:
    return inspect.isclass(candidate) and issubclass(candidate, (ExtensionPoint, ExtensionRegistrar))


EXTENSION_POINT_KINDS = (
    BeforeAllCallback,
    AfterAllCallback,
    BeforeEachCallback,
    AfterEachCallback,
    ContainerExecutionCondition,
    TestExecutionCondition,
    ExceptionHandler,
    ParameterResolver,
)
